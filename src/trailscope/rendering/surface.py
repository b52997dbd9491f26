"""
Drawing Surface
===============

Drawing surface abstraction and an OpenCV-backed canvas implementation.

The surface is owned by the caller. Components acquire a drawing context
from it once, at construction, and fail fast if that is not possible.

CanvasSurface:
    A BGR uint8 numpy image. Strokes and fills go through OpenCV; partial
    opacity is applied by drawing onto a copy of the affected region and
    blending it back with cv2.addWeighted, so only the segment's bounding
    box is touched.
"""

import logging
from typing import Optional, Protocol, Tuple

import cv2
import numpy as np

from trailscope.colors import hex_to_bgr
from trailscope.errors import ValidationError


logger = logging.getLogger(__name__)


Point = Tuple[float, float]


class DrawingContext(Protocol):
    """Operations painters rely on."""

    def clear(self, color: str) -> None:
        ...

    def stroke_line(
        self,
        start: Point,
        end: Point,
        color: str,
        width: float,
        alpha: float = 1.0,
    ) -> None:
        ...

    def fill_rect(
        self,
        x: float,
        y: float,
        w: float,
        h: float,
        color: str,
        alpha: float = 1.0,
    ) -> None:
        ...

    def stroke_rect(
        self,
        x: float,
        y: float,
        w: float,
        h: float,
        color: str,
        alpha: float = 1.0,
        width: int = 1,
    ) -> None:
        ...


class DrawingSurface(Protocol):
    """
    Protocol for caller-owned drawing surfaces.

    get_context() may raise or return None when no context is available.
    """

    @property
    def width(self) -> int:
        ...

    @property
    def height(self) -> int:
        ...

    def get_context(self) -> Optional[DrawingContext]:
        ...


class CanvasSurface:
    """
    In-memory BGR canvas.

    Attributes:
        image: (height, width, 3) uint8 array

    Example:
        surface = CanvasSurface(800, 600)
        ctx = surface.get_context()
        ctx.stroke_line((10, 10), (200, 80), "#4CAF50", 2, alpha=0.5)
        cv2.imshow("trails", surface.image)
    """

    def __init__(self, width: int, height: int, background: str = "#000000") -> None:
        """
        Initialize canvas.

        Args:
            width: Canvas width in pixels (> 0)
            height: Canvas height in pixels (> 0)
            background: Initial fill color

        Raises:
            ValidationError: If a dimension is not a positive integer
        """
        self._width, self._height = self._validate_size(width, height)
        self.image = np.zeros((self._height, self._width, 3), dtype=np.uint8)
        self.image[:, :] = hex_to_bgr(background)
        self._context = CanvasContext(self)

    @staticmethod
    def _validate_size(width: int, height: int) -> Tuple[int, int]:
        try:
            w, h = int(width), int(height)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"canvas size must be integers, got {width}x{height}") from e
        if w <= 0 or h <= 0 or w != width or h != height:
            raise ValidationError(f"canvas size must be positive integers, got {width}x{height}")
        return w, h

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    def get_context(self) -> "CanvasContext":
        return self._context

    def resize(self, width: int, height: int) -> None:
        """Reallocate the canvas. Contents are discarded."""
        self._width, self._height = self._validate_size(width, height)
        self.image = np.zeros((self._height, self._width, 3), dtype=np.uint8)
        logger.info(f"CanvasSurface resized to {self._width}x{self._height}")


class CanvasContext:
    """OpenCV drawing operations over a CanvasSurface."""

    def __init__(self, surface: CanvasSurface) -> None:
        self._surface = surface

    def clear(self, color: str) -> None:
        self._surface.image[:, :] = hex_to_bgr(color)

    def stroke_line(
        self,
        start: Point,
        end: Point,
        color: str,
        width: float,
        alpha: float = 1.0,
    ) -> None:
        """
        Stroke an anti-aliased segment with round caps.

        Args:
            start: (x, y) start point
            end: (x, y) end point
            color: Hex color
            width: Stroke width in pixels
            alpha: Opacity in [0, 1]
        """
        if alpha <= 0:
            return

        thickness = max(1, int(round(width)))
        pad = thickness + 1
        x0, y0 = int(round(start[0])), int(round(start[1]))
        x1, y1 = int(round(end[0])), int(round(end[1]))

        region = self._region(
            min(x0, x1) - pad, min(y0, y1) - pad,
            max(x0, x1) + pad + 1, max(y0, y1) + pad + 1,
        )
        if region is None:
            return
        left, top, right, bottom = region

        roi = self._surface.image[top:bottom, left:right]
        overlay = roi.copy()
        bgr = hex_to_bgr(color)
        p0 = (x0 - left, y0 - top)
        p1 = (x1 - left, y1 - top)

        cv2.line(overlay, p0, p1, bgr, thickness, cv2.LINE_AA)
        if thickness > 2:
            radius = thickness // 2
            cv2.circle(overlay, p0, radius, bgr, -1, cv2.LINE_AA)
            cv2.circle(overlay, p1, radius, bgr, -1, cv2.LINE_AA)

        self._blend(roi, overlay, alpha)

    def fill_rect(
        self,
        x: float,
        y: float,
        w: float,
        h: float,
        color: str,
        alpha: float = 1.0,
    ) -> None:
        region = self._region(int(x), int(y), int(x + w), int(y + h))
        if region is None or alpha <= 0:
            return
        left, top, right, bottom = region

        roi = self._surface.image[top:bottom, left:right]
        if alpha >= 1.0:
            roi[:, :] = hex_to_bgr(color)
            return

        overlay = np.empty_like(roi)
        overlay[:, :] = hex_to_bgr(color)
        self._blend(roi, overlay, alpha)

    def stroke_rect(
        self,
        x: float,
        y: float,
        w: float,
        h: float,
        color: str,
        alpha: float = 1.0,
        width: int = 1,
    ) -> None:
        region = self._region(int(x), int(y), int(x + w), int(y + h))
        if region is None or alpha <= 0:
            return
        left, top, right, bottom = region

        roi = self._surface.image[top:bottom, left:right]
        overlay = roi.copy()
        cv2.rectangle(
            overlay,
            (0, 0),
            (right - left - 1, bottom - top - 1),
            hex_to_bgr(color),
            max(1, int(width)),
        )
        self._blend(roi, overlay, alpha)

    # Internals ----------------------------------------------------------

    def _region(self, left: int, top: int, right: int, bottom: int) -> Optional[Tuple[int, int, int, int]]:
        """Clip a box to the canvas; None when nothing is visible."""
        left = max(0, left)
        top = max(0, top)
        right = min(self._surface.width, right)
        bottom = min(self._surface.height, bottom)
        if right <= left or bottom <= top:
            return None
        return left, top, right, bottom

    @staticmethod
    def _blend(roi: np.ndarray, overlay: np.ndarray, alpha: float) -> None:
        alpha = min(1.0, max(0.0, float(alpha)))
        roi[:, :] = cv2.addWeighted(overlay, alpha, roi, 1.0 - alpha, 0)
