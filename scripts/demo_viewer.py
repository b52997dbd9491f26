#!/usr/bin/env python3
"""
Trailscope Demo Viewer
======================

Drives a random-walk population through the dashboard and shows the
canvas in an OpenCV window.

The random walk stands in for the external simulation; it only produces
{id, x, y, kind} tuples per tick.

Usage:
    python scripts/demo_viewer.py --organisms 40
    python scripts/demo_viewer.py --config trailscope.yaml --width 1024 --height 768

Controls: q/ESC quit, t trails, h heatmap, a print analysis, +/- trail length
"""

import argparse
import asyncio
import logging
import math
import os
import random
import sys
from typing import List

import cv2

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from trailscope.config import load_config, setup_logging
from trailscope.dashboard import VisualizationDashboard
from trailscope.errors import ValidationError
from trailscope.rendering import AsyncioFrameScheduler, CanvasSurface


logger = logging.getLogger(__name__)

KINDS = ["herbivore", "carnivore", "plant"]


class RandomWalkPopulation:
    """Organisms with a slowly drifting heading that bounce off the walls."""

    def __init__(self, count: int, width: int, height: int, seed: int) -> None:
        self.width = width
        self.height = height
        self._rng = random.Random(seed)
        self._organisms = [
            {
                "id": f"organism-{i}",
                "x": self._rng.uniform(0, width),
                "y": self._rng.uniform(0, height),
                "heading": self._rng.uniform(-math.pi, math.pi),
                "kind": KINDS[i % len(KINDS)],
            }
            for i in range(count)
        ]

    def step(self, speed: float = 4.0) -> List[dict]:
        updates = []
        for org in self._organisms:
            org["heading"] += self._rng.gauss(0, 0.35)
            org["x"] += speed * math.cos(org["heading"])
            org["y"] += speed * math.sin(org["heading"])

            if not 0 <= org["x"] < self.width:
                org["heading"] = math.pi - org["heading"]
                org["x"] = min(max(org["x"], 0), self.width - 1)
            if not 0 <= org["y"] < self.height:
                org["heading"] = -org["heading"]
                org["y"] = min(max(org["y"], 0), self.height - 1)

            updates.append({"id": org["id"], "x": org["x"], "y": org["y"], "kind": org["kind"]})
        return updates


async def run_viewer(args: argparse.Namespace) -> None:
    settings = load_config(args.config)
    setup_logging(settings)

    surface = CanvasSurface(args.width, args.height)
    dashboard = VisualizationDashboard(surface, AsyncioFrameScheduler(), settings)
    population = RandomWalkPopulation(args.organisms, args.width, args.height, args.seed)

    window_name = "Trailscope"
    cv2.namedWindow(window_name, cv2.WINDOW_NORMAL)
    cv2.resizeWindow(window_name, args.width, args.height)

    tick_interval = 1.0 / args.ticks_per_second
    dashboard.start()

    try:
        while True:
            dashboard.update_visualization(population.step())
            cv2.imshow(window_name, surface.image)

            key = cv2.waitKey(1) & 0xFF
            if key == ord("q") or key == 27:
                break
            elif key == ord("t"):
                dashboard.config.set_trails_visible(not dashboard.config.trails_visible)
                logger.info(f"trails: {'ON' if dashboard.config.trails_visible else 'OFF'}")
            elif key == ord("h"):
                dashboard.config.set_heatmap_visible(not dashboard.config.heatmap_visible)
                logger.info(f"heatmap: {'ON' if dashboard.config.heatmap_visible else 'OFF'}")
            elif key == ord("a"):
                logger.info(f"analysis: {dashboard.get_movement_analysis().to_dict()}")
                logger.info(f"stats: {dashboard.stats().to_dict()}, "
                            f"memory~{dashboard.estimate_memory_mb():.2f}MB")
            elif key in (ord("+"), ord("=")):
                dashboard.store.set_max_trail_length(dashboard.config.max_trail_length + 10)
            elif key == ord("-"):
                try:
                    dashboard.store.set_max_trail_length(dashboard.config.max_trail_length - 10)
                except ValidationError as e:
                    logger.warning(f"Trail length unchanged: {e}")

            await asyncio.sleep(tick_interval)
    finally:
        dashboard.close()
        cv2.destroyAllWindows()


def main() -> None:
    parser = argparse.ArgumentParser(description="Trailscope demo viewer")
    parser.add_argument("--config", default=None, help="Path to YAML config")
    parser.add_argument("--organisms", type=int, default=30, help="Population size")
    parser.add_argument("--width", type=int, default=800, help="Canvas width")
    parser.add_argument("--height", type=int, default=600, help="Canvas height")
    parser.add_argument("--ticks-per-second", type=float, default=20.0,
                        help="Simulation ticks per second")
    parser.add_argument("--seed", type=int, default=7, help="Random seed")
    args = parser.parse_args()

    try:
        asyncio.run(run_viewer(args))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
