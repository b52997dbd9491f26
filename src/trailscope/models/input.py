"""
Input Schema
============

Pydantic model for position updates supplied by the simulation layer.

Input Contract (per organism, per tick):
    {
        "id": "organism-17",
        "x": 412.5,
        "y": 88.0,
        "kind": "herbivore"
    }

Example:
    from trailscope.models.input import PositionUpdate

    update = PositionUpdate.model_validate({"id": "a", "x": 1, "y": 2})
"""

from pydantic import BaseModel, Field


class PositionUpdate(BaseModel):
    """
    One entity position for one tick.

    Attributes:
        id: Stable entity identifier
        x: Horizontal surface coordinate
        y: Vertical surface coordinate
        kind: Category label (organism type)
    """

    id: str = Field(..., min_length=1, description="Entity identifier")
    x: float = Field(..., allow_inf_nan=False, description="X coordinate")
    y: float = Field(..., allow_inf_nan=False, description="Y coordinate")
    kind: str = Field(default="unknown", description="Category label")

    model_config = {
        "json_schema_extra": {
            "example": {"id": "organism-17", "x": 412.5, "y": 88.0, "kind": "herbivore"}
        }
    }
