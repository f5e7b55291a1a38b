"""Pydantic schemas for villages."""
from typing import List
from pydantic import BaseModel, Field


class VillageResponse(BaseModel):
    name: str
    code: str
    has_boundary: bool = Field(False, alias="hasBoundary")

    class Config:
        populate_by_name = True


class VillageListResponse(BaseModel):
    items: List[VillageResponse]
    total: int


class VillageResolveResponse(BaseModel):
    """Village a coordinate falls in."""
    lat: float
    lng: float
    name: str
    code: str
