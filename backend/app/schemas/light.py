"""Pydantic schemas for light mutations and listings."""
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union
from pydantic import BaseModel, Field, TypeAdapter

# Coordinates arrive as text from the sheet-era clients and as numbers from
# newer ones; both are parsed by the reconciler.
CoordinateValue = Optional[Union[float, str]]


class MutationBase(BaseModel):
    """Fields shared by every mutation request."""
    note: Optional[str] = None
    # Base64 photo, raw or as a data: URL
    attachment: Optional[str] = None

    class Config:
        populate_by_name = True


class NewLightRequest(MutationBase):
    """Create a light; the id is allocated from the village when omitted."""
    action: Literal["new"]
    id: Optional[str] = None
    lat: CoordinateValue = None
    lng: CoordinateValue = None
    village_code: Optional[str] = Field(None, alias="villageCode")


class MoveLightBase(MutationBase):
    id: str
    lat: CoordinateValue = None
    lng: CoordinateValue = None
    before_lat: CoordinateValue = Field(None, alias="beforeLat")
    before_lng: CoordinateValue = Field(None, alias="beforeLng")
    # Insert the light when the id is unknown instead of failing
    upsert: bool = False


class UpdateLightRequest(MoveLightBase):
    action: Literal["update"]


class RestoreLightRequest(MoveLightBase):
    """Move a light back to coordinates taken from an earlier history entry."""
    action: Literal["restore"]


class DeleteLightRequest(MutationBase):
    action: Literal["deleteLight"]
    id: str


class HistoryKey(BaseModel):
    """Identifies history entries by light id and timestamp."""
    id: str
    time: str


class DeleteHistoryRequest(BaseModel):
    action: Literal["delete"]
    id: str
    time: str


class BatchDeleteHistoryRequest(BaseModel):
    action: Literal["batchDelete"]
    items: List[HistoryKey] = Field(..., min_length=1)


MutationRequest = Union[
    NewLightRequest,
    UpdateLightRequest,
    RestoreLightRequest,
    DeleteLightRequest,
    DeleteHistoryRequest,
    BatchDeleteHistoryRequest,
]

mutation_request_adapter = TypeAdapter(
    Annotated[MutationRequest, Field(discriminator="action")]
)


class MutationResponse(BaseModel):
    """Successful mutation result."""
    status: Literal["success"] = "success"
    action: str
    id: Optional[str] = None
    # Number of history entries removed (delete / batchDelete)
    removed: Optional[int] = None


class ErrorResponse(BaseModel):
    status: Literal["error"] = "error"
    error_code: str = Field(..., alias="errorCode")
    message: str

    class Config:
        populate_by_name = True


class LightResponse(BaseModel):
    """Current-state light row with its repair status."""
    id: str
    lat: float
    lng: float
    village_code: str = Field(..., alias="villageCode")
    village_name: Optional[str] = Field(None, alias="villageName")
    map_url: str = Field(..., alias="mapUrl")
    # Set while a repair report for the light is pending (未查修)
    is_unrepaired: bool = Field(False, alias="isUnrepaired")
    fault: str = ""
    report_date: Optional[datetime] = Field(None, alias="reportDate")

    class Config:
        populate_by_name = True


class LightListResponse(BaseModel):
    items: List[LightResponse]
    total: int


class NearestLightResponse(BaseModel):
    light: LightResponse
    distance_m: float = Field(..., alias="distanceM")

    class Config:
        populate_by_name = True


class NextIdResponse(BaseModel):
    village_code: str = Field(..., alias="villageCode")
    id: str

    class Config:
        populate_by_name = True


class HistoryEntryResponse(BaseModel):
    """History row, using the field names the map client reads."""
    time: str
    light_id: str = Field(..., alias="lightId")
    before_lat: str = Field("", alias="beforeLat")
    before_lng: str = Field("", alias="beforeLng")
    after_lat: str = Field("", alias="afterLat")
    after_lng: str = Field("", alias="afterLng")
    action_kind: str = Field(..., alias="actionKind")
    note: Optional[str] = None
    attachment_url: Optional[str] = Field(None, alias="attachmentUrl")

    class Config:
        populate_by_name = True


class HistoryListResponse(BaseModel):
    items: List[HistoryEntryResponse]
    total: int
