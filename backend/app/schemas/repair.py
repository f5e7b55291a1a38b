"""Pydantic schemas for repair reports."""
from datetime import date, datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, Field

RepairStatus = Literal["未查修", "已查修"]


class RepairReportRequest(BaseModel):
    """Report a fault on a registered light."""
    light_id: str = Field(..., alias="lightId")
    fault: str = ""
    # Defaults to the time the report is received
    reported_at: Optional[datetime] = Field(None, alias="reportedAt")

    class Config:
        populate_by_name = True


class RepairPhotoPairRequest(BaseModel):
    """Base64 photos (raw or data: URL) taken before and after the repair."""
    pre: Optional[str] = None
    post: Optional[str] = None


class RepairCompletionRequest(BaseModel):
    """Close a pending repair report."""
    repaired_on: date = Field(..., alias="repairedOn")
    note: Optional[str] = None
    photos: List[RepairPhotoPairRequest] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class RepairPhotoResponse(BaseModel):
    pre_url: Optional[str] = Field(None, alias="preUrl")
    post_url: Optional[str] = Field(None, alias="postUrl")

    class Config:
        populate_by_name = True


class RepairResponse(BaseModel):
    """Repair report as listed to field crews."""
    id: int
    light_id: str = Field(..., alias="lightId")
    # e.g. "路燈編號 01050-已報修10/18"
    label: str
    reported_at: datetime = Field(..., alias="reportedAt")
    fault: str
    status: RepairStatus
    repaired_on: Optional[date] = Field(None, alias="repairedOn")
    note: Optional[str] = None
    photos: List[RepairPhotoResponse] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class RepairListResponse(BaseModel):
    items: List[RepairResponse]
    total: int
