"""Repair report API endpoints."""
import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from app.api.v1.lights import ERROR_RESPONSES
from app.schemas.repair import (
    RepairCompletionRequest,
    RepairListResponse,
    RepairPhotoResponse,
    RepairReportRequest,
    RepairResponse,
    RepairStatus,
)
from app.services.light_queries import get_repair_or_404
from app.services.reconciler import RecordReconciler, get_reconciler
from app.services.record_store import get_record_store
from app.services.record_store_base import RecordStore, RepairRecord
from app.services.repairs import RepairTracker, repair_label

router = APIRouter(prefix="/repairs", tags=["Repairs"])


def get_repair_tracker(reconciler: RecordReconciler = Depends(get_reconciler)) -> RepairTracker:
    return RepairTracker(reconciler)


def to_repair_response(record: RepairRecord) -> RepairResponse:
    return RepairResponse(
        id=record.id,
        light_id=record.light_id,
        label=repair_label(record),
        reported_at=record.reported_at,
        fault=record.fault,
        status=record.status,
        repaired_on=record.repaired_on,
        note=record.repair_note,
        photos=[
            RepairPhotoResponse(pre_url=pair.pre_url, post_url=pair.post_url)
            for pair in record.photos
        ],
    )


@router.get("", response_model=RepairListResponse)
async def list_repairs(
    status_filter: Optional[RepairStatus] = Query(None, alias="status", description="未查修 or 已查修"),
    store: RecordStore = Depends(get_record_store),
):
    """Repair reports in the order they were filed."""
    records = await asyncio.to_thread(store.list_repairs, status_filter)
    items = [to_repair_response(record) for record in records]
    return RepairListResponse(items=items, total=len(items))


@router.post(
    "",
    response_model=RepairResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def report_fault(
    request: Request,
    payload: RepairReportRequest,
    tracker: RepairTracker = Depends(get_repair_tracker),
):
    """File a fault report for a registered light."""
    actor = request.client.host if request.client else None
    record = await asyncio.to_thread(tracker.report_fault, payload, actor=actor)
    return to_repair_response(record)


@router.get("/{report_id}", response_model=RepairResponse, responses=ERROR_RESPONSES)
async def get_repair(
    report_id: int,
    store: RecordStore = Depends(get_record_store),
):
    """Get one repair report."""
    record = await asyncio.to_thread(get_repair_or_404, store, report_id)
    return to_repair_response(record)


@router.post(
    "/{report_id}/complete",
    response_model=RepairResponse,
    responses=ERROR_RESPONSES,
)
async def complete_repair(
    request: Request,
    report_id: int,
    payload: RepairCompletionRequest,
    tracker: RepairTracker = Depends(get_repair_tracker),
):
    """
    Mark a pending report as repaired.

    - **repairedOn**: date the crew finished
    - **note**: e.g. 外線故障，已通知台電處理
    - **photos**: before/after photo pairs, base64 encoded
    """
    actor = request.client.host if request.client else None
    record = await asyncio.to_thread(tracker.complete_repair, report_id, payload, actor=actor)
    return to_repair_response(record)
