"""Repair tracking for reported light faults.

A report starts as 未查修 (pending). Completing it records the repair
date, a note and before/after photo pairs, and marks it 已查修. Both
steps run through the reconciler's lock and store transaction, so they
never interleave with light mutations.
"""
from typing import Optional

from app.schemas.repair import RepairCompletionRequest, RepairReportRequest
from app.services.errors import InvalidAttachment, NotFound, RepairAlreadyClosed
from app.services.light_id import normalize_light_id
from app.services.reconciler import MutationContext, RecordReconciler
from app.services.record_store_base import (
    REPAIR_DONE,
    REPAIR_PENDING,
    RepairPhotoPair,
    RepairRecord,
)
from app.utils.audit import log_audit_event
from app.utils.formatting import format_file_timestamp, to_local_naive


def repair_label(record: RepairRecord) -> str:
    """Short description used in the crew's pick list."""
    return f"路燈編號 {record.light_id}-已報修{record.reported_at:%m/%d}"


class RepairTracker:
    """Report faults and record completed repairs."""

    def __init__(self, reconciler: RecordReconciler):
        self.reconciler = reconciler
        self.store = reconciler.store

    def report_fault(
        self, request: RepairReportRequest, *, actor: Optional[str] = None
    ) -> RepairRecord:
        light_id = normalize_light_id(request.light_id)

        def operation(context: MutationContext) -> RepairRecord:
            if not light_id or self.store.get_light(light_id) is None:
                raise NotFound(f"Light {light_id} not found")
            return self.store.insert_repair(
                RepairRecord(
                    light_id=light_id,
                    reported_at=to_local_naive(request.reported_at or context.moment),
                    fault=request.fault.strip(),
                )
            )

        record, _ = self.reconciler.run_locked(operation)
        log_audit_event(
            "repair_reported",
            actor=actor,
            details={"repair_id": record.id, "light_id": light_id, "fault": record.fault},
        )
        return record

    def complete_repair(
        self,
        report_id: int,
        request: RepairCompletionRequest,
        *,
        actor: Optional[str] = None,
    ) -> RepairRecord:
        def operation(context: MutationContext) -> RepairRecord:
            record = self.store.get_repair(report_id)
            if record is None:
                raise NotFound(f"Repair report {report_id} not found")
            if record.status != REPAIR_PENDING:
                raise RepairAlreadyClosed(
                    f"Repair report {report_id} was already closed on {record.repaired_on}"
                )

            record.photos = self._store_photos(record, request, context)
            record.status = REPAIR_DONE
            record.repaired_on = request.repaired_on
            record.repair_note = request.note
            self.store.update_repair(record)
            return record

        record, _ = self.reconciler.run_locked(operation)
        log_audit_event(
            "repair_completed",
            actor=actor,
            details={
                "repair_id": record.id,
                "light_id": record.light_id,
                "repaired_on": record.repaired_on,
                "photos": len(record.photos),
            },
        )
        return record

    def _store_photos(
        self,
        record: RepairRecord,
        request: RepairCompletionRequest,
        context: MutationContext,
    ) -> list[RepairPhotoPair]:
        prefix = f"repairs/{format_file_timestamp(context.moment)}_{record.light_id}"
        pairs = []
        for group, photos in enumerate(request.photos, start=1):
            if not photos.pre and not photos.post:
                raise InvalidAttachment(f"Photo group {group} has no photo")
            pair = RepairPhotoPair()
            if photos.pre:
                pair.pre_url = self.reconciler.store_attachment(
                    photos.pre, f"{prefix}_{group}_pre.jpg", context
                )
            if photos.post:
                pair.post_url = self.reconciler.store_attachment(
                    photos.post, f"{prefix}_{group}_post.jpg", context
                )
            pairs.append(pair)
        return pairs
