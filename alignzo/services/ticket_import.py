from __future__ import annotations
import logging
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import TicketImportError, ValidationError
from ..db.models import (
    TicketMasterMapping,
    TicketUploadMapping,
    UploadedTicket,
    UploadSession,
)
from .csv_tickets import (
    TICKET_FIELDS,
    iter_data_rows,
    map_row,
    validate_headers,
)

logger = logging.getLogger(__name__)

CSV_CONTENT_TYPES = {"text/csv", "application/csv", "application/vnd.ms-excel", "text/plain"}

ProgressCallback = Callable[["ImportProgress"], Awaitable[None] | None]


@dataclass
class ImportProgress:
    current: int
    total: int
    status: str


@dataclass
class ImportResult:
    session_id: int
    status: str
    total_rows: int
    processed_rows: int
    inserted_rows: int
    updated_rows: int
    skipped_rows: int


def validate_upload_file(filename: Optional[str], content_type: Optional[str], size: int, max_bytes: int) -> None:
    """Reject a file before anything is read into the pipeline."""
    if not filename:
        raise ValidationError("Please select a CSV file to upload")
    if size <= 0:
        raise ValidationError("The selected file is empty")
    if size > max_bytes:
        raise ValidationError(f"File is too large: {size} bytes (limit {max_bytes} bytes)")
    is_csv_name = PurePath(filename).suffix.lower() == ".csv"
    ctype = (content_type or "").split(";")[0].strip().lower()
    if not is_csv_name and ctype not in {"text/csv", "application/csv"}:
        raise ValidationError("Only CSV files are supported")
    if is_csv_name and ctype and ctype not in CSV_CONTENT_TYPES and ctype != "application/octet-stream":
        raise ValidationError("Only CSV files are supported")


def decode_csv(content: bytes) -> str:
    return content.decode("utf-8-sig", errors="replace")


class MappingResolver:
    """Resolves a row's project mapping and assignee email for one source."""

    def __init__(self, mappings: List[TicketUploadMapping], masters: List[TicketMasterMapping]):
        self._by_org: Dict[str, TicketUploadMapping] = {}
        for m in mappings:
            self._by_org.setdefault((m.source_organization_value or "").strip(), m)
        self._master: Dict[str, str] = {
            (mm.source_assignee_value or "").strip(): mm.mapped_user_email
            for mm in masters if mm.is_active
        }

    @classmethod
    async def load(cls, session: AsyncSession, source_id: int) -> "MappingResolver":
        mappings = (await session.execute(
            select(TicketUploadMapping).where(TicketUploadMapping.source_id == source_id)
        )).scalars().all()
        masters = (await session.execute(
            select(TicketMasterMapping).where(TicketMasterMapping.source_id == source_id)
        )).scalars().all()
        return cls(list(mappings), list(masters))

    def mapping_for(self, organization: Optional[str]) -> Optional[TicketUploadMapping]:
        if not organization:
            return None
        return self._by_org.get(organization.strip())

    def user_for(self, mapping: TicketUploadMapping, assignee: Optional[str]) -> Optional[str]:
        if not assignee:
            return None
        key = assignee.strip()
        if key in self._master:
            return self._master[key]
        for um in mapping.user_mappings:
            if (um.source_assignee_value or "").strip() == key:
                return um.user_email
        return None


def _chunks(rows: List[List[str]], size: int):
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


async def _notify(cb: Optional[ProgressCallback], progress: ImportProgress) -> None:
    if cb is None:
        return
    res = cb(progress)
    if res is not None:
        await res


async def write_batch(session: AsyncSession, records: List[Dict[str, Any]]) -> tuple[int, int]:
    """Upsert one batch of ticket records by incident_id. Returns (inserted, updated)."""
    by_incident: Dict[str, Dict[str, Any]] = {}
    for rec in records:
        by_incident[rec["incident_id"]] = rec  # last row wins
    if not by_incident:
        return 0, 0

    existing = (await session.execute(
        select(UploadedTicket).where(UploadedTicket.incident_id.in_(list(by_incident)))
    )).scalars().all()
    existing_by_id = {t.incident_id: t for t in existing}

    inserted = updated = 0
    for incident_id, rec in by_incident.items():
        ticket = existing_by_id.get(incident_id)
        if ticket is None:
            session.add(UploadedTicket(**rec))
            inserted += 1
        else:
            for k, v in rec.items():
                setattr(ticket, k, v)
            updated += 1
    await session.flush()
    return inserted, updated


async def import_tickets(
    session: AsyncSession,
    *,
    user_email: str,
    source_id: int,
    file_name: str,
    content: bytes,
    batch_size: int = 50,
    tz_name: str = "UTC",
    on_progress: Optional[ProgressCallback] = None,
) -> ImportResult:
    """Run one CSV upload end to end.

    Header problems raise before anything is written. Rows whose organization
    has no mapping, or that carry no incident id, are dropped and counted in
    `skipped_rows`. Batches run strictly in order, each committed together with
    the session counters. A failure marks the session `failed` and raises
    TicketImportError; batches committed before it stay in place.
    """
    text = decode_csv(content)
    lines = text.splitlines()
    if not lines or not lines[0].strip():
        raise ValidationError("CSV file is empty")
    headers = validate_headers(lines[0])
    rows = list(iter_data_rows(text))

    upload = UploadSession(
        user_email=user_email,
        source_id=source_id,
        file_name=file_name,
        total_rows=len(rows),
        processed_rows=0,
        skipped_rows=0,
        inserted_rows=0,
        updated_rows=0,
        status="processing",
    )
    session.add(upload)
    await session.commit()
    upload_id = upload.id
    logger.info("Upload session %s created: file=%s rows=%s user=%s", upload_id, file_name, len(rows), user_email)
    await _notify(on_progress, ImportProgress(0, len(rows), "processing"))

    try:
        resolver = await MappingResolver.load(session, source_id)
        for batch in _chunks(rows, batch_size):
            records: List[Dict[str, Any]] = []
            skipped = 0
            for values in batch:
                row = map_row(headers, values, tz_name)
                mapping = resolver.mapping_for(row.get("assigned_support_organization"))
                if mapping is None or not row.get("incident_id"):
                    skipped += 1
                    continue
                rec = {k: v for k, v in row.items() if k in TICKET_FIELDS}
                rec.update(
                    source_id=source_id,
                    mapping_id=mapping.id,
                    project_id=mapping.project_id,
                    upload_session_id=upload_id,
                    mapped_user_email=resolver.user_for(mapping, row.get("assignee")),
                )
                records.append(rec)

            inserted, updated = await write_batch(session, records)
            upload.processed_rows += len(batch)
            upload.inserted_rows += inserted
            upload.updated_rows += updated
            upload.skipped_rows += skipped
            await session.commit()
            logger.info(
                "Upload session %s: %s/%s rows processed (inserted=%s updated=%s skipped=%s)",
                upload_id, upload.processed_rows, upload.total_rows, inserted, updated, skipped,
            )
            await _notify(on_progress, ImportProgress(upload.processed_rows, upload.total_rows, "processing"))

        upload.status = "completed"
        await session.commit()
    except Exception as e:
        logger.exception("Upload session %s failed", upload_id)
        await session.rollback()
        message = str(e) or e.__class__.__name__
        failed = await session.get(UploadSession, upload_id)
        if failed is not None:
            failed.status = "failed"
            failed.error_message = message
            await session.commit()
        await _notify(on_progress, ImportProgress(failed.processed_rows if failed else 0, len(rows), "failed"))
        raise TicketImportError(f"Upload failed: {message}", session_id=upload_id) from e

    logger.info("Upload session %s completed", upload_id)
    await _notify(on_progress, ImportProgress(upload.processed_rows, upload.total_rows, "completed"))
    return ImportResult(
        session_id=upload_id,
        status=upload.status,
        total_rows=upload.total_rows,
        processed_rows=upload.processed_rows,
        inserted_rows=upload.inserted_rows,
        updated_rows=upload.updated_rows,
        skipped_rows=upload.skipped_rows,
    )
