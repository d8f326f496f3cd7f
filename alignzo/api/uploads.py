import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile
from sqlalchemy import select, update
from ..core.config import get_settings
from ..core.errors import NotFoundError
from ..db.database import get_sessionmaker
from ..db.models import TicketSource, UploadSession, UploadedTicket
from ..schemas import UploadSessionOut, UploadedTicketOut
from ..services.csv_tickets import build_sample_csv
from ..services.ticket_import import import_tickets, validate_upload_file
from .deps import current_user

router = APIRouter(tags=["uploads"])

logger = logging.getLogger(__name__)

SAMPLE_FILENAME = "ticket_upload_sample.csv"

@router.post("/uploads", response_model=UploadSessionOut)
async def upload_tickets(
    file: UploadFile = File(...),
    source_id: int = Form(...),
    user=Depends(current_user),
):
    settings = get_settings()
    content = await file.read()
    validate_upload_file(file.filename, file.content_type, len(content), settings.upload_max_bytes)
    Session = get_sessionmaker()
    async with Session() as session:
        if await session.get(TicketSource, source_id) is None:
            raise HTTPException(status_code=404, detail="Ticket source not found")
        result = await import_tickets(
            session,
            user_email=user.email,
            source_id=source_id,
            file_name=file.filename,
            content=content,
            batch_size=settings.upload_batch_size,
            tz_name=settings.timezone,
        )
        return await session.get(UploadSession, result.session_id)

@router.get("/uploads/sample.csv")
async def download_sample(_=Depends(current_user)):
    return Response(
        content=build_sample_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{SAMPLE_FILENAME}"'},
    )

@router.get("/uploads", response_model=List[UploadSessionOut])
async def list_upload_sessions(limit: int = Query(50, ge=1, le=500), user=Depends(current_user)):
    Session = get_sessionmaker()
    async with Session() as session:
        res = await session.execute(
            select(UploadSession)
            .where(UploadSession.user_email == user.email)
            .order_by(UploadSession.created_at.desc(), UploadSession.id.desc())
            .limit(limit)
        )
        return res.scalars().all()

async def _own_session(session, upload_id: int, email: str) -> UploadSession:
    upload = await session.get(UploadSession, upload_id)
    if not upload or upload.user_email != email:
        raise NotFoundError("Upload session not found")
    return upload

@router.get("/uploads/{upload_id}", response_model=UploadSessionOut)
async def get_upload_session(upload_id: int, user=Depends(current_user)):
    Session = get_sessionmaker()
    async with Session() as session:
        return await _own_session(session, upload_id, user.email)

@router.delete("/uploads/{upload_id}")
async def delete_upload_session(upload_id: int, user=Depends(current_user)):
    Session = get_sessionmaker()
    async with Session() as session:
        upload = await _own_session(session, upload_id, user.email)
        await session.execute(
            update(UploadedTicket)
            .where(UploadedTicket.upload_session_id == upload_id)
            .values(upload_session_id=None)
        )
        await session.delete(upload)
        await session.commit()
        logger.info("Upload session %s deleted by %s", upload_id, user.email)
        return {"ok": True}

@router.get("/uploaded-tickets", response_model=List[UploadedTicketOut])
async def list_uploaded_tickets(
    project_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    mapped_user_email: Optional[str] = Query(None),
    upload_session_id: Optional[int] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    _=Depends(current_user),
):
    Session = get_sessionmaker()
    async with Session() as session:
        stmt = select(UploadedTicket)
        if project_id is not None:
            stmt = stmt.where(UploadedTicket.project_id == project_id)
        if status:
            stmt = stmt.where(UploadedTicket.status == status)
        if mapped_user_email:
            stmt = stmt.where(UploadedTicket.mapped_user_email == mapped_user_email)
        if upload_session_id is not None:
            stmt = stmt.where(UploadedTicket.upload_session_id == upload_session_id)
        res = await session.execute(stmt.order_by(UploadedTicket.updated_at.desc(), UploadedTicket.id.desc()).limit(limit))
        return res.scalars().all()
