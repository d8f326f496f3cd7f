from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from ..core.errors import NotFoundError
from ..db.database import get_sessionmaker
from ..db.models import WorkLog
from ..schemas import WorkLogIn, WorkLogOut
from ..services.timers import as_utc, create_manual_work_log
from .deps import current_user

router = APIRouter(prefix="/work-logs", tags=["work-logs"])

@router.post("", response_model=WorkLogOut)
async def create_work_log(payload: WorkLogIn, user=Depends(current_user)):
    Session = get_sessionmaker()
    async with Session() as session:
        return await create_manual_work_log(
            session,
            user_email=user.email,
            project_id=payload.project_id,
            ticket_id=payload.ticket_id,
            task_detail=payload.task_detail,
            start_time=payload.start_time,
            end_time=payload.end_time,
            categories=payload.dynamic_category_selections,
        )

@router.get("", response_model=List[WorkLogOut])
async def list_work_logs(
    project_id: Optional[int] = Query(None),
    start: Optional[datetime] = Query(None, description="Logs starting at or after"),
    end: Optional[datetime] = Query(None, description="Logs starting before"),
    limit: int = Query(200, ge=1, le=1000),
    user=Depends(current_user),
):
    Session = get_sessionmaker()
    async with Session() as session:
        stmt = select(WorkLog).where(WorkLog.user_email == user.email)
        if project_id is not None:
            stmt = stmt.where(WorkLog.project_id == project_id)
        # stored values are UTC wall-clock; compare bounds on the same footing
        if start is not None:
            stmt = stmt.where(WorkLog.start_time >= as_utc(start))
        if end is not None:
            stmt = stmt.where(WorkLog.start_time < as_utc(end))
        res = await session.execute(stmt.order_by(WorkLog.start_time.desc(), WorkLog.id.desc()).limit(limit))
        return res.scalars().all()

@router.delete("/{log_id}")
async def delete_work_log(log_id: int, user=Depends(current_user)):
    Session = get_sessionmaker()
    async with Session() as session:
        log = await session.get(WorkLog, log_id)
        if not log or log.user_email != user.email:
            raise NotFoundError("Work log not found")
        await session.delete(log)
        await session.commit()
        return {"ok": True}
