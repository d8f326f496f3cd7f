import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from ..db.database import get_sessionmaker
from ..db.models import TicketUploadMapping, TicketUploadUserMapping, TicketMasterMapping
from ..schemas import MappingIn, MappingOut, MasterMappingIn, MasterMappingOut
from .deps import current_user

router = APIRouter(tags=["mappings"])

logger = logging.getLogger(__name__)

def _user_mappings(payload: MappingIn) -> List[TicketUploadUserMapping]:
    return [
        TicketUploadUserMapping(
            user_email=um.user_email.strip(),
            source_assignee_field=um.source_assignee_field,
            source_assignee_value=um.source_assignee_value.strip(),
        )
        for um in payload.user_mappings
    ]

async def _load_mapping(session, mapping_id: int) -> TicketUploadMapping:
    res = await session.execute(select(TicketUploadMapping).where(TicketUploadMapping.id == mapping_id))
    m = res.scalar_one_or_none()
    if not m:
        raise HTTPException(status_code=404, detail="Mapping not found")
    return m

@router.get("/mappings", response_model=List[MappingOut])
async def list_mappings(source_id: int = Query(...), _=Depends(current_user)):
    Session = get_sessionmaker()
    async with Session() as session:
        res = await session.execute(
            select(TicketUploadMapping)
            .where(TicketUploadMapping.source_id == source_id)
            .order_by(TicketUploadMapping.created_at.desc(), TicketUploadMapping.id.desc())
        )
        return res.scalars().all()

@router.post("/mappings", response_model=MappingOut)
async def create_mapping(payload: MappingIn, _=Depends(current_user)):
    Session = get_sessionmaker()
    async with Session() as session:
        m = TicketUploadMapping(
            source_id=payload.source_id,
            project_id=payload.project_id,
            source_organization_field=payload.source_organization_field,
            source_organization_value=payload.source_organization_value.strip(),
            user_mappings=_user_mappings(payload),
        )
        session.add(m)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            raise HTTPException(status_code=400, detail="A mapping for this organization and project already exists")
        return await _load_mapping(session, m.id)

@router.put("/mappings/{mapping_id}", response_model=MappingOut)
async def update_mapping(mapping_id: int, payload: MappingIn, _=Depends(current_user)):
    Session = get_sessionmaker()
    async with Session() as session:
        m = await _load_mapping(session, mapping_id)
        m.source_id = payload.source_id
        m.project_id = payload.project_id
        m.source_organization_field = payload.source_organization_field
        m.source_organization_value = payload.source_organization_value.strip()
        # user mappings are replaced wholesale; orphans go with delete-orphan
        m.user_mappings = _user_mappings(payload)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            raise HTTPException(status_code=400, detail="A mapping for this organization and project already exists")
        session.expunge(m)
        return await _load_mapping(session, mapping_id)

@router.delete("/mappings/{mapping_id}")
async def delete_mapping(mapping_id: int, _=Depends(current_user)):
    Session = get_sessionmaker()
    async with Session() as session:
        m = await _load_mapping(session, mapping_id)
        await session.delete(m)
        await session.commit()
        logger.info("Mapping %s deleted", mapping_id)
        return {"ok": True}

@router.get("/master-mappings", response_model=List[MasterMappingOut])
async def list_master_mappings(
    source_id: int = Query(...),
    q: Optional[str] = Query(None, description="Search assignee or email"),
    _=Depends(current_user),
):
    Session = get_sessionmaker()
    async with Session() as session:
        stmt = select(TicketMasterMapping).where(TicketMasterMapping.source_id == source_id)
        if q and q.strip():
            like = f"%{q.strip()}%"
            stmt = stmt.where(
                TicketMasterMapping.source_assignee_value.ilike(like)
                | TicketMasterMapping.mapped_user_email.ilike(like)
            )
        res = await session.execute(stmt.order_by(TicketMasterMapping.source_assignee_value.asc()))
        return res.scalars().all()

@router.post("/master-mappings", response_model=MasterMappingOut)
async def create_master_mapping(payload: MasterMappingIn, _=Depends(current_user)):
    Session = get_sessionmaker()
    async with Session() as session:
        mm = TicketMasterMapping(
            source_id=payload.source_id,
            source_assignee_value=payload.source_assignee_value.strip(),
            mapped_user_email=payload.mapped_user_email.strip(),
            is_active=payload.is_active,
        )
        session.add(mm)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            raise HTTPException(status_code=400, detail="This assignee is already mapped for the source")
        return mm

@router.post("/master-mappings/{mm_id}/toggle", response_model=MasterMappingOut)
async def toggle_master_mapping(mm_id: int, _=Depends(current_user)):
    Session = get_sessionmaker()
    async with Session() as session:
        mm = await session.get(TicketMasterMapping, mm_id)
        if not mm:
            raise HTTPException(status_code=404, detail="Master mapping not found")
        mm.is_active = not mm.is_active
        await session.commit()
        return mm

@router.delete("/master-mappings/{mm_id}")
async def delete_master_mapping(mm_id: int, _=Depends(current_user)):
    Session = get_sessionmaker()
    async with Session() as session:
        mm = await session.get(TicketMasterMapping, mm_id)
        if not mm:
            raise HTTPException(status_code=404, detail="Master mapping not found")
        await session.delete(mm)
        await session.commit()
        return {"ok": True}
