from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from ..db.database import get_sessionmaker
from ..db.models import Project, TicketSource
from ..schemas import ProjectIn, ProjectOut, TicketSourceIn, TicketSourceOut
from .deps import current_user, current_admin

router = APIRouter(tags=["projects"])

@router.get("/projects", response_model=List[ProjectOut])
async def list_projects(_=Depends(current_user)):
    Session = get_sessionmaker()
    async with Session() as session:
        res = await session.execute(select(Project).order_by(Project.name.asc()))
        return res.scalars().all()

@router.post("/projects", response_model=ProjectOut)
async def create_project(payload: ProjectIn, _=Depends(current_admin)):
    Session = get_sessionmaker()
    async with Session() as session:
        p = Project(name=payload.name.strip(), product=payload.product.strip(), country=payload.country.strip())
        session.add(p)
        await session.commit()
        return p

@router.get("/sources", response_model=List[TicketSourceOut])
async def list_sources(_=Depends(current_user)):
    Session = get_sessionmaker()
    async with Session() as session:
        res = await session.execute(select(TicketSource).order_by(TicketSource.name.asc()))
        return res.scalars().all()

@router.post("/sources", response_model=TicketSourceOut)
async def create_source(payload: TicketSourceIn, _=Depends(current_user)):
    Session = get_sessionmaker()
    async with Session() as session:
        s = TicketSource(name=payload.name.strip(), description=payload.description)
        session.add(s)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            raise HTTPException(status_code=400, detail="Ticket source already exists")
        return s
