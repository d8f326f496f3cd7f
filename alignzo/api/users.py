import logging
from typing import List, Literal, Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from ..core.errors import NotFoundError
from ..core.security import verify_password, hash_password
from ..db.database import get_sessionmaker
from ..db.models import User
from .deps import current_user, current_admin

router = APIRouter(prefix="/users", tags=["users"])

logger = logging.getLogger(__name__)

# stored lowercased; timers, work logs and uploads are keyed on it
EMAIL_PATTERN = r"^\s*[^@\s]+@[^@\s]+\s*$"

Role = Literal["admin", "user"]

class ChangePasswordIn(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8)

class UserItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    email: str
    name: Optional[str] = None
    role: str

class AdminCreateUserIn(BaseModel):
    email: str = Field(pattern=EMAIL_PATTERN)
    password: str = Field(min_length=8)
    name: Optional[str] = None
    role: Role = "user"

class AdminUpdateUserIn(BaseModel):
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN)
    name: Optional[str] = None
    role: Optional[Role] = None
    password: Optional[str] = Field(default=None, min_length=8)

async def _admin_count(session) -> int:
    res = await session.execute(select(func.count()).select_from(User).where(User.role == "admin"))
    return res.scalar_one() or 0

@router.post("/me/password")
async def change_my_password(payload: ChangePasswordIn, me=Depends(current_user)):
    Session = get_sessionmaker()
    async with Session() as session:
        user = await session.get(User, me.id)
        if not verify_password(payload.current_password, user.password_hash):
            raise HTTPException(status_code=400, detail="Current password is incorrect")
        user.password_hash = hash_password(payload.new_password)
        await session.commit()
        logger.info("Password changed for %s", user.email)
        return {"ok": True}

@router.get("/admin", response_model=List[UserItem])
async def list_users(_=Depends(current_admin)):
    Session = get_sessionmaker()
    async with Session() as session:
        res = await session.execute(select(User).order_by(User.id.asc()))
        return res.scalars().all()

@router.post("/admin", response_model=UserItem)
async def create_user(payload: AdminCreateUserIn, admin=Depends(current_admin)):
    Session = get_sessionmaker()
    async with Session() as session:
        u = User(
            email=payload.email.strip().lower(),
            name=payload.name or "",
            role=payload.role,
            password_hash=hash_password(payload.password),
        )
        session.add(u)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            raise HTTPException(status_code=400, detail="Email already exists")
        logger.info("User %s (%s) created by %s", u.email, u.role, admin.email)
        return u

@router.patch("/admin/{user_id}", response_model=UserItem)
async def update_user(user_id: int, payload: AdminUpdateUserIn, admin=Depends(current_admin)):
    Session = get_sessionmaker()
    async with Session() as session:
        u = await session.get(User, user_id)
        if not u:
            raise NotFoundError("User not found")

        if payload.role and u.role == "admin" and payload.role != "admin":
            if await _admin_count(session) <= 1:
                raise HTTPException(status_code=400, detail="Cannot demote the last admin")

        if payload.email is not None:
            u.email = payload.email.strip().lower()
        if payload.name is not None:
            u.name = payload.name
        if payload.role is not None:
            u.role = payload.role
        if payload.password:
            u.password_hash = hash_password(payload.password)

        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            raise HTTPException(status_code=400, detail="Email already exists")
        logger.info("User %s updated by %s", user_id, admin.email)
        return u

@router.delete("/admin/{user_id}")
async def delete_user(user_id: int, admin=Depends(current_admin)):
    if admin.id == user_id:
        raise HTTPException(status_code=400, detail="Cannot delete yourself")
    Session = get_sessionmaker()
    async with Session() as session:
        u = await session.get(User, user_id)
        if not u:
            return {"ok": True}
        if u.role == "admin" and await _admin_count(session) <= 1:
            raise HTTPException(status_code=400, detail="Cannot delete the last admin")
        await session.delete(u)
        await session.commit()
        logger.info("User %s deleted by %s", user_id, admin.email)
        return {"ok": True}
