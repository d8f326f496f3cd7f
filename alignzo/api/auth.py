from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy import select
from ..schemas import LoginIn, UserOut
from ..db.database import get_sessionmaker
from ..db.models import User
from ..core.security import verify_password, sign_session, SESSION_COOKIE, SESSION_MAX_AGE
from .deps import current_user

router = APIRouter(tags=["auth"])

@router.post("/auth/login", response_model=UserOut)
async def login(payload: LoginIn, response: Response):
    Session = get_sessionmaker()
    async with Session() as session:
        res = await session.execute(select(User).where(User.email == payload.email.strip().lower()))
        user = res.scalar_one_or_none()
        if not user or not verify_password(payload.password, user.password_hash):
            raise HTTPException(status_code=401, detail="Invalid credentials")
        token = sign_session(user.id, user.email)
        response.set_cookie(SESSION_COOKIE, token, httponly=True, samesite="lax", max_age=SESSION_MAX_AGE)
        return UserOut(id=user.id, email=user.email, name=user.name, role=user.role)

@router.post("/auth/logout")
async def logout(response: Response):
    response.delete_cookie(SESSION_COOKIE)
    return {"ok": True}

@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(current_user)):
    return UserOut(id=user.id, email=user.email, name=user.name, role=user.role)
