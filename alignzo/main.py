import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select, func

from .api import auth, admin, users, projects, mappings, uploads, timers, work_logs, jira
from .core.config import get_settings
from .core.errors import AlignzoError, MissingHeadersError, TicketImportError
from .core.logging import configure_logging
from .core.security import hash_password
from .db.database import init_db, get_sessionmaker
from .db.models import User, TicketSource
from .effective import ensure_settings_row

settings = get_settings()
configure_logging(settings.log_level)

logger = logging.getLogger(__name__)

DEFAULT_SOURCES = [("Remedy", "BMC Remedy ITSM incident export")]

app = FastAPI(title="Alignzo")

if settings.frontend_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.frontend_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

@app.exception_handler(AlignzoError)
async def alignzo_error_handler(request: Request, exc: AlignzoError):
    body = {"detail": exc.message}
    if isinstance(exc, MissingHeadersError):
        body["missing_headers"] = exc.missing
    if isinstance(exc, TicketImportError) and exc.session_id is not None:
        body["upload_session_id"] = exc.session_id
    return JSONResponse(status_code=exc.status_code, content=body)

@app.get("/health")
async def health():
    return {"ok": True}

# API routers
app.include_router(auth.router, prefix="/api")
app.include_router(admin.router, prefix="/api")
app.include_router(users.router, prefix="/api")
app.include_router(projects.router, prefix="/api")
app.include_router(mappings.router, prefix="/api")
app.include_router(uploads.router, prefix="/api")
app.include_router(timers.router, prefix="/api")
app.include_router(work_logs.router, prefix="/api")
app.include_router(jira.router, prefix="/api")

async def seed_defaults() -> None:
    Session = get_sessionmaker()
    async with Session() as session:
        await ensure_settings_row(session)
        for name, description in DEFAULT_SOURCES:
            res = await session.execute(select(TicketSource).where(TicketSource.name == name))
            if res.scalar_one_or_none() is None:
                session.add(TicketSource(name=name, description=description))
        # Bootstrap admin user if DB has none
        count = (await session.execute(select(func.count(User.id)))).scalar_one()
        if count == 0:
            session.add(User(
                email=settings.bootstrap_admin_email.strip().lower(),
                name="Administrator",
                role="admin",
                password_hash=hash_password(settings.bootstrap_admin_password),
            ))
            logger.info("Bootstrapped admin user %s", settings.bootstrap_admin_email)
        await session.commit()

@app.on_event("startup")
async def on_startup():
    await init_db()
    await seed_defaults()
