from __future__ import annotations
import logging
from fastapi import APIRouter, Depends, HTTPException
from ..db.database import get_sessionmaker
from ..effective import ensure_settings_row, load_effective_settings, jira_client_for
from ..schemas import SettingsIn, SettingsOut
from ..util.crypto import encrypt
from .deps import current_admin

router = APIRouter(prefix="/admin", tags=["admin"])

logger = logging.getLogger(__name__)

async def _settings_out(session) -> SettingsOut:
    eff = await load_effective_settings(session)
    return SettingsOut(
        jira_base_url=eff["jira_base_url"] or None,
        jira_email=eff["jira_email"] or None,
        has_token=bool(eff["jira_api_token"]),
        token_source=eff["token_source"],
    )

@router.get("/settings", response_model=SettingsOut)
async def get_settings_route(_=Depends(current_admin)):
    Session = get_sessionmaker()
    async with Session() as session:
        return await _settings_out(session)

@router.put("/settings", response_model=SettingsOut)
async def put_settings_route(payload: SettingsIn, admin=Depends(current_admin)):
    Session = get_sessionmaker()
    async with Session() as session:
        row = await ensure_settings_row(session)
        if payload.jira_base_url is not None:
            row.jira_base_url = payload.jira_base_url.strip().rstrip("/")
        if payload.jira_email is not None:
            row.jira_email = payload.jira_email.strip()
        if payload.jira_api_token is not None:
            # empty string clears the stored token
            row.jira_token_encrypted = encrypt(payload.jira_api_token.strip())
        await session.commit()
        logger.info("JIRA settings updated by %s", admin.email)
        return await _settings_out(session)

@router.post("/test-connection")
async def test_connection(_=Depends(current_admin)):
    Session = get_sessionmaker()
    async with Session() as session:
        client = await jira_client_for(session)
    ok = await client.test_connection()
    if not ok:
        raise HTTPException(400, "Failed to connect to Jira. Check credentials.")
    return {"ok": True}
