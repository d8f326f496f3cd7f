from typing import Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from .core.config import get_settings
from .db.models import AppSettings
from .services.jira import JiraClient
from .util.crypto import decrypt

async def ensure_settings_row(session: AsyncSession) -> AppSettings:
    row = await session.get(AppSettings, 1)
    if row is None:
        row = AppSettings(id=1)
        session.add(row)
        await session.commit()
    return row

async def load_effective_settings(session: AsyncSession) -> Dict[str, Any]:
    # DB overrides .env; if DB empty, fall back to .env
    settings = get_settings()
    row = await session.get(AppSettings, 1)
    db_token = decrypt(row.jira_token_encrypted or "") if row else ""
    return {
        "jira_base_url": (row.jira_base_url if row else None) or settings.jira_base_url or "",
        "jira_email": (row.jira_email if row else None) or settings.jira_email or "",
        "jira_api_token": db_token or settings.jira_api_token or "",
        "token_source": "db" if db_token else ("env" if settings.jira_api_token else "none"),
    }

async def jira_client_for(session: AsyncSession) -> JiraClient:
    eff = await load_effective_settings(session)
    return JiraClient(eff["jira_base_url"], eff["jira_email"], eff["jira_api_token"])
