from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from ..db.database import get_sessionmaker
from ..effective import jira_client_for
from ..schemas import JiraTicketOut
from ..services.jira import build_ticket_jql, summarize_issue
from .deps import current_user

router = APIRouter(prefix="/jira", tags=["jira"])

@router.get("/tickets", response_model=List[JiraTicketOut])
async def search_tickets(
    q: Optional[str] = Query(None, description="Issue key or summary text"),
    mine: bool = Query(False, description="Only issues assigned to me"),
    project: Optional[str] = Query(None, description="Project key"),
    limit: int = Query(25, ge=1, le=100),
    user=Depends(current_user),
):
    Session = get_sessionmaker()
    async with Session() as session:
        client = await jira_client_for(session)
    jql = build_ticket_jql(text=q, assignee_email=user.email if mine else None, project_key=project)
    issues = await client.search_issues(jql, max_total=limit)
    return [summarize_issue(i) for i in issues]
