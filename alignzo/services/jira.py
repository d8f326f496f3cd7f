import logging
import httpx
from typing import Dict, Any, List, Optional

from ..core.errors import JiraUnavailableError

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ["summary", "status", "assignee", "project", "issuetype", "updated"]

class JiraClient:
    def __init__(self, base_url: str, email: str, api_token: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base = (base_url or "").rstrip("/")
        self.auth = (email or "", api_token or "")
        self.headers = {"Accept": "application/json"}
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    @property
    def configured(self) -> bool:
        return bool(self.base and self.auth[0] and self.auth[1])

    async def test_connection(self) -> bool:
        if not self.configured:
            return False
        url = f"{self.base}/rest/api/3/myself"
        try:
            async with self._client(30.0) as client:
                r = await client.get(url, auth=self.auth, headers=self.headers)
        except httpx.HTTPError as e:
            logger.warning("JIRA connection test failed: %s", e)
            return False
        return r.status_code == 200

    async def search_issues(self, jql: str, fields: Optional[List[str]] = None, max_total: Optional[int] = 50) -> List[Dict[str, Any]]:
        if not self.configured:
            raise JiraUnavailableError("JIRA integration is not configured")
        fields = fields or SEARCH_FIELDS
        start_at = 0
        page_size = 50
        issues: List[Dict[str, Any]] = []
        try:
            async with self._client(60.0) as client:
                while True:
                    if max_total is not None:
                        remaining = max_total - len(issues)
                        if remaining <= 0:
                            break
                        page_size = min(page_size, max(1, remaining))
                    params = {
                        "jql": jql,
                        "startAt": start_at,
                        "maxResults": page_size,
                        "fields": ",".join(fields),
                    }
                    r = await client.get(f"{self.base}/rest/api/3/search", params=params, auth=self.auth, headers=self.headers)
                    r.raise_for_status()
                    data = r.json()
                    page = data.get("issues", [])
                    issues.extend(page)
                    if not page or start_at + page_size >= data.get("total", 0):
                        break
                    start_at += page_size
        except httpx.HTTPStatusError as e:
            logger.error("JIRA search failed with HTTP %s", e.response.status_code)
            raise JiraUnavailableError(f"JIRA search failed (HTTP {e.response.status_code})") from e
        except httpx.HTTPError as e:
            logger.error("JIRA search failed: %s", e)
            raise JiraUnavailableError("Could not reach JIRA") from e
        if max_total is not None and len(issues) > max_total:
            issues = issues[:max_total]
        return issues


def _quote(s: str) -> str:
    return '"' + s.replace("\\", "\\\\").replace('"', '\\"') + '"'


def build_ticket_jql(text: Optional[str] = None, assignee_email: Optional[str] = None, project_key: Optional[str] = None) -> str:
    clauses = []
    if project_key:
        clauses.append(f"project = {_quote(project_key.strip().upper())}")
    if assignee_email:
        clauses.append(f"assignee = {_quote(assignee_email)}")
    if text:
        t = text.strip()
        if "-" in t and t.split("-", 1)[1].isdigit():
            clauses.append(f"(key = {_quote(t.upper())} OR summary ~ {_quote(t)})")
        else:
            clauses.append(f"summary ~ {_quote(t)}")
    jql = " AND ".join(clauses) if clauses else "assignee = currentUser()"
    return jql + " ORDER BY updated DESC"


def summarize_issue(issue: Dict[str, Any]) -> Dict[str, Any]:
    f = issue.get("fields") or {}
    return {
        "key": issue.get("key", ""),
        "summary": f.get("summary") or "",
        "status": ((f.get("status") or {}).get("name")) or "",
        "assignee": ((f.get("assignee") or {}).get("displayName")) or None,
        "project_key": ((f.get("project") or {}).get("key")) or "",
        "issue_type": ((f.get("issuetype") or {}).get("name")) or "",
    }
