from __future__ import annotations
from typing import List, Optional


class AlignzoError(Exception):
    """Base error; `message` is what the user sees."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AlignzoError):
    status_code = 400


class MissingHeadersError(ValidationError):
    def __init__(self, missing: List[str]):
        super().__init__("Missing required headers: " + ", ".join(missing))
        self.missing = list(missing)


class NotFoundError(AlignzoError):
    status_code = 404


class TimerStateError(AlignzoError):
    status_code = 409


class TicketImportError(AlignzoError):
    """Persistence failed mid-import. The upload session is already marked failed."""

    status_code = 500

    def __init__(self, message: str, session_id: Optional[int] = None):
        super().__init__(message)
        self.session_id = session_id


class JiraUnavailableError(AlignzoError):
    status_code = 502
