from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict
from datetime import datetime

class UserOut(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    role: str

class LoginIn(BaseModel):
    email: str
    password: str

class SettingsIn(BaseModel):
    jira_base_url: Optional[str] = None
    jira_email: Optional[str] = None
    jira_api_token: Optional[str] = None

class SettingsOut(BaseModel):
    jira_base_url: Optional[str] = None
    jira_email: Optional[str] = None
    has_token: bool = False
    token_source: str = "none"

class ProjectIn(BaseModel):
    name: str = Field(min_length=1)
    product: str = ""
    country: str = ""

class ProjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    product: str
    country: str

class TicketSourceIn(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None

class TicketSourceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    description: Optional[str] = None

class UserMappingIn(BaseModel):
    user_email: str = Field(min_length=1)
    source_assignee_value: str = Field(min_length=1)
    source_assignee_field: str = "Assignee"

class UserMappingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    user_email: str
    source_assignee_field: str
    source_assignee_value: str

class MappingIn(BaseModel):
    source_id: int
    project_id: int
    source_organization_value: str = Field(min_length=1)
    source_organization_field: str = "Assigned_Support_Organization"
    user_mappings: List[UserMappingIn] = Field(default_factory=list)

class MappingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    source_id: int
    project_id: int
    source_organization_field: str
    source_organization_value: str
    user_mappings: List[UserMappingOut] = []

class MasterMappingIn(BaseModel):
    source_id: int
    source_assignee_value: str = Field(min_length=1)
    mapped_user_email: str = Field(min_length=1)
    is_active: bool = True

class MasterMappingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    source_id: int
    source_assignee_value: str
    mapped_user_email: str
    is_active: bool

class UploadSessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    user_email: str
    source_id: int
    file_name: str
    total_rows: int
    processed_rows: int
    skipped_rows: int
    inserted_rows: int
    updated_rows: int
    status: str
    error_message: Optional[str] = None
    created_at: datetime

class UploadedTicketOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    incident_id: str
    project_id: int
    mapping_id: int
    upload_session_id: Optional[int] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    summary: Optional[str] = None
    assignee: Optional[str] = None
    mapped_user_email: Optional[str] = None
    assigned_support_organization: Optional[str] = None
    reported_date1: Optional[datetime] = None
    last_resolved_date: Optional[datetime] = None
    closed_date: Optional[datetime] = None
    mttr: Optional[float] = None
    mtti: Optional[float] = None

class TimerStartIn(BaseModel):
    project_id: Optional[int] = None
    ticket_id: str = ""
    task_detail: str = ""
    dynamic_category_selections: Dict[str, str] = Field(default_factory=dict)

class TimerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    project_id: int
    ticket_id: str
    task_detail: str
    dynamic_category_selections: Dict[str, str] = {}
    start_time: datetime
    is_running: bool
    is_paused: bool
    pause_start_time: Optional[datetime] = None
    total_pause_duration_seconds: int
    state: str = "running"
    elapsed_seconds: int = 0

class TimerListOut(BaseModel):
    timers: List[TimerOut]
    poll_interval_seconds: int

class WorkLogIn(BaseModel):
    project_id: Optional[int] = None
    ticket_id: str = ""
    task_detail: str = ""
    start_time: datetime
    end_time: datetime
    dynamic_category_selections: Dict[str, str] = Field(default_factory=dict)

class WorkLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    project_id: int
    ticket_id: str
    task_detail: str
    dynamic_category_selections: Dict[str, str] = {}
    start_time: datetime
    end_time: datetime
    total_pause_duration_seconds: int
    logged_duration_seconds: int

class JiraTicketOut(BaseModel):
    key: str
    summary: str
    status: str
    assignee: Optional[str] = None
    project_key: str
    issue_type: str
