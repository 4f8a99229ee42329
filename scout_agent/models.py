from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import JSON, Column, Index, UniqueConstraint, text
from sqlmodel import Field, SQLModel


def _uuid() -> str:
    return str(uuid4())


# --- Enums ---

class Frequency(str, Enum):
    daily = "daily"
    every_3_days = "every_3_days"
    weekly = "weekly"


class ExecutionStatus(str, Enum):
    running = "running"
    completed = "completed"
    failed = "failed"


class StepStatus(str, Enum):
    running = "running"
    completed = "completed"
    failed = "failed"


class StepType(str, Enum):
    search = "search"
    scrape = "scrape"
    analyze = "analyze"
    summarize = "summarize"
    tool_call = "tool_call"


class TaskStatus(str, Enum):
    completed = "completed"
    partial = "partial"
    not_found = "not_found"
    insufficient_data = "insufficient_data"


class FirecrawlKeyStatus(str, Enum):
    pending = "pending"
    active = "active"
    fallback = "fallback"
    failed = "failed"
    invalid = "invalid"


class TriggerSource(str, Enum):
    manual = "manual"
    automatic = "automatic"


# --- Models ---

class User(SQLModel, table=True):
    """Identity mirrored from the auth provider."""

    __tablename__ = "users"

    id: str = Field(default_factory=_uuid, primary_key=True)
    email: Optional[str] = None
    api_token: Optional[str] = Field(default=None, index=True, unique=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    last_sign_in_at: Optional[datetime] = None


class Scout(SQLModel, table=True):
    __tablename__ = "scouts"

    id: str = Field(default_factory=_uuid, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    title: str = ""
    goal: str = ""
    description: str = ""
    search_queries: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    # {"city": str, "latitude": float, "longitude": float}; (0, 0) means any location
    location: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    frequency: Optional[Frequency] = None
    is_active: bool = False
    last_run_at: Optional[datetime] = None
    consecutive_failures: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class ScoutExecution(SQLModel, table=True):
    __tablename__ = "scout_executions"
    __table_args__ = (
        # At most one running execution per scout
        Index(
            "ix_scout_executions_one_running",
            "scout_id",
            unique=True,
            sqlite_where=text("status = 'running'"),
            postgresql_where=text("status = 'running'"),
        ),
    )

    id: str = Field(default_factory=_uuid, primary_key=True)
    scout_id: str = Field(foreign_key="scouts.id", index=True)
    status: ExecutionStatus = ExecutionStatus.running
    trigger_source: TriggerSource = TriggerSource.automatic
    started_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    # {"taskCompleted": bool, "taskStatus": str, "response": str}
    results_summary: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    summary_text: Optional[str] = None
    used_fallback_key: Optional[bool] = None


class ScoutExecutionStep(SQLModel, table=True):
    __tablename__ = "scout_execution_steps"
    __table_args__ = (
        UniqueConstraint("execution_id", "step_number", name="uq_execution_step_number"),
    )

    id: str = Field(default_factory=_uuid, primary_key=True)
    execution_id: str = Field(foreign_key="scout_executions.id", index=True)
    step_number: int
    step_type: StepType = StepType.tool_call
    description: str = ""
    input_data: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    output_data: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    status: StepStatus = StepStatus.running
    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None


class UserPreferences(SQLModel, table=True):
    __tablename__ = "user_preferences"

    id: str = Field(default_factory=_uuid, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True, unique=True)
    firecrawl_api_key: Optional[str] = None
    # FirecrawlKeyStatus value; stored as text so unknown statuses still load
    firecrawl_key_status: Optional[str] = None
    firecrawl_key_created_at: Optional[datetime] = None
    firecrawl_key_error: Optional[str] = None
    firecrawl_custom_api_key: Optional[str] = None
    last_test_email_at: Optional[datetime] = None


class FirecrawlUsageLog(SQLModel, table=True):
    """Append-only credential usage telemetry."""

    __tablename__ = "firecrawl_usage_logs"

    id: str = Field(default_factory=_uuid, primary_key=True)
    user_id: str = Field(index=True)
    scout_id: str = Field(index=True)
    execution_id: str = Field(index=True)
    used_fallback: bool = False
    fallback_reason: Optional[str] = None
    api_calls_count: int = 1
    created_at: datetime = Field(default_factory=datetime.utcnow)
