"""Domain models for Copilot Sessions."""

from copilot_sessions.models.config import ActivityConfig, AppConfig, ProcessConfig
from copilot_sessions.models.process import (
    ParentChildMap,
    PidSessionLink,
    ProcessRecord,
    SessionMetadata,
)
from copilot_sessions.models.session import (
    Session,
    SessionStatus,
    TerminalType,
    format_relative_age,
)

__all__ = [
    # Session
    "Session",
    "SessionStatus",
    "TerminalType",
    "format_relative_age",
    # Process
    "ParentChildMap",
    "PidSessionLink",
    "ProcessRecord",
    "SessionMetadata",
    # Config
    "ActivityConfig",
    "AppConfig",
    "ProcessConfig",
]
