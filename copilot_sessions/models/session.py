"""Session model - one Copilot CLI session as seen on disk and in the process table."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class SessionStatus(str, Enum):
    """Activity classification of a session.

    Sort priority follows declaration order: working, waiting, done.
    """

    WORKING = "working"
    """Process alive and running tools or using CPU."""

    WAITING = "waiting"
    """Process alive and idle, waiting for user input."""

    DONE = "done"
    """No live process correlated to the session."""

    @property
    def priority(self) -> int:
        return _STATUS_PRIORITY[self]


_STATUS_PRIORITY = {
    SessionStatus.WORKING: 0,
    SessionStatus.WAITING: 1,
    SessionStatus.DONE: 2,
}


class TerminalType(str, Enum):
    """Terminal emulators the engine can detect from process ancestry."""

    TERMINAL = "Terminal"
    KITTY = "kitty"
    ITERM2 = "iTerm2"
    WEZTERM = "WezTerm"
    ALACRITTY = "Alacritty"
    GHOSTTY = "Ghostty"
    UNKNOWN = "?"

    @property
    def icon(self) -> str:
        return _TERMINAL_ICONS[self]


_TERMINAL_ICONS = {
    TerminalType.TERMINAL: "🖥️",
    TerminalType.KITTY: "🐱",
    TerminalType.ITERM2: "🔲",
    TerminalType.WEZTERM: "🌐",
    TerminalType.ALACRITTY: "⬛",
    TerminalType.GHOSTTY: "👻",
    TerminalType.UNKNOWN: "💻",
}


def format_relative_age(start: datetime, end: datetime) -> str:
    """Format the time between two datetimes as a compact age string.

    Args:
        start: The earlier datetime (e.g. a session's last activity).
        end: The reference datetime (usually now).

    Returns:
        "now", "5m", "3h", "2d", "4mo", or "" when start is after end.
    """
    seconds = int((end - start).total_seconds())
    if seconds < 0:
        return ""
    if seconds < 60:
        return "now"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h"
    days = hours // 24
    if days < 30:
        return f"{days}d"
    return f"{days // 30}mo"


class Session(BaseModel):
    """A Copilot CLI session.

    Rebuilt from scratch on every discovery pass; nothing here is persisted.
    A session with status DONE never carries a pid and its terminal type is
    always UNKNOWN.
    """

    id: str = Field(..., description="Session identifier (session directory name)")
    topic: str = Field(default="", description="Short human label, may be empty")
    full_message: str = Field(default="", description="First user message, verbatim")
    branch: str = Field(default="", description="Git branch the session ran on")
    turns: int = Field(default=0, ge=0, description="Number of user turns")
    last_timestamp: datetime | None = Field(
        default=None,
        description="Last activity; None when unknown",
    )
    status: SessionStatus = Field(default=SessionStatus.DONE)
    pid: str | None = Field(
        default=None,
        description="Owning process id, present only while a process is live",
    )
    tty: str | None = Field(default=None, description="Controlling terminal device")
    terminal_type: TerminalType = Field(default=TerminalType.UNKNOWN)
    repository: str = Field(default="", description="Repository, e.g. 'org/repo'")
    cwd: str = Field(default="", description="Working directory of the session")

    @property
    def short_id(self) -> str:
        """First 12 characters of the id. Display only, not unique."""
        return self.id[:12]

    @property
    def is_active(self) -> bool:
        return self.status != SessionStatus.DONE

    @property
    def status_emoji(self) -> str:
        if self.status == SessionStatus.WORKING:
            return "🟡"
        if self.status == SessionStatus.WAITING:
            return "🟢"
        return "⚪"

    @property
    def status_label(self) -> str:
        if self.status == SessionStatus.WORKING:
            return "Working"
        if self.status == SessionStatus.WAITING:
            return "Waiting for input"
        return "Done"

    @property
    def display_label(self) -> str:
        return self.topic or self.short_id

    @property
    def relative_age(self) -> str:
        """Age of the last activity relative to now, "" when unknown."""
        if self.last_timestamp is None:
            return ""
        now = datetime.now(timezone.utc)
        last = self.last_timestamp
        if last.tzinfo is None:
            last = last.replace(tzinfo=timezone.utc)
        return format_relative_age(last, now)

    @property
    def display_repo_name(self) -> str:
        """Repository name, or the last two components of the working directory."""
        if self.repository:
            return self.repository
        if not self.cwd or self.cwd == "/":
            return ""
        parts = [p for p in self.cwd.split("/") if p]
        if len(parts) >= 2:
            return f"{parts[-2]}/{parts[-1]}"
        return parts[-1] if parts else ""
