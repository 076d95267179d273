"""Ephemeral records produced and consumed within one discovery pass."""

from dataclasses import dataclass, field
from datetime import datetime

# Parent pid -> direct child pids
ParentChildMap = dict[int, list[int]]


@dataclass
class ProcessRecord:
    """A running agent process as reported by the process listing."""

    pid: str
    tty: str  # e.g. "ttys003", or "??" when detached
    started: str = ""  # raw lstart text from ps


@dataclass
class PidSessionLink:
    """Bidirectional pid <-> session id mapping.

    Built from open-file listings. Each pid maps to at most one session, and
    when several pids hold the same session the first one seen wins.
    """

    pid_to_session: dict[str, str] = field(default_factory=dict)

    @property
    def session_to_pid(self) -> dict[str, str]:
        inverted: dict[str, str] = {}
        for pid, session_id in self.pid_to_session.items():
            inverted.setdefault(session_id, pid)
        return inverted

    @property
    def active_session_ids(self) -> set[str]:
        return set(self.pid_to_session.values())

    @property
    def pids(self) -> set[int]:
        """Pids that parse as integers, for process-table scoping."""
        result = set()
        for pid in self.pid_to_session:
            try:
                result.add(int(pid))
            except ValueError:
                continue
        return result


@dataclass
class SessionMetadata:
    """Static metadata read from a session directory."""

    topic: str = ""
    full_message: str = ""
    branch: str = ""
    turns: int = 0
    last_timestamp: datetime | None = None
    repository: str = ""
    cwd: str = ""
