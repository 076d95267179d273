"""Working/waiting classification for live sessions.

The event log is the primary signal: the producer appends assistant.turn_end
when it hands control back to the user. Only when the log says nothing does
the classifier fall back to the process heuristic. No state is kept between
calls, so every poll classifies from scratch.
"""

import json
import logging
import os
from pathlib import Path

from copilot_sessions.models.process import ParentChildMap
from copilot_sessions.models.session import SessionStatus
from copilot_sessions.services.metadata_reader import EVENTS_FILE
from copilot_sessions.services.process_inspector import ProcessInspector

logger = logging.getLogger(__name__)

TURN_END_EVENT = "assistant.turn_end"
DEFAULT_EVENT_TAIL_BYTES = 4096


def read_last_event_type(events_path: Path, tail_bytes: int = DEFAULT_EVENT_TAIL_BYTES) -> str | None:
    """Return the type of the last parseable event in an event log.

    Only the last tail_bytes of the file are read. Lines are tried from the
    end; a line cut in half by the seek simply fails to parse and is skipped.

    Args:
        events_path: Path to events.jsonl.
        tail_bytes: How many bytes from the end of the file to inspect.

    Returns:
        The event type string, or None if the file is missing, empty or has
        no parseable event in its tail.
    """
    try:
        with open(events_path, "rb") as f:
            f.seek(0, os.SEEK_END)
            size = f.tell()
            f.seek(max(0, size - tail_bytes))
            chunk = f.read()
    except OSError:
        return None

    tail = chunk.decode("utf-8", errors="replace")
    for line in reversed(tail.split("\n")):
        line = line.strip()
        if not line:
            continue
        try:
            event = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(event, dict) and isinstance(event.get("type"), str):
            return event["type"]
    return None


class ActivityClassifier:
    """Assigns working/waiting to sessions with a live process."""

    def __init__(
        self,
        session_root: Path,
        inspector: ProcessInspector,
        event_tail_bytes: int = DEFAULT_EVENT_TAIL_BYTES,
    ):
        """Initialize the classifier.

        Args:
            session_root: Directory holding one subdirectory per session.
            inspector: Used for the process fallback.
            event_tail_bytes: Bytes of events.jsonl read per classification.
        """
        self.session_root = Path(session_root)
        self.inspector = inspector
        self.event_tail_bytes = event_tail_bytes

    def last_event_status(self, session_id: str) -> SessionStatus | None:
        """Status implied by the session's last logged event.

        Returns:
            WAITING after a turn end, WORKING after any other event, or None
            when the log gives no answer.
        """
        event_type = read_last_event_type(
            self.session_root / session_id / EVENTS_FILE, self.event_tail_bytes
        )
        if event_type is None:
            return None
        if event_type == TURN_END_EVENT:
            return SessionStatus.WAITING
        return SessionStatus.WORKING

    def classify(self, session_id: str, pid: int, parent_child_map: ParentChildMap) -> SessionStatus:
        """Classify a session that has a live process.

        Args:
            session_id: Session identifier.
            pid: The session's agent process.
            parent_child_map: Process tree for this discovery pass.

        Returns:
            WORKING or WAITING.
        """
        status = self.last_event_status(session_id)
        if status is not None:
            return status

        logger.debug(f"{session_id}: no usable events, falling back to process heuristic")
        if self.inspector.is_working(pid, parent_child_map):
            return SessionStatus.WORKING
        return SessionStatus.WAITING
