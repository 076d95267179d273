"""Per-session metadata reconciliation.

A session directory can hold three overlapping descriptions of the session:

- workspace.yaml: repository, cwd, branch and a human summary
- rewind-snapshots/index.json: one record per turn (message, branch, timestamp)
- events.jsonl: the append-only event log

They are read as an ordered list of sources. Each source writes into one
SessionMetadata through merge_field(), whose rule decides whether a value may
replace what an earlier source already set. The event log is a fallback and
only runs when the snapshot index produced nothing.
"""

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from copilot_sessions.models.process import SessionMetadata
from copilot_sessions.services.topic_extractor import DEFAULT_MAX_LENGTH, extract_topic

logger = logging.getLogger(__name__)

WORKSPACE_FILE = "workspace.yaml"
SNAPSHOT_INDEX_FILE = Path("rewind-snapshots") / "index.json"
EVENTS_FILE = "events.jsonl"

USER_MESSAGE_EVENT = "user.message"

# Summary values the producer writes when it has no summary yet
_EMPTY_SUMMARIES = frozenset({"''", '""'})


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp, with or without fractional seconds.

    Naive values are taken as UTC. Returns None for anything unparseable.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# =============================================================================
# Merge rules
# =============================================================================


class MergeRule(str, Enum):
    """How a source's value combines with the value already collected."""

    OVERRIDE = "override"
    """Replace whenever the new value is non-empty."""

    IF_EMPTY = "if_empty"
    """Fill only if nothing has been collected yet."""

    MAX = "max"
    """Keep the larger of the two (numeric fields)."""


def _is_empty(value: object) -> bool:
    return value is None or value == ""


def merge_field(metadata: SessionMetadata, name: str, value: object, rule: MergeRule) -> bool:
    """Merge one value into metadata according to rule.

    Args:
        metadata: Record being built.
        name: SessionMetadata attribute name.
        value: Candidate value from the current source.
        rule: Merge rule for this field and source.

    Returns:
        True if the attribute changed.
    """
    if _is_empty(value):
        return False

    current = getattr(metadata, name)
    if rule == MergeRule.IF_EMPTY and not _is_empty(current):
        return False
    if rule == MergeRule.MAX:
        value = max(current or 0, value)

    if value == current:
        return False
    setattr(metadata, name, value)
    return True


# =============================================================================
# Sources
# =============================================================================

Extractor = Callable[[Path, SessionMetadata, int], bool]


@dataclass(frozen=True)
class MetadataSource:
    """One step of the metadata pipeline.

    extract returns True when the source existed and contributed data.
    A source with fallback_for set only runs if that named source did not.
    """

    name: str
    extract: Extractor
    fallback_for: str | None = None


def read_workspace_descriptor(session_dir: Path, metadata: SessionMetadata, max_length: int) -> bool:
    """Read workspace.yaml as line-oriented `key: value` pairs.

    The summary is free text that is not always valid YAML, so the file is
    read line by line rather than through a YAML parser.
    """
    path = session_dir / WORKSPACE_FILE
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.debug(f"Could not read {path}: {e}")
        return False

    for line in text.split("\n"):
        key, sep, raw_value = line.partition(": ")
        if not sep:
            continue
        value = raw_value.strip()
        if key == "repository":
            merge_field(metadata, "repository", value, MergeRule.OVERRIDE)
        elif key == "cwd":
            merge_field(metadata, "cwd", value, MergeRule.OVERRIDE)
        elif key == "branch":
            merge_field(metadata, "branch", value, MergeRule.IF_EMPTY)
        elif key == "summary":
            if value not in _EMPTY_SUMMARIES:
                merge_field(metadata, "topic", value, MergeRule.OVERRIDE)
        elif key == "updated_at":
            merge_field(metadata, "last_timestamp", parse_timestamp(value), MergeRule.OVERRIDE)
    return True


def read_snapshot_index(session_dir: Path, metadata: SessionMetadata, max_length: int) -> bool:
    """Read rewind-snapshots/index.json.

    Returns False when the file is missing, malformed or has no snapshots, so
    the event log fallback takes over.
    """
    path = session_dir / SNAPSHOT_INDEX_FILE
    try:
        with open(path, encoding="utf-8") as f:
            index = json.load(f)
    except FileNotFoundError:
        return False
    except (OSError, ValueError) as e:
        logger.debug(f"Skipping malformed snapshot index {path}: {e}")
        return False

    snapshots = index.get("snapshots") if isinstance(index, dict) else None
    if not isinstance(snapshots, list) or not snapshots:
        return False
    snapshots = [s for s in snapshots if isinstance(s, dict)]
    if not snapshots:
        return False

    first, last = snapshots[0], snapshots[-1]
    message = first.get("userMessage") or ""
    if not isinstance(message, str):
        message = ""
    merge_field(metadata, "full_message", message, MergeRule.OVERRIDE)
    merge_field(metadata, "topic", extract_topic(message, max_length), MergeRule.IF_EMPTY)
    metadata.turns = len(snapshots)

    branch = last.get("gitBranch")
    if isinstance(branch, str):
        merge_field(metadata, "branch", branch, MergeRule.IF_EMPTY)
    merge_field(metadata, "last_timestamp", parse_timestamp(last.get("timestamp")), MergeRule.OVERRIDE)
    return True


def read_event_log(session_dir: Path, metadata: SessionMetadata, max_length: int) -> bool:
    """Scan events.jsonl for user messages.

    The first user.message supplies the full message and, if still unset, the
    topic. Turns become at least the number of user messages.
    """
    path = session_dir / EVENTS_FILE
    user_messages = 0
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    event = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if not isinstance(event, dict) or event.get("type") != USER_MESSAGE_EVENT:
                    continue
                user_messages += 1
                if user_messages == 1:
                    data = event.get("data")
                    content = data.get("content") if isinstance(data, dict) else None
                    if isinstance(content, str):
                        merge_field(metadata, "full_message", content, MergeRule.OVERRIDE)
                        merge_field(
                            metadata, "topic", extract_topic(content, max_length), MergeRule.IF_EMPTY
                        )
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.debug(f"Could not read {path}: {e}")
        return False

    merge_field(metadata, "turns", user_messages, MergeRule.MAX)
    return True


DEFAULT_SOURCES: tuple[MetadataSource, ...] = (
    MetadataSource("workspace", read_workspace_descriptor),
    MetadataSource("snapshots", read_snapshot_index),
    MetadataSource("events", read_event_log, fallback_for="snapshots"),
)


class SessionMetadataReader:
    """Builds SessionMetadata for a session directory from its sources in order."""

    def __init__(
        self,
        sources: tuple[MetadataSource, ...] = DEFAULT_SOURCES,
        topic_max_length: int = DEFAULT_MAX_LENGTH,
    ):
        self.sources = sources
        self.topic_max_length = topic_max_length

    def read(self, session_dir: Path) -> SessionMetadata:
        """Read and merge every source for one session.

        Args:
            session_dir: The session's directory.

        Returns:
            Merged metadata. Fields no source could supply keep their defaults.
        """
        metadata = SessionMetadata()
        contributed: set[str] = set()
        for source in self.sources:
            if source.fallback_for is not None and source.fallback_for in contributed:
                continue
            if source.extract(session_dir, metadata, self.topic_max_length):
                contributed.add(source.name)
        logger.debug(f"{session_dir.name}: metadata from {sorted(contributed) or 'no sources'}")
        return metadata
