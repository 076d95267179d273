"""Session discovery engine.

load_sessions() is the single entry point. One call:

1. asks ps/lsof which agent processes are alive and which session each holds
2. builds the process tree scoped to those processes
3. reads every session directory's metadata
4. classifies live sessions and detects their terminal
5. drops topic-less dead sessions and sorts the rest

Nothing is cached between calls. The call blocks (CPU sampling sleeps) and
belongs on a background thread; see SessionPoller.
"""

import logging
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path

import psutil

from copilot_sessions.models.config import AppConfig
from copilot_sessions.models.process import ParentChildMap, ProcessRecord
from copilot_sessions.models.session import Session, SessionStatus, TerminalType
from copilot_sessions.services.activity_classifier import ActivityClassifier
from copilot_sessions.services.metadata_reader import SessionMetadataReader
from copilot_sessions.services.process_correlator import ProcessCorrelator
from copilot_sessions.services.process_inspector import ProcessInspector

logger = logging.getLogger(__name__)

DEFAULT_SESSION_ROOT = Path.home() / ".copilot" / "session-state"
OTHER_REPOSITORY = "Other"

_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def _timestamp_key(session: Session) -> datetime:
    ts = session.last_timestamp
    if ts is None:
        return _EARLIEST
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def sort_sessions(sessions: list[Session]) -> list[Session]:
    """Order by status (working, waiting, done), then most recent first.

    Sessions without a timestamp sort as the oldest within their status.
    """
    by_time = sorted(sessions, key=_timestamp_key, reverse=True)
    return sorted(by_time, key=lambda s: s.status.priority)


def group_sessions_by_repository(sessions: list[Session]) -> list[tuple[str, list[Session]]]:
    """Group sessions by display repository name.

    Sessions with no repository or cwd go under "Other". Groups are ordered by
    their most recent session; sessions keep their input order within a group.
    """
    groups: dict[str, list[Session]] = defaultdict(list)
    for session in sessions:
        groups[session.display_repo_name or OTHER_REPOSITORY].append(session)

    def newest(item: tuple[str, list[Session]]) -> datetime:
        return max(_timestamp_key(s) for s in item[1])

    return sorted(groups.items(), key=newest, reverse=True)


class SessionDataSource:
    """Reads Copilot session state from disk and correlates it with running processes."""

    def __init__(
        self,
        session_base: str | Path = DEFAULT_SESSION_ROOT,
        correlator: ProcessCorrelator | None = None,
        inspector: ProcessInspector | None = None,
        metadata_reader: SessionMetadataReader | None = None,
        event_tail_bytes: int = 4096,
    ):
        """Initialize the data source.

        Args:
            session_base: Directory holding one subdirectory per session.
            correlator: ps/lsof correlation. Defaults to a stock ProcessCorrelator.
            inspector: Process table access. Defaults to a stock ProcessInspector.
            metadata_reader: Per-session metadata. Defaults to a stock reader.
            event_tail_bytes: Bytes of events.jsonl read for classification.
        """
        self.session_base = Path(session_base)
        self.correlator = correlator or ProcessCorrelator()
        self.inspector = inspector or ProcessInspector()
        self.metadata_reader = metadata_reader or SessionMetadataReader()
        self.event_tail_bytes = event_tail_bytes

    @classmethod
    def from_config(cls, config: AppConfig) -> "SessionDataSource":
        """Build a data source wired with the configured collaborators."""
        correlator = ProcessCorrelator(
            agent_fragment=config.process.agent_fragment,
            lsof_command_name=config.process.lsof_command_name,
            session_root_segment=config.process.session_root_segment,
            marker_file=config.process.marker_file,
            command_timeout=config.process.command_timeout,
        )
        inspector = ProcessInspector(
            background_process_names=config.activity.background_process_names,
            cpu_sample_window=config.activity.cpu_sample_window,
            cpu_working_threshold=config.activity.cpu_working_threshold,
            terminal_search_depth=config.activity.terminal_search_depth,
        )
        return cls(
            session_base=config.session_root_path,
            correlator=correlator,
            inspector=inspector,
            metadata_reader=SessionMetadataReader(topic_max_length=config.topic_max_length),
            event_tail_bytes=config.activity.event_tail_bytes,
        )

    @property
    def classifier(self) -> ActivityClassifier:
        return ActivityClassifier(self.session_base, self.inspector, self.event_tail_bytes)

    def load_sessions(self) -> list[Session]:
        """Discover all sessions and their current status.

        Returns:
            Sorted session list. Empty if the session root cannot be listed.
        """
        running = self.correlator.running_agent_processes()
        link = self.correlator.pid_to_session_id()
        active_ids = link.active_session_ids
        session_to_pid = link.session_to_pid
        try:
            parent_child_map = self.inspector.build_parent_child_map(link.pids)
        except psutil.Error as e:
            logger.warning(f"Cannot read process tree: {e}")
            parent_child_map = {}
        classifier = self.classifier

        try:
            session_dirs = [p for p in self.session_base.iterdir() if p.is_dir()]
        except OSError as e:
            logger.warning(f"Cannot list session root {self.session_base}: {e}")
            return []

        sessions: list[Session] = []
        for session_dir in session_dirs:
            sid = session_dir.name
            try:
                session = self._build_session(
                    session_dir,
                    is_alive=sid in active_ids,
                    pid=session_to_pid.get(sid),
                    running=running,
                    classifier=classifier,
                    parent_child_map=parent_child_map,
                )
            except Exception as e:
                logger.warning(f"Skipping session {sid}: {e}")
                continue
            if session is not None:
                sessions.append(session)

        logger.debug(
            f"Loaded {len(sessions)} sessions ({len(active_ids)} live) from {self.session_base}"
        )
        return sort_sessions(sessions)

    def _build_session(
        self,
        session_dir: Path,
        is_alive: bool,
        pid: str | None,
        running: dict[str, ProcessRecord],
        classifier: ActivityClassifier,
        parent_child_map: ParentChildMap,
    ) -> Session | None:
        """Build one Session from its directory and the pass's process state.

        Returns:
            The session, or None for a dead session with no topic.
        """
        sid = session_dir.name
        metadata = self.metadata_reader.read(session_dir)

        pid_int = None
        if is_alive and pid is not None:
            try:
                pid_int = int(pid)
            except ValueError:
                pid_int = None

        if pid_int is not None:
            status = classifier.classify(sid, pid_int, parent_child_map)
            terminal_type = self.inspector.detect_terminal_kind(pid_int)
            record = running.get(pid)
            tty = record.tty if record else None
        else:
            status = SessionStatus.DONE
            terminal_type = TerminalType.UNKNOWN
            pid = None
            tty = None

        if not metadata.topic and not is_alive:
            return None

        return Session(
            id=sid,
            topic=metadata.topic,
            full_message=metadata.full_message,
            branch=metadata.branch,
            turns=metadata.turns,
            last_timestamp=metadata.last_timestamp,
            status=status,
            pid=pid,
            tty=tty,
            terminal_type=terminal_type,
            repository=metadata.repository,
            cwd=metadata.cwd,
        )
