"""Native process-table inspection.

Everything here goes through psutil rather than shelling out, so it can be
called once per live session on every poll. Any pid may exit between two
calls; a vanished or inaccessible process is reported as None or 0.0, never
raised.
"""

import logging
import os
import time
from collections import deque
from collections.abc import Iterable

import psutil

from copilot_sessions.models.process import ParentChildMap
from copilot_sessions.models.session import TerminalType

logger = logging.getLogger(__name__)

# Long-lived helpers the agent keeps as children (MCP servers); not tool work
DEFAULT_BACKGROUND_PROCESS_NAMES = frozenset({"npm", "node", "azmcp"})
DEFAULT_CPU_SAMPLE_WINDOW = 0.05  # seconds
DEFAULT_CPU_WORKING_THRESHOLD = 2.0  # percent of one core
DEFAULT_TERMINAL_SEARCH_DEPTH = 15

# Checked in order against each ancestor's executable path
TERMINAL_PATH_PATTERNS: tuple[tuple[str, TerminalType], ...] = (
    ("Terminal.app", TerminalType.TERMINAL),
    ("kitty.app", TerminalType.KITTY),
    ("iTerm2.app", TerminalType.ITERM2),
    ("WezTerm.app", TerminalType.WEZTERM),
    ("Alacritty.app", TerminalType.ALACRITTY),
    ("Ghostty.app", TerminalType.GHOSTTY),
)

# psutil raises ValueError for negative pids and TypeError for non-ints
_LOOKUP_ERRORS = (psutil.Error, ValueError, TypeError)


class ProcessInspector:
    """Queries the host process table for a discovery pass.

    Holds only configuration; every call reads current OS state.
    """

    def __init__(
        self,
        background_process_names: Iterable[str] = DEFAULT_BACKGROUND_PROCESS_NAMES,
        cpu_sample_window: float = DEFAULT_CPU_SAMPLE_WINDOW,
        cpu_working_threshold: float = DEFAULT_CPU_WORKING_THRESHOLD,
        terminal_search_depth: int = DEFAULT_TERMINAL_SEARCH_DEPTH,
    ):
        """Initialize the inspector.

        Args:
            background_process_names: Child executable names that never count
                as tool activity.
            cpu_sample_window: Seconds is_working samples CPU over.
            cpu_working_threshold: CPU percent above which a process counts as working.
            terminal_search_depth: Maximum ancestors walked by detect_terminal_kind.
        """
        self.background_process_names = frozenset(background_process_names)
        self.cpu_sample_window = cpu_sample_window
        self.cpu_working_threshold = cpu_working_threshold
        self.terminal_search_depth = terminal_search_depth

    # =========================================================================
    # Enumeration
    # =========================================================================

    def list_all_process_ids(self) -> list[int]:
        """Return the pids of all live processes, in ascending order."""
        try:
            return sorted(psutil.pids())
        except (psutil.Error, OSError) as e:
            logger.warning(f"Failed to enumerate processes: {e}")
            return []

    def parent_lookup(self) -> dict[int, int]:
        """Map every readable pid to its parent pid."""
        parents: dict[int, int] = {}
        for proc in psutil.process_iter(["ppid"]):
            ppid = proc.info.get("ppid")
            if proc.pid > 0 and ppid is not None:
                parents[proc.pid] = ppid
        return parents

    def build_parent_child_map(self, scope: Iterable[int] | None = None) -> ParentChildMap:
        """Build a parent -> children adjacency map.

        Args:
            scope: Pids of interest. When empty or None the map covers every
                process. Otherwise keys and children are limited to the scope
                and its transitive descendants, so callers never probe
                unrelated processes.

        Returns:
            Mapping of parent pid to the list of its child pids.
        """
        parents = self.parent_lookup()
        scope_set = set(scope or ())

        if not scope_set:
            full: ParentChildMap = {}
            for child, parent in parents.items():
                full.setdefault(parent, []).append(child)
            return full

        children_of: dict[int, list[int]] = {}
        for child, parent in parents.items():
            children_of.setdefault(parent, []).append(child)

        relevant = set(scope_set)
        queue = deque(scope_set)
        while queue:
            current = queue.popleft()
            for child in children_of.get(current, []):
                if child not in relevant:
                    relevant.add(child)
                    queue.append(child)

        scoped: ParentChildMap = {}
        for child in sorted(relevant):
            parent = parents.get(child)
            if parent in relevant:
                scoped.setdefault(parent, []).append(child)
        return scoped

    # =========================================================================
    # Per-process lookups
    # =========================================================================

    def process_executable_path(self, pid: int) -> str | None:
        """Absolute executable path, or None if the process is gone or unreadable."""
        try:
            path = psutil.Process(pid).exe()
        except _LOOKUP_ERRORS:
            return None
        return path or None

    def process_name(self, pid: int) -> str | None:
        """Executable base name, or None if the process is gone or unreadable."""
        path = self.process_executable_path(pid)
        if not path:
            return None
        return os.path.basename(path)

    def parent_pid(self, pid: int) -> int | None:
        """Parent pid from the system-wide process table, or None."""
        try:
            return psutil.Process(pid).ppid()
        except _LOOKUP_ERRORS:
            return None

    def _cpu_seconds(self, pid: int) -> float | None:
        try:
            times = psutil.Process(pid).cpu_times()
        except _LOOKUP_ERRORS:
            return None
        return times.user + times.system

    def cpu_usage_percent(self, pid: int, window: float | None = None) -> float:
        """Share of one core the process used over a sampling window.

        Blocks the calling thread for the whole window.

        Args:
            pid: Process to sample.
            window: Seconds between the two snapshots. Defaults to the
                configured sample window.

        Returns:
            CPU percentage, or 0.0 if the pid is invalid at either snapshot.
        """
        window = self.cpu_sample_window if window is None else window
        if window <= 0:
            return 0.0

        before = self._cpu_seconds(pid)
        if before is None:
            return 0.0

        time.sleep(window)

        after = self._cpu_seconds(pid)
        if after is None:
            return 0.0

        cpu_ns = (after - before) * 1_000_000_000
        window_ns = window * 1_000_000_000
        return (cpu_ns / window_ns) * 100.0

    # =========================================================================
    # Heuristics
    # =========================================================================

    def detect_terminal_kind(self, pid: int) -> TerminalType:
        """Find the terminal emulator that launched a process.

        Walks from the process itself up its ancestors, matching each
        executable path against TERMINAL_PATH_PATTERNS. Stops at the depth
        bound, an unresolvable parent, pid 0, or a process that is its own parent.
        """
        current = pid
        for _ in range(self.terminal_search_depth):
            path = self.process_executable_path(current)
            if path:
                for pattern, terminal_type in TERMINAL_PATH_PATTERNS:
                    if pattern in path:
                        return terminal_type

            parent = self.parent_pid(current)
            if parent is None or parent <= 0 or parent == current:
                break
            current = parent

        return TerminalType.UNKNOWN

    def is_working(self, pid: int, parent_child_map: ParentChildMap) -> bool:
        """Guess whether an agent process is busy.

        A direct child that is not a background helper means a tool is
        running. Failing that, CPU usage above the threshold over a short
        window counts as working.

        Args:
            pid: Agent process id.
            parent_child_map: Map from build_parent_child_map for this pass.

        Returns:
            True when the process looks busy.
        """
        for child in parent_child_map.get(pid, []):
            name = self.process_name(child)
            if name is not None and name not in self.background_process_names:
                logger.debug(f"pid {pid} has tool child {child} ({name})")
                return True

        return self.cpu_usage_percent(pid, self.cpu_sample_window) > self.cpu_working_threshold
