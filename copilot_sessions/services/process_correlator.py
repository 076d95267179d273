"""Correlate running agent processes with sessions via ps and lsof.

These are OS utilities invoked as subprocesses. A missing tool, a timeout or
a non-zero exit all produce an empty result so the discovery pass carries on.
"""

import logging
import re
import subprocess

from copilot_sessions.models.process import PidSessionLink, ProcessRecord

logger = logging.getLogger(__name__)

DEFAULT_AGENT_FRAGMENT = "copilot-darwin"
DEFAULT_LSOF_COMMAND_NAME = "copilot"
DEFAULT_SESSION_ROOT_SEGMENT = "session-state"
DEFAULT_MARKER_FILE = "session.db"

# pid, tty, five lstart fields, then the command
_PS_MIN_FIELDS = 7


def _run_command(*args: str, timeout: int = 5) -> tuple[int, str, str]:
    """Run an external command.

    Args:
        *args: Command and its arguments.
        timeout: Command timeout in seconds.

    Returns:
        Tuple of (return_code, stdout, stderr).
    """
    try:
        result = subprocess.run(
            list(args),
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
        )
        return (result.returncode, result.stdout or "", result.stderr or "")
    except subprocess.TimeoutExpired:
        return (1, "", "Command timed out")
    except FileNotFoundError:
        return (1, "", f"{args[0]} not found")
    except OSError as e:
        return (1, "", str(e))


class ProcessCorrelator:
    """Maps agent processes to TTYs and to the sessions they hold open."""

    def __init__(
        self,
        agent_fragment: str = DEFAULT_AGENT_FRAGMENT,
        lsof_command_name: str = DEFAULT_LSOF_COMMAND_NAME,
        session_root_segment: str = DEFAULT_SESSION_ROOT_SEGMENT,
        marker_file: str = DEFAULT_MARKER_FILE,
        command_timeout: int = 5,
    ):
        """Initialize the correlator.

        Args:
            agent_fragment: Substring that identifies an agent in ps output.
            lsof_command_name: Command-name prefix for lsof -c.
            session_root_segment: Directory segment holding session directories.
            marker_file: File an agent keeps open inside its session directory.
            command_timeout: Seconds before ps/lsof are abandoned.
        """
        self.agent_fragment = agent_fragment
        self.lsof_command_name = lsof_command_name
        self.session_root_segment = session_root_segment
        self.marker_file = marker_file
        self.command_timeout = command_timeout
        self._session_path_pattern = re.compile(
            re.escape(session_root_segment) + r"/([A-Za-z0-9-]+)/"
        )

    def running_agent_processes(self) -> dict[str, ProcessRecord]:
        """List running agent processes keyed by pid.

        Returns:
            Mapping of pid string to ProcessRecord, empty if ps is unavailable.
        """
        code, stdout, stderr = _run_command(
            "ps", "-eo", "pid,tty,lstart,command", timeout=self.command_timeout
        )
        if code != 0:
            logger.warning(f"ps failed: {stderr.strip()}")
            return {}
        return self.parse_ps_output(stdout)

    def parse_ps_output(self, output: str) -> dict[str, ProcessRecord]:
        """Extract agent processes from `ps -eo pid,tty,lstart,command` output."""
        records: dict[str, ProcessRecord] = {}
        for line in output.splitlines():
            if self.agent_fragment not in line or "grep" in line:
                continue
            parts = line.split()
            if len(parts) < _PS_MIN_FIELDS:
                continue
            pid, tty = parts[0], parts[1]
            records[pid] = ProcessRecord(pid=pid, tty=tty, started=" ".join(parts[2:7]))
        return records

    def pid_to_session_id(self) -> PidSessionLink:
        """Map agent pids to the session directories they hold open.

        Returns:
            PidSessionLink, empty if lsof is unavailable.
        """
        code, stdout, stderr = _run_command(
            "lsof", "-c", self.lsof_command_name, timeout=self.command_timeout
        )
        # lsof exits 1 when some files could not be reported; the listing is still usable
        if code != 0 and not stdout:
            logger.warning(f"lsof failed: {stderr.strip()}")
            return PidSessionLink()
        return self.parse_lsof_output(stdout)

    def parse_lsof_output(self, output: str) -> PidSessionLink:
        """Extract pid -> session id pairs from lsof output. First match per pid wins."""
        link = PidSessionLink()
        for line in output.splitlines():
            if self.session_root_segment not in line or self.marker_file not in line:
                continue
            parts = line.split()
            if len(parts) < 2:
                continue
            match = self._session_path_pattern.search(line)
            if not match:
                continue
            link.pid_to_session.setdefault(parts[1], match.group(1))
        return link
