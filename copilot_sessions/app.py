"""Copilot Sessions - run the session engine as a foreground poller.

Loads config.yaml, starts the background poller and logs every refreshed
session list until interrupted. Presentation layers (menu bar, widget, picker)
are expected to build on SessionDataSource or SessionPoller instead.
"""

import logging
import threading

from copilot_sessions.models.session import Session
from copilot_sessions.services.config_service import get_config_service
from copilot_sessions.services.session_data_source import SessionDataSource
from copilot_sessions.services.session_poller import SessionPoller

logger = logging.getLogger(__name__)


def format_session_line(session: Session) -> str:
    """One-line summary of a session for the log."""
    parts = [session.status_emoji, session.display_label]
    if session.display_repo_name:
        parts.append(f"[{session.display_repo_name}]")
    if session.is_active:
        parts.append(f"pid={session.pid} tty={session.tty or '?'} {session.terminal_type.icon}")
    if session.relative_age:
        parts.append(session.relative_age)
    return " ".join(parts)


def log_sessions(sessions: list[Session]) -> None:
    active = sum(1 for s in sessions if s.is_active)
    logger.info(f"{len(sessions)} sessions, {active} active")
    for session in sessions:
        logger.info(f"  {format_session_line(session)}")


def create_poller(config_path: str = "config.yaml") -> SessionPoller:
    """Build a poller from configuration."""
    config = get_config_service(config_path).get_config()
    data_source = SessionDataSource.from_config(config)
    return SessionPoller(data_source, interval=config.poll_interval, on_update=log_sessions)


def main():
    """Run the session poller until interrupted."""
    config = get_config_service().get_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    poller = create_poller()
    logger.info(f"Watching {config.session_root_path}")
    poller.start()
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        poller.stop()


if __name__ == "__main__":
    main()
