"""Pytest configuration and shared fixtures for Copilot Sessions tests."""

import json
from pathlib import Path

import pytest

from copilot_sessions.services.config_service import reset_config_service
from copilot_sessions.services.session_poller import reset_session_poller


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset module singletons between tests."""
    reset_config_service()
    reset_session_poller()
    yield
    reset_config_service()
    reset_session_poller()


@pytest.fixture
def session_root(tmp_path):
    """Empty session-state directory."""
    root = tmp_path / "session-state"
    root.mkdir()
    return root


class SessionDirBuilder:
    """Writes session directories in the producer's on-disk layout."""

    def __init__(self, root: Path):
        self.root = root

    @staticmethod
    def user_message(content: str, timestamp: str = "2026-02-14T21:01:00Z") -> dict:
        return {"type": "user.message", "timestamp": timestamp, "data": {"content": content}}

    @staticmethod
    def event(event_type: str, timestamp: str = "2026-02-14T21:02:00Z") -> dict:
        return {"type": event_type, "timestamp": timestamp, "data": {}}

    def dir(self, sid: str) -> Path:
        path = self.root / sid
        path.mkdir(parents=True, exist_ok=True)
        return path

    def workspace(self, sid: str, **fields: str) -> Path:
        lines = [f"id: {sid}"] + [f"{key}: {value}" for key, value in fields.items()]
        path = self.dir(sid) / "workspace.yaml"
        path.write_text("\n".join(lines) + "\n")
        return path

    def snapshots(self, sid: str, snapshots: list[dict]) -> Path:
        snap_dir = self.dir(sid) / "rewind-snapshots"
        snap_dir.mkdir(exist_ok=True)
        path = snap_dir / "index.json"
        path.write_text(json.dumps({"version": 1, "snapshots": snapshots}))
        return path

    def events(self, sid: str, events: list[dict | str]) -> Path:
        lines = [e if isinstance(e, str) else json.dumps(e) for e in events]
        path = self.dir(sid) / "events.jsonl"
        path.write_text("\n".join(lines) + ("\n" if lines else ""))
        return path


@pytest.fixture
def builder(session_root):
    """Helper for creating session directories under session_root."""
    return SessionDirBuilder(session_root)
