"""Application configuration models with Pydantic validation."""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator


class ProcessConfig(BaseModel):
    """How agent processes and their open session files are recognised."""

    agent_fragment: str = Field(
        default="copilot-darwin",
        description="Substring of the ps command line that marks an agent process",
    )
    lsof_command_name: str = Field(
        default="copilot",
        description="Command-name prefix passed to lsof -c",
    )
    session_root_segment: str = Field(
        default="session-state",
        description="Directory segment that holds per-session directories",
    )
    marker_file: str = Field(
        default="session.db",
        description="File an agent holds open inside its session directory",
    )
    command_timeout: int = Field(
        default=5,
        ge=1,
        le=60,
        description="Timeout in seconds for ps/lsof invocations",
    )


class ActivityConfig(BaseModel):
    """Thresholds for the working/waiting heuristic."""

    background_process_names: list[str] = Field(
        default_factory=lambda: ["npm", "node", "azmcp"],
        description="Long-lived helper children that do not indicate tool work",
    )
    cpu_sample_window: float = Field(
        default=0.05,
        gt=0,
        le=5.0,
        description="Seconds to sample CPU usage over",
    )
    cpu_working_threshold: float = Field(
        default=2.0,
        ge=0,
        le=100.0,
        description="CPU percent above which an idle-looking process counts as working",
    )
    event_tail_bytes: int = Field(
        default=4096,
        ge=256,
        le=1024 * 1024,
        description="Bytes read from the end of events.jsonl",
    )
    terminal_search_depth: int = Field(
        default=15,
        ge=1,
        le=64,
        description="Maximum ancestors walked to find the terminal emulator",
    )


class AppConfig(BaseModel):
    """Root application configuration.

    Loaded from config.yaml by ConfigService.
    """

    session_root: str = Field(
        default="~/.copilot/session-state",
        description="Directory holding one subdirectory per session",
    )
    poll_interval: int = Field(
        default=5,
        ge=1,
        le=300,
        description="Seconds between background session refreshes",
    )
    topic_max_length: int = Field(
        default=35,
        ge=8,
        le=200,
        description="Maximum topic length before ellipsis truncation",
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )
    process: ProcessConfig = Field(default_factory=ProcessConfig)
    activity: ActivityConfig = Field(default_factory=ActivityConfig)

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        if isinstance(value, str):
            return value.upper()
        return value

    @property
    def session_root_path(self) -> Path:
        """session_root with ~ expanded."""
        return Path(self.session_root).expanduser()
