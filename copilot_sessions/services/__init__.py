"""Services for Copilot Sessions."""

from copilot_sessions.services.activity_classifier import ActivityClassifier, read_last_event_type
from copilot_sessions.services.config_service import (
    ConfigService,
    get_config_service,
    reset_config_service,
)
from copilot_sessions.services.metadata_reader import (
    MergeRule,
    MetadataSource,
    SessionMetadataReader,
    merge_field,
    parse_timestamp,
)
from copilot_sessions.services.process_correlator import ProcessCorrelator
from copilot_sessions.services.process_inspector import ProcessInspector
from copilot_sessions.services.session_data_source import (
    SessionDataSource,
    group_sessions_by_repository,
    sort_sessions,
)
from copilot_sessions.services.session_poller import (
    SessionPoller,
    get_session_poller,
    reset_session_poller,
)
from copilot_sessions.services.topic_extractor import extract_topic

__all__ = [
    "ActivityClassifier",
    "ConfigService",
    "MergeRule",
    "MetadataSource",
    "ProcessCorrelator",
    "ProcessInspector",
    "SessionDataSource",
    "SessionMetadataReader",
    "SessionPoller",
    "extract_topic",
    "get_config_service",
    "get_session_poller",
    "group_sessions_by_repository",
    "merge_field",
    "parse_timestamp",
    "read_last_event_type",
    "reset_config_service",
    "reset_session_poller",
    "sort_sessions",
]
