"""Tests for ConfigService."""

from pathlib import Path

import pytest
import yaml

from copilot_sessions.models.config import AppConfig
from copilot_sessions.services.config_service import (
    ConfigService,
    get_config_service,
    reset_config_service,
)


@pytest.fixture
def config_file(tmp_path):
    return tmp_path / "config.yaml"


class TestConfigServiceLoad:
    """Tests for loading configuration."""

    def test_load_defaults_when_no_file(self, tmp_path):
        """Returns default config when file doesn't exist."""
        config = ConfigService(tmp_path / "nonexistent.yaml").load()

        assert config.poll_interval == 5
        assert config.topic_max_length == 35
        assert config.session_root == "~/.copilot/session-state"
        assert config.process.agent_fragment == "copilot-darwin"
        assert config.process.marker_file == "session.db"
        assert config.activity.background_process_names == ["npm", "node", "azmcp"]
        assert config.activity.event_tail_bytes == 4096

    def test_load_from_yaml(self, config_file):
        config_file.write_text(
            """
session_root: /tmp/sessions
poll_interval: 10
log_level: debug
process:
  lsof_command_name: agent
activity:
  background_process_names: [node]
  cpu_working_threshold: 5.5
"""
        )

        config = ConfigService(config_file).load()

        assert config.session_root_path == Path("/tmp/sessions")
        assert config.poll_interval == 10
        assert config.log_level == "DEBUG"
        assert config.process.lsof_command_name == "agent"
        assert config.process.agent_fragment == "copilot-darwin"
        assert config.activity.background_process_names == ["node"]
        assert config.activity.cpu_working_threshold == 5.5

    def test_load_handles_invalid_yaml(self, config_file):
        """Returns defaults for invalid YAML."""
        config_file.write_text("invalid: yaml: content: [")

        assert ConfigService(config_file).load().poll_interval == 5

    def test_load_handles_validation_error(self, config_file):
        """Returns defaults for out-of-range values."""
        config_file.write_text("poll_interval: 1000\n")

        assert ConfigService(config_file).load().poll_interval == 5

    def test_load_handles_non_mapping(self, config_file):
        config_file.write_text("- just\n- a list\n")

        assert ConfigService(config_file).load() == AppConfig()

    def test_empty_file_gives_defaults(self, config_file):
        config_file.write_text("")

        assert ConfigService(config_file).load() == AppConfig()


class TestConfigUnknownKeys:
    """Tests for keys outside the AppConfig layout."""

    def test_top_level_section_keys_are_ignored(self, config_file):
        config_file.write_text("agent_fragment: my-agent\nbackground_process_names: [npm]\n")

        config = ConfigService(config_file).load()

        assert config.process.agent_fragment == "copilot-darwin"
        assert config.activity.background_process_names == ["npm", "node", "azmcp"]

    def test_scan_interval_is_not_poll_interval(self, config_file):
        config_file.write_text("scan_interval: 7\n")

        assert ConfigService(config_file).load().poll_interval == 5


class TestConfigServiceCaching:
    """Tests for get_config/reload."""

    def test_get_config_loads_once(self, config_file):
        config_file.write_text("poll_interval: 5")
        service = ConfigService(config_file)

        config1 = service.get_config()
        config_file.write_text("poll_interval: 10")
        config2 = service.get_config()

        assert config1 is config2
        assert config1.poll_interval == 5

    def test_reload_forces_reload(self, config_file):
        config_file.write_text("poll_interval: 5")
        service = ConfigService(config_file)
        assert service.get_config().poll_interval == 5

        config_file.write_text("poll_interval: 10")

        assert service.reload().poll_interval == 10


class TestConfigServiceSave:
    """Tests for saving configuration."""

    def test_save_writes_yaml(self, config_file):
        service = ConfigService(config_file)
        config = AppConfig(poll_interval=30, activity={"cpu_working_threshold": 3.0})

        assert service.save(config) is True

        saved = yaml.safe_load(config_file.read_text())
        assert saved["poll_interval"] == 30
        assert saved["activity"]["cpu_working_threshold"] == 3.0
        assert service.reload() == config

    def test_save_without_config_fails(self, config_file):
        assert ConfigService(config_file).save() is False

    def test_save_to_missing_directory_fails(self, tmp_path):
        service = ConfigService(tmp_path / "missing" / "config.yaml")

        assert service.save(AppConfig()) is False


class TestConfigServiceSingleton:
    """Tests for the module-level singleton."""

    def test_returns_same_instance(self):
        assert get_config_service() is get_config_service()

    def test_reset_creates_new_instance(self):
        first = get_config_service()
        reset_config_service()

        assert get_config_service() is not first

    def test_path_used_on_first_call(self, config_file):
        service = get_config_service(config_file)

        assert service.config_path == config_file
