"""Tests for ProcessInspector."""

import os
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import psutil
import pytest

from copilot_sessions.models.session import TerminalType
from copilot_sessions.services.process_inspector import (
    DEFAULT_BACKGROUND_PROCESS_NAMES,
    ProcessInspector,
)

# Far above any real pid_max, so never a live process
MISSING_PID = 2**30


@pytest.fixture
def inspector():
    return ProcessInspector()


def _fake_proc(pid, ppid):
    return SimpleNamespace(pid=pid, info={"ppid": ppid})


class TestBuildParentChildMap:
    """Tests for parent -> children adjacency."""

    TREE = {
        # pid: ppid
        1: 0,
        50: 1,  # terminal
        100: 50,  # agent
        200: 100,  # node helper
        201: 100,  # bash tool
        300: 201,  # grandchild
        400: 1,  # unrelated app
        401: 400,  # unrelated child
    }

    @pytest.fixture
    def patched(self, inspector):
        with patch(
            "copilot_sessions.services.process_inspector.psutil.process_iter",
            return_value=[_fake_proc(pid, ppid) for pid, ppid in self.TREE.items()],
        ):
            yield inspector

    def test_unscoped_map_covers_all(self, patched):
        result = patched.build_parent_child_map()

        assert sorted(result[1]) == [50, 400]
        assert sorted(result[100]) == [200, 201]
        assert result[400] == [401]

    def test_scoped_map_only_has_scope_and_descendants(self, patched):
        result = patched.build_parent_child_map({100})

        assert set(result) == {100, 201}
        assert sorted(result[100]) == [200, 201]
        assert result[201] == [300]
        assert 400 not in result
        assert all(child not in (400, 401, 50) for children in result.values() for child in children)

    def test_scope_without_children(self, patched):
        assert patched.build_parent_child_map({300}) == {}

    def test_skips_unreadable_parents(self, inspector):
        procs = [_fake_proc(10, 1), _fake_proc(11, None)]
        with patch(
            "copilot_sessions.services.process_inspector.psutil.process_iter",
            return_value=procs,
        ):
            assert inspector.build_parent_child_map() == {1: [10]}

    def test_real_process_table_contains_self(self, inspector):
        result = inspector.build_parent_child_map()
        assert any(os.getpid() in children for children in result.values())

    def test_real_scoped_map_for_self(self, inspector):
        result = inspector.build_parent_child_map({os.getpid()})
        assert os.getppid() not in result


class TestProcessLookups:
    """Tests for name/path/parent lookups on real and missing pids."""

    def test_list_all_process_ids_contains_self(self, inspector):
        pids = inspector.list_all_process_ids()
        assert os.getpid() in pids
        assert pids == sorted(pids)

    def test_process_name_of_self(self, inspector):
        name = inspector.process_name(os.getpid())
        assert name

    def test_process_name_of_missing_pid_is_none(self, inspector):
        assert inspector.process_name(MISSING_PID) is None

    def test_process_name_of_negative_pid_is_none(self, inspector):
        assert inspector.process_name(-1) is None

    def test_executable_path_of_missing_pid_is_none(self, inspector):
        assert inspector.process_executable_path(MISSING_PID) is None

    def test_parent_pid_of_self(self, inspector):
        assert inspector.parent_pid(os.getpid()) == os.getppid()

    def test_process_name_of_unreadable_executable_is_none(self, inspector):
        proc = MagicMock()
        proc.exe.side_effect = psutil.AccessDenied(123)
        proc.name.return_value = "bash"
        with patch("copilot_sessions.services.process_inspector.psutil.Process", return_value=proc):
            assert inspector.process_name(123) is None

    def test_process_name_uses_executable_basename(self, inspector):
        proc = MagicMock()
        proc.exe.return_value = "/usr/local/bin/copilot-darwin-arm64"
        with patch("copilot_sessions.services.process_inspector.psutil.Process", return_value=proc):
            assert inspector.process_name(123) == "copilot-darwin-arm64"


class TestCpuUsagePercent:
    """Tests for CPU sampling."""

    def test_missing_pid_is_zero(self, inspector):
        assert inspector.cpu_usage_percent(MISSING_PID, window=0.01) == 0.0

    def test_self_is_non_negative(self, inspector):
        assert inspector.cpu_usage_percent(os.getpid(), window=0.01) >= 0.0

    def test_delta_over_window(self, inspector):
        proc = MagicMock()
        proc.cpu_times.side_effect = [
            SimpleNamespace(user=1.0, system=0.5),
            SimpleNamespace(user=1.02, system=0.505),
        ]
        with (
            patch("copilot_sessions.services.process_inspector.psutil.Process", return_value=proc),
            patch("copilot_sessions.services.process_inspector.time.sleep") as mock_sleep,
        ):
            usage = inspector.cpu_usage_percent(123, window=0.1)

        mock_sleep.assert_called_once_with(0.1)
        assert usage == pytest.approx(25.0)

    def test_process_exits_during_window(self, inspector):
        proc = MagicMock()
        proc.cpu_times.side_effect = [
            SimpleNamespace(user=1.0, system=0.5),
            psutil.NoSuchProcess(123),
        ]
        with (
            patch("copilot_sessions.services.process_inspector.psutil.Process", return_value=proc),
            patch("copilot_sessions.services.process_inspector.time.sleep"),
        ):
            assert inspector.cpu_usage_percent(123, window=0.1) == 0.0


class TestDetectTerminalKind:
    """Tests for the ancestry walk."""

    def _patch_tree(self, inspector, paths, parents):
        return (
            patch.object(inspector, "process_executable_path", side_effect=paths.get),
            patch.object(inspector, "parent_pid", side_effect=parents.get),
        )

    def test_finds_terminal_ancestor(self, inspector):
        paths = {
            100: "/opt/homebrew/bin/copilot-darwin",
            90: "/bin/zsh",
            80: "/Applications/iTerm2.app/Contents/MacOS/iTerm2",
        }
        parents = {100: 90, 90: 80, 80: 1}
        path_patch, parent_patch = self._patch_tree(inspector, paths, parents)
        with path_patch, parent_patch:
            assert inspector.detect_terminal_kind(100) == TerminalType.ITERM2

    def test_ghostty(self, inspector):
        paths = {100: "/bin/zsh", 80: "/Applications/Ghostty.app/Contents/MacOS/ghostty"}
        parents = {100: 80}
        path_patch, parent_patch = self._patch_tree(inspector, paths, parents)
        with path_patch, parent_patch:
            assert inspector.detect_terminal_kind(100) == TerminalType.GHOSTTY

    def test_stops_at_pid_zero(self, inspector):
        paths = {100: "/bin/zsh"}
        parents = {100: 0}
        path_patch, parent_patch = self._patch_tree(inspector, paths, parents)
        with path_patch, parent_patch as mock_parent:
            assert inspector.detect_terminal_kind(100) == TerminalType.UNKNOWN
        assert mock_parent.call_count == 1

    def test_stops_on_self_loop(self, inspector):
        paths = {100: "/bin/zsh"}
        parents = {100: 100}
        path_patch, parent_patch = self._patch_tree(inspector, paths, parents)
        with path_patch, parent_patch as mock_parent:
            assert inspector.detect_terminal_kind(100) == TerminalType.UNKNOWN
        assert mock_parent.call_count == 1

    def test_depth_bound(self, inspector):
        # A chain longer than the bound with the terminal beyond reach
        paths = {pid: "/bin/zsh" for pid in range(1000, 1020)}
        paths[1019] = "/Applications/kitty.app/Contents/MacOS/kitty"
        parents = {pid: pid + 1 for pid in range(1000, 1019)}
        path_patch, parent_patch = self._patch_tree(inspector, paths, parents)
        with path_patch, parent_patch:
            assert inspector.detect_terminal_kind(1000) == TerminalType.UNKNOWN

    def test_within_depth_bound(self, inspector):
        paths = {pid: "/bin/zsh" for pid in range(1000, 1015)}
        paths[1014] = "/Applications/kitty.app/Contents/MacOS/kitty"
        parents = {pid: pid + 1 for pid in range(1000, 1014)}
        path_patch, parent_patch = self._patch_tree(inspector, paths, parents)
        with path_patch, parent_patch:
            assert inspector.detect_terminal_kind(1000) == TerminalType.KITTY

    def test_missing_pid_is_unknown(self, inspector):
        assert inspector.detect_terminal_kind(MISSING_PID) == TerminalType.UNKNOWN


class TestIsWorking:
    """Tests for the child-process / CPU heuristic."""

    def test_default_background_names(self):
        assert {"npm", "node", "azmcp"} <= DEFAULT_BACKGROUND_PROCESS_NAMES
        assert "bash" not in DEFAULT_BACKGROUND_PROCESS_NAMES
        assert "git" not in DEFAULT_BACKGROUND_PROCESS_NAMES

    def test_tool_child_means_working(self, inspector):
        names = {200: "node", 201: "bash"}
        with (
            patch.object(inspector, "process_name", side_effect=names.get),
            patch.object(inspector, "cpu_usage_percent") as mock_cpu,
        ):
            assert inspector.is_working(100, {100: [200, 201]}) is True
        mock_cpu.assert_not_called()

    def test_background_children_fall_back_to_cpu(self, inspector):
        names = {200: "npm", 201: "node"}
        with (
            patch.object(inspector, "process_name", side_effect=names.get),
            patch.object(inspector, "cpu_usage_percent", return_value=0.5) as mock_cpu,
        ):
            assert inspector.is_working(100, {100: [200, 201]}) is False
        mock_cpu.assert_called_once_with(100, 0.05)

    def test_vanished_child_is_not_a_tool(self, inspector):
        with (
            patch.object(inspector, "process_name", return_value=None),
            patch.object(inspector, "cpu_usage_percent", return_value=0.0),
        ):
            assert inspector.is_working(100, {100: [200, 300]}) is False

    def test_unreadable_child_falls_back_to_cpu(self, inspector):
        proc = MagicMock()
        proc.exe.side_effect = psutil.AccessDenied(200)
        proc.name.return_value = "bash"
        with (
            patch("copilot_sessions.services.process_inspector.psutil.Process", return_value=proc),
            patch.object(inspector, "cpu_usage_percent", return_value=0.0) as mock_cpu,
        ):
            assert inspector.is_working(100, {100: [200]}) is False
        mock_cpu.assert_called_once_with(100, 0.05)

    def test_high_cpu_means_working(self, inspector):
        with patch.object(inspector, "cpu_usage_percent", return_value=2.5):
            assert inspector.is_working(100, {}) is True

    def test_cpu_at_threshold_is_not_working(self, inspector):
        with patch.object(inspector, "cpu_usage_percent", return_value=2.0):
            assert inspector.is_working(100, {}) is False

    def test_missing_pid_not_working(self, inspector):
        assert inspector.is_working(MISSING_PID, {}) is False

    def test_custom_background_names(self):
        inspector = ProcessInspector(background_process_names=["bash"])
        with (
            patch.object(inspector, "process_name", return_value="bash"),
            patch.object(inspector, "cpu_usage_percent", return_value=0.0),
        ):
            assert inspector.is_working(100, {100: [200]}) is False
