"""
tests/test_stats.py

procfs toggle of kernel.bpf_stats_enabled, against a temporary file.
"""
from __future__ import annotations

import pytest

from bpf_metrics.errors import AdapterError
from bpf_metrics.stats import disable_stats_procfs, enable_stats_procfs, is_stats_enabled_procfs


class TestProcfsToggle:

    def test_enable_then_disable(self, tmp_path):
        path = tmp_path / "bpf_stats_enabled"
        path.write_text("0\n")

        enable_stats_procfs(path)
        assert path.read_text() == "1"
        assert is_stats_enabled_procfs(path) is True

        disable_stats_procfs(path)
        assert is_stats_enabled_procfs(path) is False

    def test_trailing_newline_is_tolerated(self, tmp_path):
        path = tmp_path / "bpf_stats_enabled"
        path.write_text("1\n")
        assert is_stats_enabled_procfs(path)

    def test_unreadable_path(self, tmp_path):
        with pytest.raises(AdapterError, match="cannot read") as excinfo:
            is_stats_enabled_procfs(tmp_path / "missing")
        assert excinfo.value.subject == "bpf_stats"

    def test_unwritable_path(self, tmp_path):
        with pytest.raises(AdapterError, match="cannot write"):
            enable_stats_procfs(tmp_path / "no" / "such" / "dir")
