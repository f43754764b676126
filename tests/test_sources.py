"""
tests/test_sources.py

bpftool data source with a mocked subprocess.
"""
from __future__ import annotations

import json
import subprocess
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from bpf_metrics.errors import AdapterError
from bpf_metrics.facade import BpfMetrics
from bpf_metrics.models.contracts import Snapshot
from bpf_metrics.registry.kinds import LinkMetric, ProgMetric, SubjectKind
from bpf_metrics.sources.bpftool import BpftoolSource, normalize

from tests.conftest import fixed_clock

BPFTOOL_PROGS = [
    {
        "id": 42,
        "type": "tracepoint",
        "name": "sys_enter",
        "tag": "a04f5eef06a7f555",
        "gpl_compatible": True,
        "run_time_ns": 81632,
        "run_cnt": 10,
        "loaded_at": 1700000000,
        "uid": 0,
        "bytes_xlated": 120,
        "jited": True,
        "bytes_jited": 85,
        "bytes_memlock": 4096,
        "map_ids": [4],
        "verified_insns": 15,
    },
    {
        "id": 43,
        "type": "kprobe",
        "tag": "0000000000000001",
        "bytes_xlated": 8,
    },
]


def _completed(stdout: str, returncode: int = 0, stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestNormalize:

    def test_program_fields(self):
        snap = Snapshot.model_validate(normalize(SubjectKind.PROG, BPFTOOL_PROGS[0]))
        assert snap.id == 42
        assert snap.type_name == "tracepoint"
        assert snap.tag == 0xA04F5EEF06A7F555
        assert snap.loaded_at == datetime.fromtimestamp(1700000000, tz=timezone.utc)
        assert snap.numeric_fields == {
            "run_time_ns": 81632,
            "run_cnt": 10,
            "bytes_xlated": 120,
            "bytes_jited": 85,
            "bytes_memlock": 4096,
            "verified_insns": 15,
        }

    def test_missing_name_is_empty(self):
        assert normalize(SubjectKind.PROG, BPFTOOL_PROGS[1])["name"] == ""

    def test_link_keeps_program_id(self):
        obj = {"id": 5, "type": "tracing", "prog_id": 42, "attach_type": "trace_fentry"}
        assert normalize(SubjectKind.LINK, obj)["numeric_fields"] == {"prog_id": 42}


class TestBpftoolSource:

    def test_runs_bpftool_with_json(self):
        source = BpftoolSource("/usr/sbin/bpftool", timeout=2.0)
        with patch("bpf_metrics.sources.bpftool.subprocess.run",
                   return_value=_completed(json.dumps(BPFTOOL_PROGS))) as run:
            records = list(source.list_snapshots(SubjectKind.PROG))

        assert run.call_args.args[0] == ["/usr/sbin/bpftool", "--json", "prog", "show"]
        assert run.call_args.kwargs["timeout"] == 2.0
        assert [r["id"] for r in records] == [42, 43]

    def test_missing_binary(self):
        with patch("bpf_metrics.sources.bpftool.subprocess.run", side_effect=FileNotFoundError):
            with pytest.raises(AdapterError, match="not found") as excinfo:
                BpftoolSource("nope").list_snapshots(SubjectKind.MAP)
        assert excinfo.value.subject == "map"

    def test_timeout(self):
        err = subprocess.TimeoutExpired(cmd="bpftool", timeout=1)
        with patch("bpf_metrics.sources.bpftool.subprocess.run", side_effect=err):
            with pytest.raises(AdapterError, match="timed out"):
                BpftoolSource().list_snapshots(SubjectKind.PROG)

    def test_non_zero_exit(self):
        failed = _completed("", returncode=255, stderr="Error: can't get next program: Operation not permitted")
        with patch("bpf_metrics.sources.bpftool.subprocess.run", return_value=failed):
            with pytest.raises(AdapterError, match="Operation not permitted"):
                BpftoolSource().list_snapshots(SubjectKind.PROG)

    def test_invalid_json(self):
        with patch("bpf_metrics.sources.bpftool.subprocess.run", return_value=_completed("{oops")):
            with pytest.raises(AdapterError, match="invalid JSON"):
                BpftoolSource().list_snapshots(SubjectKind.PROG)

    def test_non_list_json(self):
        with patch("bpf_metrics.sources.bpftool.subprocess.run", return_value=_completed("{}")):
            with pytest.raises(AdapterError, match="JSON list"):
                BpftoolSource().list_snapshots(SubjectKind.LINK)

    def test_drives_a_collect_cycle(self):
        outputs = {
            "prog": _completed(json.dumps(BPFTOOL_PROGS)),
            "link": _completed("", returncode=1, stderr="boom"),
        }
        metrics = BpfMetrics(BpftoolSource(), clock=fixed_clock)
        metrics.register_prog_metrics([ProgMetric.RUN_COUNT])
        metrics.register_link_metrics([LinkMetric.ATTACHED])

        with patch("bpf_metrics.sources.bpftool.subprocess.run",
                   side_effect=lambda cmd, **kw: outputs[cmd[2]]):
            result = metrics.scrape()

        assert [e.subject for e in result.errors] == ["link"]
        assert 'name="sys_enter"' in result.payload
        # unnamed program 43 is not fully initialized yet
        assert 'id="43"' not in result.payload
