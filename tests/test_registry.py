"""
tests/test_registry.py

MetricRegistry: collect cycle, clearing, error isolation, soft skips and locking.
"""
from __future__ import annotations

import threading
from datetime import timedelta

import pytest

from bpf_metrics.errors import AdapterError, ConfigurationError, EncodeError
from bpf_metrics.exposition.decoder import decode
from bpf_metrics.models.labels import ProgLabels
from bpf_metrics.registry.kinds import (
    LinkMetric,
    MapMetric,
    MetricType,
    ProgMetric,
    SubjectKind,
)
from bpf_metrics.registry.registry import MetricRegistry
from bpf_metrics.sources.base import StaticSource

from tests.conftest import NOW, SAMPLE_LINK, SAMPLE_MAP, SAMPLE_PROG, fixed_clock


class FailingSource(StaticSource):
    """Static source whose listing of one subject kind raises."""

    def __init__(self, failing: SubjectKind, records):
        super().__init__(records)
        self.failing = failing

    def list_snapshots(self, subject):
        if subject is self.failing:
            raise PermissionError("operation not permitted")
        return super().list_snapshots(subject)


def _registry(source) -> MetricRegistry:
    registry = MetricRegistry(source=source, clock=fixed_clock)
    registry.register_kind(ProgMetric.RUN_TIME)
    registry.register_kind(ProgMetric.UPTIME)
    registry.register_kind(MapMetric.MAX_ENTRIES)
    registry.register_kind(LinkMetric.ATTACHED)
    return registry


def _prog_values(registry: MetricRegistry, kind: ProgMetric) -> dict[int, int]:
    family = registry.collection(SubjectKind.PROG).family(kind)
    return {labels.id: value for labels, value in family.items()}


class TestRegistration:

    def test_duplicate_kind_fails(self):
        registry = MetricRegistry()
        registry.register_kind(ProgMetric.RUN_TIME)
        with pytest.raises(ConfigurationError):
            registry.register_kind(ProgMetric.RUN_TIME)

    def test_clashing_family_name_fails_and_rolls_back(self):
        """Two kinds exposed under the same name are caught by the collector registry."""
        registry = MetricRegistry()
        registry.register(ProgMetric.RUN_TIME, MetricType.COUNTER, "run_time", "a", "nanoseconds")
        with pytest.raises(ConfigurationError):
            registry.register(ProgMetric.UPTIME, MetricType.COUNTER, "run_time", "b", "nanoseconds")
        assert not registry.is_registered(ProgMetric.UPTIME)

    def test_subject_kinds_in_first_registration_order(self):
        registry = MetricRegistry()
        registry.register_kind(LinkMetric.ATTACHED)
        registry.register_kind(ProgMetric.RUN_COUNT)
        assert registry.subjects == [SubjectKind.LINK, SubjectKind.PROG]

    def test_update_unregistered_kind_is_noop(self):
        registry = MetricRegistry()
        registry.update(ProgMetric.RUN_TIME, ProgLabels(id=1, program_type="xdp", name="x"), 5)
        assert registry.subjects == []
        assert registry.render_text() == "# EOF\n"

    def test_collect_without_source_fails(self):
        with pytest.raises(ConfigurationError):
            MetricRegistry().collect_all()


class TestCollectCycle:

    def test_collects_every_subject_kind(self, source):
        registry = _registry(source)
        assert registry.collect_all() == []

        assert _prog_values(registry, ProgMetric.RUN_TIME) == {7: 1_500_000}
        assert _prog_values(registry, ProgMetric.UPTIME) == {7: 2_000_000_000}
        maps = registry.collection(SubjectKind.MAP).family(MapMetric.MAX_ENTRIES)
        assert [v for _, v in maps.items()] == [1024]
        links = registry.collection(SubjectKind.LINK).family(LinkMetric.ATTACHED)
        assert [(labels.prog_id, v) for labels, v in links.items()] == [(7, 1)]

    def test_unregistered_kinds_are_not_collected(self, source):
        registry = MetricRegistry(source=source, clock=fixed_clock)
        registry.register_kind(ProgMetric.RUN_COUNT)
        registry.collect_all()
        text = registry.render_text()
        assert "run_time" not in text
        assert "bpf_map" not in text

    def test_empty_name_is_never_exported(self):
        unnamed = {**SAMPLE_PROG, "id": 8, "name": ""}
        registry = _registry(StaticSource({SubjectKind.PROG: [SAMPLE_PROG, unnamed]}))
        registry.collect_all()
        assert set(_prog_values(registry, ProgMetric.RUN_TIME)) == {7}
        assert 'id="8"' not in registry.export_text()

    def test_links_without_name_are_kept(self):
        registry = _registry(StaticSource({SubjectKind.LINK: [SAMPLE_LINK]}))
        registry.collect_all()
        assert 'bpf_link_attached{id="11",link_type="perf_event",prog_id="7"} 1' in registry.export_text()

    def test_missing_load_time_only_skips_uptime(self):
        prog = {**SAMPLE_PROG, "loaded_at": None}
        registry = _registry(StaticSource({SubjectKind.PROG: [prog]}))
        registry.collect_all()
        assert _prog_values(registry, ProgMetric.UPTIME) == {}
        assert _prog_values(registry, ProgMetric.RUN_TIME) == {7: 1_500_000}

    def test_future_load_time_only_skips_uptime(self):
        prog = {**SAMPLE_PROG, "loaded_at": NOW + timedelta(seconds=5)}
        registry = _registry(StaticSource({SubjectKind.PROG: [prog]}))
        registry.collect_all()
        assert _prog_values(registry, ProgMetric.UPTIME) == {}

    def test_missing_numeric_field_skips_that_update(self):
        prog = {**SAMPLE_PROG, "numeric_fields": {"run_cnt": 3}}
        registry = _registry(StaticSource({SubjectKind.PROG: [prog]}))
        registry.collect_all()
        assert _prog_values(registry, ProgMetric.RUN_TIME) == {}

    def test_invalid_record_is_skipped_individually(self):
        broken = {"id": -1, "name": "broken"}
        registry = _registry(StaticSource({SubjectKind.PROG: [broken, SAMPLE_PROG]}))
        assert registry.collect_all() == []
        assert set(_prog_values(registry, ProgMetric.RUN_TIME)) == {7}

    def test_value_beyond_u64_drops_only_its_record(self):
        huge = {**SAMPLE_PROG, "id": 8, "numeric_fields": {"run_time_ns": 2**64}}
        registry = _registry(StaticSource({SubjectKind.PROG: [huge, SAMPLE_PROG]}))
        assert registry.collect_all() == []
        assert _prog_values(registry, ProgMetric.RUN_TIME) == {7: 1_500_000}
        assert 'bpf_prog_run_time_nanoseconds_total{id="7"' in registry.export_text()

    def test_negative_counter_value_is_skipped(self):
        negative = {**SAMPLE_PROG, "id": 8, "numeric_fields": {"run_time_ns": -5}}
        registry = _registry(StaticSource({SubjectKind.PROG: [negative, SAMPLE_PROG]}))
        registry.collect_all()
        assert _prog_values(registry, ProgMetric.RUN_TIME) == {7: 1_500_000}
        # the rest of the record still counts
        assert set(_prog_values(registry, ProgMetric.UPTIME)) == {7, 8}
        assert registry.export_text().endswith("# EOF\n")

    def test_gauge_beyond_i64_is_skipped(self):
        big = {**SAMPLE_MAP, "numeric_fields": {"max_entries": 2**63}}
        registry = _registry(StaticSource({SubjectKind.MAP: [big]}))
        registry.collect_all()
        assert len(registry.collection(SubjectKind.MAP).family(MapMetric.MAX_ENTRIES)) == 0
        assert registry.export_text().endswith("# EOF\n")

    def test_failing_source_does_not_abort_other_subjects(self):
        source = FailingSource(SubjectKind.MAP, {
            SubjectKind.PROG: [SAMPLE_PROG],
            SubjectKind.MAP: [SAMPLE_MAP],
            SubjectKind.LINK: [SAMPLE_LINK],
        })
        registry = _registry(source)
        errors = registry.collect_all()

        assert len(errors) == 1
        assert isinstance(errors[0], AdapterError)
        assert errors[0].subject == "map"
        assert _prog_values(registry, ProgMetric.RUN_TIME) == {7: 1_500_000}
        assert len(registry.collection(SubjectKind.LINK).family(LinkMetric.ATTACHED)) == 1
        assert len(registry.collection(SubjectKind.MAP).family(MapMetric.MAX_ENTRIES)) == 0


class TestExportCycle:

    def test_export_clears_families(self, source):
        registry = _registry(source)
        registry.collect_all()
        first = registry.export_text()
        second = registry.export_text()

        assert 'bpf_prog_run_time_nanoseconds_total{id="7"' in first
        sample_lines = [l for l in second.splitlines() if l and not l.startswith("#")]
        assert sample_lines == []
        assert second.endswith("# EOF\n")

    def test_render_does_not_clear(self, source):
        registry = _registry(source)
        registry.collect_all()
        assert registry.render_text() == registry.render_text()
        assert _prog_values(registry, ProgMetric.RUN_TIME) == {7: 1_500_000}

    def test_vanished_instance_is_absent_next_cycle(self, source):
        registry = _registry(source)
        registry.collect_all()
        registry.export_text()
        source.set(SubjectKind.PROG, [])
        registry.collect_all()
        text = registry.export_text()
        assert 'bpf_prog_run_time_nanoseconds_total{id="7"' not in text
        # the link to program 7 is still observed
        assert 'prog_id="7"' in text

    def test_encode_failure_still_clears(self, source):
        registry = _registry(source)
        registry.collect_all()
        registry.update(ProgMetric.RUN_TIME, ProgLabels(id=9, program_type="xdp", name="neg"), -1)

        with pytest.raises(EncodeError):
            registry.export_text()
        assert _prog_values(registry, ProgMetric.RUN_TIME) == {}


class TestLocking:

    def _hold_lock(self, registry: MetricRegistry):
        """Hold ``registry.lock`` in a helper thread until the returned event is set."""
        held, release = threading.Event(), threading.Event()

        def holder():
            with registry.lock:
                held.set()
                release.wait(5)

        thread = threading.Thread(target=holder)
        thread.start()
        assert held.wait(5)
        return release, thread

    def _run_blocked(self, registry: MetricRegistry, call) -> None:
        release, holder = self._hold_lock(registry)
        done = threading.Event()

        def worker():
            call()
            done.set()

        thread = threading.Thread(target=worker)
        thread.start()
        try:
            assert not done.wait(0.2), "call went through while the lock was held"
        finally:
            release.set()
        holder.join(5)
        thread.join(5)
        assert done.is_set()

    def test_export_waits_for_the_lock(self, source):
        registry = _registry(source)
        registry.collect_all()
        self._run_blocked(registry, registry.export_text)
        assert _prog_values(registry, ProgMetric.RUN_TIME) == {}

    def test_collect_waits_for_the_lock(self, source):
        registry = _registry(source)
        self._run_blocked(registry, registry.collect_all)
        assert _prog_values(registry, ProgMetric.RUN_TIME) == {7: 1_500_000}

    def test_update_waits_for_the_lock(self, source):
        registry = _registry(source)
        labels = ProgLabels(id=1, program_type="xdp", name="x")
        self._run_blocked(registry, lambda: registry.update(ProgMetric.RUN_TIME, labels, 3))
        assert _prog_values(registry, ProgMetric.RUN_TIME) == {1: 3}

    def test_concurrent_scrapes_each_see_a_full_cycle(self, bpf_metrics):
        bpf_metrics.register_prog_metrics([ProgMetric.RUN_COUNT, ProgMetric.RUN_TIME])
        payloads: list[str] = []
        errors: list[Exception] = []

        def scrape():
            try:
                for _ in range(20):
                    payloads.append(bpf_metrics.scrape().payload)
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=scrape) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(10)

        assert errors == []
        assert len(payloads) == 80
        for payload in payloads:
            record = decode(payload)[7]
            assert (record.run_cnt, record.run_time_ns) == (42, 1_500_000)
