"""Program records rebuilt from an exposition payload."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ProgramRecord:
    """
    Current and previous counter values of one program.

    ``prev_*`` fields are filled from the caller's previous record; a fresh
    record (no previous scrape) carries prev == current, i.e. a zero delta.
    """
    id: int
    bpf_type: str
    name: str
    run_time_ns: int = 0
    prev_run_time_ns: int = 0
    run_cnt: int = 0
    prev_run_cnt: int = 0
    uptime_ns: int = 0
    prev_uptime_ns: int = 0
    memory_locked: int = 0
    size_jitted: int = 0
    size_translated: int = 0
    verified_instructions: int = 0

    @property
    def run_time_delta_ns(self) -> int:
        return self.run_time_ns - self.prev_run_time_ns

    @property
    def run_cnt_delta(self) -> int:
        return self.run_cnt - self.prev_run_cnt

    @property
    def period_ns(self) -> int:
        """Load-time elapsed between the previous and the current scrape."""
        return self.uptime_ns - self.prev_uptime_ns

    def same_entity(self, other: "ProgramRecord") -> bool:
        # IDs are recycled by the kernel once a program is unloaded
        return (self.id, self.bpf_type, self.name) == (other.id, other.bpf_type, other.name)

    def carry_over(self, previous: "ProgramRecord | None") -> None:
        """
        Take ``previous`` as the baseline for the delta fields.

        A reused ID or a counter that went backwards starts a new baseline
        instead of producing a negative delta.
        """
        self.prev_run_time_ns = self.run_time_ns
        self.prev_run_cnt = self.run_cnt
        self.prev_uptime_ns = self.uptime_ns
        if previous is None or not self.same_entity(previous):
            return
        if previous.run_time_ns <= self.run_time_ns:
            self.prev_run_time_ns = previous.run_time_ns
        if previous.run_cnt <= self.run_cnt:
            self.prev_run_cnt = previous.run_cnt
        if previous.uptime_ns <= self.uptime_ns:
            self.prev_uptime_ns = previous.uptime_ns
