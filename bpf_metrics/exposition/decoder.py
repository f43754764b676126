"""
Incremental OpenMetrics decoder.

The text format is a column store: one section per family, and families may be
emitted in any order. The decoder is a line-driven state machine

    AWAITING_SECTION ──HELP──▶ AWAITING_TYPE ──TYPE──▶ IN_SECTION ──EOF──▶ COMPLETE
                                      ▲                     │
                                      └────────HELP─────────┘

fed with arbitrary chunks. ``feed()`` answers NEED_MORE_INPUT until ``# EOF``
has been read; a malformed line raises ParseError straight away. Samples of a
section are committed only once the section is closed.

Program records are then folded from the samples by program ID.
"""
from __future__ import annotations

import codecs
import logging
import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Mapping

from bpf_metrics.errors import ParseError
from bpf_metrics.models.contracts import U32_MAX
from bpf_metrics.models.records import ProgramRecord

logger = logging.getLogger(__name__)

_SAMPLE_RE = re.compile(
    r"^(?P<name>[a-zA-Z_:][a-zA-Z0-9_:]*)(?:\{(?P<labels>.*)\})? (?P<value>\S+)$"
)
_LABEL_RE = re.compile(r'([a-zA-Z_][a-zA-Z0-9_]*)="((?:[^"\\\n]|\\.)*)"')
_INT_RE = re.compile(r"^[+-]?[0-9]+$")
_ID_RE = re.compile(r"^[0-9]+\Z")
_ESCAPES = {"\\": "\\", '"': '"', "n": "\n"}

# family name (registry/subject prefix stripped) → ProgramRecord field
PROG_FIELDS: dict[str, str] = {
    "run_time_nanoseconds": "run_time_ns",
    "execution_count": "run_cnt",
    "uptime_nanoseconds": "uptime_ns",
    "memory_locked_bytes": "memory_locked",
    "size_jitted_bytes": "size_jitted",
    "size_translated_bytes": "size_translated",
    "verified_instruction_count": "verified_instructions",
}


class DecodeStatus(Enum):
    NEED_MORE_INPUT = auto()
    COMPLETE = auto()


class DecoderState(Enum):
    AWAITING_SECTION = auto()
    AWAITING_TYPE = auto()
    IN_SECTION = auto()
    COMPLETE = auto()


@dataclass
class Sample:
    family: str
    metric_type: str
    labels: dict[str, str]
    value: int
    line_number: int = 0


@dataclass
class _Section:
    name: str
    help: str
    metric_type: str = ""
    unit: str = ""
    samples: list[Sample] = field(default_factory=list)


def _unescape(value: str, line_number: int) -> str:
    if "\\" not in value:
        return value
    out: list[str] = []
    chars = iter(value)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        escaped = next(chars, "")
        if escaped not in _ESCAPES:
            raise ParseError(f"invalid escape sequence '\\{escaped}'", line_number)
        out.append(_ESCAPES[escaped])
    return "".join(out)


def parse_labels(text: str, line_number: int = 0) -> dict[str, str]:
    labels: dict[str, str] = {}
    pos = 0
    while pos < len(text):
        match = _LABEL_RE.match(text, pos)
        if match is None:
            raise ParseError(f"malformed label set near {text[pos:]!r}", line_number)
        name = match.group(1)
        if name in labels:
            raise ParseError(f"duplicate label '{name}'", line_number)
        labels[name] = _unescape(match.group(2), line_number)
        pos = match.end()
        if pos == len(text):
            break
        if text[pos] != "," or pos + 1 == len(text):
            raise ParseError(f"malformed label set near {text[pos:]!r}", line_number)
        pos += 1
    return labels


class ExpositionDecoder:
    """Single-pass decoder; create one per payload."""

    def __init__(self) -> None:
        self._text = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""
        self._state = DecoderState.AWAITING_SECTION
        self._section: _Section | None = None
        self._samples: list[Sample] = []
        self._line_number = 0

    @property
    def state(self) -> DecoderState:
        return self._state

    @property
    def complete(self) -> bool:
        return self._state is DecoderState.COMPLETE

    @property
    def samples(self) -> list[Sample]:
        """Samples of every section closed so far."""
        return list(self._samples)

    def feed(self, chunk: str | bytes) -> DecodeStatus:
        if isinstance(chunk, bytes):
            try:
                chunk = self._text.decode(chunk)
            except UnicodeDecodeError as exc:
                raise ParseError(f"invalid UTF-8: {exc.reason}", self._line_number + 1) from exc
        *lines, self._buffer = (self._buffer + chunk).split("\n")
        for line in lines:
            self._line_number += 1
            if self._state is DecoderState.COMPLETE:
                raise ParseError("data after # EOF", self._line_number)
            self._consume(line)
        if self._state is DecoderState.COMPLETE:
            if self._buffer:
                raise ParseError("data after # EOF", self._line_number + 1)
            return DecodeStatus.COMPLETE
        return DecodeStatus.NEED_MORE_INPUT

    def close(self) -> list[Sample]:
        """End of input: the payload must have been terminated by ``# EOF``."""
        try:
            self._text.decode(b"", final=True)
        except UnicodeDecodeError as exc:
            raise ParseError(f"truncated UTF-8 sequence: {exc.reason}", self._line_number + 1) from exc
        if self._state is not DecoderState.COMPLETE:
            if self._buffer == "# EOF":
                raise ParseError("# EOF must be followed by a newline", self._line_number + 1)
            raise ParseError("payload does not end with # EOF", self._line_number)
        return self.samples

    def records(
        self,
        previous: Mapping[int, ProgramRecord] | None = None,
        prefix: str = "bpf_prog",
    ) -> dict[int, ProgramRecord]:
        return fold_programs(self.close(), previous=previous, prefix=prefix)

    # ── line handling ────────────────────────────────────────────────────────

    def _consume(self, line: str) -> None:
        if line.startswith("#"):
            self._consume_metadata(line)
        else:
            self._consume_sample(line)

    def _consume_metadata(self, line: str) -> None:
        n = self._line_number
        if line == "# EOF":
            if self._state is DecoderState.AWAITING_TYPE:
                raise ParseError("# HELP without matching # TYPE", n)
            self._close_section()
            self._state = DecoderState.COMPLETE
            return

        parts = line.split(" ", 3)
        if len(parts) < 3 or parts[0] != "#":
            raise ParseError(f"malformed metadata line {line!r}", n)
        keyword, name = parts[1], parts[2]
        text = parts[3] if len(parts) == 4 else ""

        if keyword == "HELP":
            if self._state is DecoderState.AWAITING_TYPE:
                raise ParseError("# HELP without matching # TYPE", n)
            self._close_section()
            self._section = _Section(name=name, help=_unescape(text, n))
            self._state = DecoderState.AWAITING_TYPE
        elif keyword == "TYPE":
            section = self._section
            if self._state is not DecoderState.AWAITING_TYPE or section is None:
                raise ParseError(f"# TYPE for {name} without preceding # HELP", n)
            if name != section.name:
                raise ParseError(f"# TYPE for {name} inside section {section.name}", n)
            if text not in ("counter", "gauge"):
                raise ParseError(f"unsupported metric type {text!r}", n)
            section.metric_type = text
            self._state = DecoderState.IN_SECTION
        elif keyword == "UNIT":
            section = self._section
            if (
                self._state is not DecoderState.IN_SECTION
                or section is None
                or section.unit
                or section.samples
            ):
                raise ParseError("# UNIT must directly follow # TYPE", n)
            if name != section.name:
                raise ParseError(f"# UNIT for {name} inside section {section.name}", n)
            section.unit = text
        else:
            raise ParseError(f"unknown metadata keyword {keyword!r}", n)

    def _consume_sample(self, line: str) -> None:
        n = self._line_number
        section = self._section
        if self._state is not DecoderState.IN_SECTION or section is None:
            raise ParseError(f"sample line outside a family section: {line!r}", n)

        match = _SAMPLE_RE.match(line)
        if match is None:
            raise ParseError(f"malformed sample line {line!r}", n)

        expected = section.name + "_total" if section.metric_type == "counter" else section.name
        if match.group("name") != expected:
            raise ParseError(
                f"sample {match.group('name')} does not belong to family {section.name}", n
            )

        raw_value = match.group("value")
        if not _INT_RE.match(raw_value):
            raise ParseError(f"non-numeric sample value {raw_value!r}", n)
        value = int(raw_value)
        if section.metric_type == "counter" and value < 0:
            raise ParseError(f"negative counter value {value}", n)

        section.samples.append(
            Sample(
                family=section.name,
                metric_type=section.metric_type,
                labels=parse_labels(match.group("labels") or "", n),
                value=value,
                line_number=n,
            )
        )

    def _close_section(self) -> None:
        if self._section is not None:
            self._samples.extend(self._section.samples)
            self._section = None


def fold_programs(
    samples: list[Sample],
    previous: Mapping[int, ProgramRecord] | None = None,
    prefix: str = "bpf_prog",
) -> dict[int, ProgramRecord]:
    """
    Merge samples into one ProgramRecord per ``id`` label, ordered by ID.

    Families outside ``prefix`` (maps, links) and unknown program families are
    ignored. ``previous`` supplies the baseline for the delta fields.
    """
    family_prefix = prefix + "_"
    records: dict[int, ProgramRecord] = {}
    for sample in samples:
        if not sample.family.startswith(family_prefix):
            continue
        field_name = PROG_FIELDS.get(sample.family[len(family_prefix):])
        if field_name is None:
            logger.debug("Ignoring unknown program metric %s", sample.family)
            continue
        raw_id = sample.labels.get("id", "")
        if not _ID_RE.match(raw_id) or int(raw_id) > U32_MAX:
            raise ParseError(f"sample of {sample.family} has no numeric id label", sample.line_number)
        prog_id = int(raw_id)
        record = records.get(prog_id)
        if record is None:
            record = records[prog_id] = ProgramRecord(
                id=prog_id,
                bpf_type=sample.labels.get("program_type", ""),
                name=sample.labels.get("name", ""),
            )
        setattr(record, field_name, sample.value)

    ordered = dict(sorted(records.items()))
    previous = previous or {}
    for prog_id, record in ordered.items():
        record.carry_over(previous.get(prog_id))
    return ordered


def decode(
    payload: str | bytes,
    previous: Mapping[int, ProgramRecord] | None = None,
    prefix: str = "bpf_prog",
) -> dict[int, ProgramRecord]:
    """Decode a complete payload into program records."""
    decoder = ExpositionDecoder()
    decoder.feed(payload)
    return decoder.records(previous=previous, prefix=prefix)
