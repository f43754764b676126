"""Error hierarchy for registry, exposition and data-source failures."""
from __future__ import annotations


class BpfMetricsError(Exception):
    """Base class for every error raised by bpf_metrics."""


class ConfigurationError(BpfMetricsError):
    """Duplicate registration, unknown metric name or mismatched label set."""


class EncodeError(BpfMetricsError):
    """A family could not be serialized into the exposition format."""


class ParseError(BpfMetricsError):
    """Malformed exposition payload."""

    def __init__(self, message: str, line_number: int | None = None):
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)


class AdapterError(BpfMetricsError):
    """The data source of one subject kind failed as a whole."""

    def __init__(self, subject: str, message: str):
        self.subject = subject
        super().__init__(f"[{subject}] {message}")
