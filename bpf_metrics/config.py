"""
Exporter configuration loaded from environment variables (prefix ``BPF_METRICS_``).
"""
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from bpf_metrics.stats import PROCFS_BPF_STATS_ENABLED


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BPF_METRICS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Registry ──────────────────────────────────────────────────────────────
    registry_prefix: str = "bpf"
    # MetricKind member names to activate, per subject kind
    prog_metrics: list[str] = Field(default_factory=lambda: ["UPTIME", "RUN_TIME", "RUN_COUNT"])
    map_metrics: list[str] = Field(default_factory=list)
    link_metrics: list[str] = Field(default_factory=list)

    # ── Data source ───────────────────────────────────────────────────────────
    bpftool_path: str = "bpftool"
    bpftool_timeout_seconds: float = 5.0

    # ── Run-time statistics ───────────────────────────────────────────────────
    # toggle kernel.bpf_stats_enabled on API startup/shutdown
    enable_stats: bool = False
    stats_procfs_path: Path = PROCFS_BPF_STATS_ENABLED

    # ── Scripts ───────────────────────────────────────────────────────────────
    print_interval_seconds: float = 1.0
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
