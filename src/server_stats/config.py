"""Configuration for server-stats.

There is no configuration file; defaults live here and a small number of
settings can be overridden from the environment.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

CPU_SAMPLE_INTERVAL = 0.2  # Seconds between the two CPU refreshes
LOG_LEVEL_ENV = "SERVER_STATS_LOG_LEVEL"


@dataclass(frozen=True)
class ReportConfig:
    """Settings for one report run."""

    cpu_sample_interval: float = CPU_SAMPLE_INTERVAL
    top_n: int = 5  # Rows in each process ranking
    session_limit: int = 10  # Session lines shown (count covers all)
    failed_login_limit: int = 5
    # External utilities, as (command, *args)
    ports_command: tuple[str, ...] = ("netstat", "-tuln")
    sessions_command: tuple[str, ...] = ("who",)
    failed_logins_command: tuple[str, ...] = ("lastb", "-n", "5")
    hostname_command: tuple[str, ...] = ("hostname",)
    hostname_env: str = "HOSTNAME"
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ReportConfig:
        """Build a config, applying overrides from the environment."""
        env = os.environ if environ is None else environ
        level = env.get(LOG_LEVEL_ENV, "").strip().upper()
        if level:
            return cls(log_level=level)
        return cls()
