from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def parse_targets(raw: str | None) -> list[str]:
    """Split a ``;``-separated target list, dropping blanks.

    A target listed twice asks for two instances.
    """
    out: list[str] = []
    for part in (raw or "").split(";"):
        t = part.strip()
        if t:
            out.append(t)
    return out


@dataclass(frozen=True)
class Settings:
    # Core
    db_path: str = os.getenv("VSCHED_DB_PATH", "vsched.db")
    poll_interval_s: int = _env_int("VSCHED_POLL_INTERVAL_S", 5)
    orchestrator_url: str | None = os.getenv("VSCHED_ORCHESTRATOR_URL")
    api_port: int = _env_int("VSCHED_API_PORT", 9001)
    targets: str = os.getenv("VSCHED_TARGETS", "")

    # What one viewer instance needs
    image: str = os.getenv("VSCHED_IMAGE", "kibana")
    task_cpus: float = _env_float("VSCHED_TASK_CPUS", 0.1)
    task_mem_mb: float = _env_float("VSCHED_TASK_MEM_MB", 128.0)
    task_port_count: int = _env_int("VSCHED_TASK_PORT_COUNT", 1)

    # What the local docker host offers
    agent_hostname: str = os.getenv("VSCHED_AGENT_HOSTNAME", "localhost")
    agent_cpus: float = _env_float("VSCHED_AGENT_CPUS", 2.0)
    agent_mem_mb: float = _env_float("VSCHED_AGENT_MEM_MB", 2048.0)
    agent_port_begin: int = _env_int("VSCHED_AGENT_PORT_BEGIN", 31000)
    agent_port_end: int = _env_int("VSCHED_AGENT_PORT_END", 32000)

    # Remove exited viewer containers once their final state was reported.
    cleanup_exited: bool = _env_bool("VSCHED_CLEANUP_EXITED", True)


settings = Settings()
