from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


def utc_now() -> str:
    return datetime.utcnow().strftime("%Y-%m-%dT%H:%M:%SZ")


# Task handle states. Status events may also carry STAGING/STARTING, which
# keep a handle in LAUNCHING.
LAUNCHING = "LAUNCHING"
RUNNING = "RUNNING"
FINISHED = "FINISHED"
FAILED = "FAILED"
KILLED = "KILLED"
LOST = "LOST"
ERROR = "ERROR"
STAGING = "STAGING"
STARTING = "STARTING"

TERMINAL_STATES = frozenset({FINISHED, FAILED, KILLED, LOST, ERROR})
STATUS_STATES = frozenset({STAGING, STARTING, RUNNING}) | TERMINAL_STATES


@dataclass(frozen=True)
class PortRange:
    """Half-open port range: ``begin`` is offered, ``end`` is not."""

    begin: int
    end: int

    @property
    def size(self) -> int:
        return max(0, self.end - self.begin)


@dataclass(frozen=True)
class Resource:
    name: str  # cpus|mem|ports
    scalar: float = 0.0
    ranges: tuple[PortRange, ...] = ()


@dataclass(frozen=True)
class Offer:
    id: str
    agent_id: str
    hostname: str
    resources: tuple[Resource, ...] = ()

    def scalar(self, name: str) -> float:
        return sum(r.scalar for r in self.resources if r.name == name)

    def ranges(self, name: str) -> list[PortRange]:
        out: list[PortRange] = []
        for r in self.resources:
            if r.name == name:
                out.extend(r.ranges)
        return out

    def port_count(self) -> int:
        return sum(pr.size for pr in self.ranges("ports"))


def cpus(amount: float) -> Resource:
    return Resource(name="cpus", scalar=float(amount))


def mem(amount_mb: float) -> Resource:
    return Resource(name="mem", scalar=float(amount_mb))


def ports(*ranges: tuple[int, int]) -> Resource:
    return Resource(name="ports", ranges=tuple(PortRange(b, e) for b, e in ranges))


@dataclass(frozen=True)
class LaunchDescriptor:
    task_id: str
    target: str
    image: str
    cpus: float
    mem_mb: float
    port_count: int
    port: int
    command: tuple[str, ...]
    env: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class TaskStatus:
    task_id: str
    state: str
    message: str | None = None


@dataclass
class TaskHandle:
    task_id: str
    target: str
    port: int
    state: str = LAUNCHING
    kill_requested: bool = False
    launched_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES
