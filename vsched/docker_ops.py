from __future__ import annotations

import secrets
from dataclasses import dataclass
from threading import Lock
from typing import Any

import docker
from docker.errors import DockerException, NotFound

from .db import log_event
from .runtime import (
    FAILED,
    FINISHED,
    KILLED,
    LOST,
    RUNNING,
    STARTING,
    TERMINAL_STATES,
    LaunchDescriptor,
    Offer,
    PortRange,
    Resource,
    TaskStatus,
    cpus,
    mem,
)
from .settings import Settings, settings


LABEL_TASK = "vsched.task_id"
LABEL_TARGET = "vsched.target"


@dataclass
class TrackedContainer:
    task_id: str
    container_id: str
    name: str
    cpus: float
    mem_mb: float
    port: int
    kill_requested: bool = False
    last_state: str | None = None


def free_ranges(begin: int, end: int, used: set[int]) -> list[PortRange]:
    """Split ``[begin, end)`` into the half-open runs not in ``used``."""
    out: list[PortRange] = []
    start: int | None = None
    for port in range(begin, end):
        if port in used:
            if start is not None:
                out.append(PortRange(start, port))
                start = None
        elif start is None:
            start = port
    if start is not None:
        out.append(PortRange(start, end))
    return out


class DockerDriver:
    """Single-host orchestrator on top of the local docker daemon.

    Offers the configured host capacity minus what live viewer containers
    reserve, runs viewers with host networking, and turns container states
    into task status updates.
    """

    def __init__(self, base_url: str | None = None, cfg: Settings = settings, client: Any = None) -> None:
        self.cfg = cfg
        self.base_url = base_url or cfg.orchestrator_url
        self._docker = client
        self._lock = Lock()
        self._tasks: dict[str, TrackedContainer] = {}  # task_id -> container
        self._outstanding: dict[str, Offer] = {}  # offer_id -> offer

    def _client(self) -> Any:
        if self._docker is None:
            if self.base_url:
                self._docker = docker.DockerClient(base_url=self.base_url)
            else:
                self._docker = docker.from_env()
        return self._docker

    def available(self) -> bool:
        try:
            self._client().ping()
            return True
        except DockerException:
            return False

    # -- offers -----------------------------------------------------------

    def offers(self) -> list[Offer]:
        if not self.available():
            return []
        with self._lock:
            live = [t for t in self._tasks.values() if t.last_state not in TERMINAL_STATES]
            used_cpus = sum(t.cpus for t in live)
            used_mem = sum(t.mem_mb for t in live)
            used_ports = {t.port for t in live}

            resources: list[Resource] = [
                cpus(max(0.0, self.cfg.agent_cpus - used_cpus)),
                mem(max(0.0, self.cfg.agent_mem_mb - used_mem)),
                Resource(
                    name="ports",
                    ranges=tuple(free_ranges(self.cfg.agent_port_begin, self.cfg.agent_port_end, used_ports)),
                ),
            ]
            offer = Offer(
                id=f"offer-{secrets.token_hex(4)}",
                agent_id=self.cfg.agent_hostname,
                hostname=self.cfg.agent_hostname,
                resources=tuple(resources),
            )
            # An agent has one offer in flight at a time.
            self._outstanding = {offer.id: offer}
            return [offer]

    def decline_offer(self, offer_id: str) -> None:
        with self._lock:
            self._outstanding.pop(offer_id, None)

    # -- tasks ------------------------------------------------------------

    def launch_task(self, offer_id: str, descriptor: LaunchDescriptor) -> None:
        with self._lock:
            if self._outstanding.pop(offer_id, None) is None:
                raise ValueError(f"Offer {offer_id} is not outstanding")

        name = f"vsched-{descriptor.task_id}"
        container = self._client().containers.run(
            descriptor.image,
            command=list(descriptor.command),
            detach=True,
            name=name,
            environment=dict(descriptor.env),
            network_mode="host",
            labels={LABEL_TASK: descriptor.task_id, LABEL_TARGET: descriptor.target},
            nano_cpus=int(descriptor.cpus * 1_000_000_000),
            mem_limit=f"{int(descriptor.mem_mb)}m",
            # Replacement is the scheduler's job; keep docker restarts off.
            restart_policy={"Name": "no"},
        )

        with self._lock:
            self._tasks[descriptor.task_id] = TrackedContainer(
                task_id=descriptor.task_id,
                container_id=container.id,
                name=name,
                cpus=descriptor.cpus,
                mem_mb=descriptor.mem_mb,
                port=descriptor.port,
            )
        log_event("INFO", f"Started container {name} from image {descriptor.image}", target=descriptor.target, task_id=descriptor.task_id)

    def kill_task(self, task_id: str) -> None:
        with self._lock:
            tracked = self._tasks.get(task_id)
        if tracked is None:
            log_event("WARN", "Kill requested for unknown task", task_id=task_id)
            return
        try:
            self._client().containers.get(tracked.container_id).remove(force=True)
        except NotFound:
            pass
        # Marked only once docker accepted the removal.
        tracked.kill_requested = True

    def _container_state(self, tracked: TrackedContainer) -> tuple[str, str | None]:
        try:
            cont = self._client().containers.get(tracked.container_id)
            cont.reload()
        except NotFound:
            if tracked.kill_requested:
                return KILLED, "Container removed"
            return LOST, "Container disappeared"

        # A paused viewer still holds its host port.
        if cont.status in {"running", "paused"}:
            return RUNNING, None
        if cont.status not in {"exited", "dead"}:
            return STARTING, None

        exit_code = cont.attrs.get("State", {}).get("ExitCode")
        if tracked.kill_requested:
            return KILLED, f"Exit code {exit_code}"
        if exit_code == 0 and cont.status == "exited":
            return FINISHED, None
        return FAILED, f"Exit code {exit_code}"

    def poll_statuses(self) -> list[TaskStatus]:
        """Report every task whose state changed since the last poll."""
        if not self.available():
            return []
        with self._lock:
            tracked = list(self._tasks.values())

        out: list[TaskStatus] = []
        for t in tracked:
            state, message = self._container_state(t)
            if state == t.last_state:
                continue
            t.last_state = state
            out.append(TaskStatus(task_id=t.task_id, state=state, message=message))
            if state in TERMINAL_STATES:
                with self._lock:
                    self._tasks.pop(t.task_id, None)
                if self.cfg.cleanup_exited and state in {FINISHED, FAILED}:
                    self._remove_quietly(t.container_id)
        return out

    def _remove_quietly(self, container_id: str) -> None:
        try:
            self._client().containers.get(container_id).remove(force=True)
        except NotFound:
            return
