from __future__ import annotations

import secrets
from threading import Lock

from . import db
from .db import log_event
from .driver import SchedulerDriver
from .ledger import RequirementLedger
from .ports import PortAllocator, PortsExhausted
from .runtime import (
    FINISHED,
    LAUNCHING,
    RUNNING,
    STATUS_STATES,
    TERMINAL_STATES,
    LaunchDescriptor,
    Offer,
    TaskHandle,
    TaskStatus,
    utc_now,
)
from .settings import Settings, settings


def new_task_id() -> str:
    return f"viewer-{secrets.token_hex(6)}"


class ViewerScheduler:
    """Keeps the number of viewer tasks per target at the required count.

    Offer batches, status updates and requirement changes all go through
    one lock, so a requirement change never interleaves with an offer match.
    """

    def __init__(
        self,
        cfg: Settings = settings,
        ledger: RequirementLedger | None = None,
        ports: PortAllocator | None = None,
    ) -> None:
        self.cfg = cfg
        self.ledger = ledger or RequirementLedger()
        self.ports = ports or PortAllocator()
        self.driver: SchedulerDriver | None = None
        self._lock = Lock()

    # -- orchestrator callbacks -------------------------------------------

    def registered(self, driver: SchedulerDriver) -> None:
        with self._lock:
            self.driver = driver
            log_event("INFO", "Scheduler registered with orchestrator")
            self._kill_excess(driver)

    def resource_offers(self, driver: SchedulerDriver, offers: list[Offer]) -> int:
        """Match a batch of offers in order; return how many tasks were launched."""
        launched = 0
        with self._lock:
            if self.driver is None:
                self.driver = driver
            self._kill_excess(driver)
            for offer in offers:
                if self._launch_on(driver, offer):
                    launched += 1
                else:
                    driver.decline_offer(offer.id)
        return launched

    def status_update(self, driver: SchedulerDriver, status: TaskStatus) -> bool:
        """Apply one task status; return False when the task is not tracked."""
        with self._lock:
            handle = self.ledger.find_task(status.task_id)
            if handle is None:
                log_event("WARN", f"Ignoring {status.state} for unknown task", task_id=status.task_id)
                return False

            if status.state not in STATUS_STATES:
                log_event("WARN", f"Ignoring unrecognized state {status.state!r}", target=handle.target, task_id=handle.task_id)
                return True

            if status.state in TERMINAL_STATES:
                handle.state = status.state
                handle.updated_at = utc_now()
                self.ports.release(handle.task_id)
                self.ledger.unregister_task(handle.task_id)
                db.update_task_state(handle.task_id, status.state, status.message)
                level = "INFO" if handle.kill_requested or status.state == FINISHED else "WARN"
                detail = f": {status.message}" if status.message else ""
                log_event(level, f"Task ended as {status.state}{detail}", target=handle.target, task_id=handle.task_id)
                return True

            if status.state == RUNNING and handle.state != RUNNING:
                handle.state = RUNNING
                handle.updated_at = utc_now()
                db.update_task_state(handle.task_id, RUNNING, status.message)
                log_event("INFO", f"Task running on port {handle.port}", target=handle.target, task_id=handle.task_id)
            return True

    # -- management boundary ----------------------------------------------

    def change_requirement(self, target: str, delta: int) -> int:
        """Adjust the desired count for ``target``; return the new count."""
        with self._lock:
            amount = self.ledger.set_requirement(target, delta)
            if delta < 0 and self.driver is not None:
                self._kill_excess(self.driver)
            return amount

    def requirements(self) -> list[dict[str, object]]:
        with self._lock:
            return self.ledger.snapshot()

    def requirement(self, target: str) -> dict[str, object]:
        with self._lock:
            required = self.ledger.required_count(target)
            running = self.ledger.running_count(target)
            return {"target": target, "required": required, "running": running, "delta": required - running}

    def tasks(self) -> list[TaskHandle]:
        with self._lock:
            return list(self.ledger.tasks())

    # -- internals (caller holds the lock) ----------------------------------

    def _pick_target(self, deltas: dict[str, int]) -> str | None:
        # Largest shortfall first instead of plain ledger order, so scarce
        # offers spread across targets; ties go to the earlier target.
        best: str | None = None
        for target, delta in deltas.items():
            if delta > 0 and (best is None or delta > deltas[best]):
                best = target
        return best

    def _sufficient(self, offer: Offer) -> bool:
        return (
            offer.scalar("cpus") >= self.cfg.task_cpus
            and offer.scalar("mem") >= self.cfg.task_mem_mb
            and offer.port_count() >= self.cfg.task_port_count
        )

    def _descriptor(self, task_id: str, target: str, port: int) -> LaunchDescriptor:
        return LaunchDescriptor(
            task_id=task_id,
            target=target,
            image=self.cfg.image,
            cpus=self.cfg.task_cpus,
            mem_mb=self.cfg.task_mem_mb,
            port_count=self.cfg.task_port_count,
            port=port,
            command=("--port", str(port), "--elasticsearch", target),
            env={"ELASTICSEARCH_URL": target, "PORT": str(port)},
        )

    def _launch_on(self, driver: SchedulerDriver, offer: Offer) -> bool:
        target = self._pick_target(self.ledger.requirement_deltas())
        if target is None:
            return False

        if not self._sufficient(offer):
            log_event("INFO", f"Declining offer {offer.id}: insufficient resources", target=target)
            return False

        task_id = new_task_id()
        try:
            port = self.ports.allocate(task_id, offer)
        except PortsExhausted as e:
            log_event("WARN", f"Declining offer {offer.id}: {e}", target=target)
            return False

        descriptor = self._descriptor(task_id, target, port)
        try:
            driver.launch_task(offer.id, descriptor)
        except Exception as e:
            self.ports.release(task_id)
            log_event("ERROR", f"Launch on offer {offer.id} failed: {type(e).__name__}: {e}", target=target, task_id=task_id)
            return False

        self.ledger.register_task(target, TaskHandle(task_id=task_id, target=target, port=port))
        db.insert_task(task_id, target, port, offer.id, LAUNCHING)
        return True

    def _kill_excess(self, driver: SchedulerDriver) -> None:
        for target, delta in self.ledger.requirement_deltas().items():
            if delta >= 0:
                continue
            handles = self.ledger.running.get(target, [])
            need = -delta - sum(1 for h in handles if h.kill_requested)
            if need <= 0:
                continue
            candidates = [h for h in reversed(handles) if not h.kill_requested][:need]
            for handle in candidates:
                handle.kill_requested = True
                log_event("INFO", "Killing task to scale down", target=target, task_id=handle.task_id)
                try:
                    driver.kill_task(handle.task_id)
                except Exception as e:
                    handle.kill_requested = False
                    log_event("ERROR", f"Kill request failed: {type(e).__name__}: {e}", target=target, task_id=handle.task_id)
