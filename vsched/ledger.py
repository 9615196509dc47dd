from __future__ import annotations

from .db import log_event
from .runtime import TaskHandle


class RequirementLedger:
    """Desired instance counts and running task handles, per target.

    Both maps are plain dicts, so iteration follows insertion order. Not
    thread-safe on its own: the scheduler serializes access.
    """

    def __init__(self) -> None:
        self.required: dict[str, int] = {}  # target -> desired count (> 0)
        self.running: dict[str, list[TaskHandle]] = {}  # target -> handles, launch order

    def set_requirement(self, target: str, delta: int) -> int:
        """Add ``delta`` to the target's desired count and return the new count.

        A result of zero or below removes the target.
        """
        delta = int(delta)
        if delta == 0:
            return self.required.get(target, 0)

        if target in self.required:
            new_amount = self.required[target] + delta
            if new_amount <= 0:
                del self.required[target]
                log_event("INFO", "No more instances are required", target=target)
                return 0
            self.required[target] = new_amount
            log_event("INFO", f"Now requiring {new_amount} instances", target=target)
            return new_amount

        if delta > 0:
            self.required[target] = delta
            log_event("INFO", f"Now requiring {delta} instances", target=target)
            return delta
        return 0

    def requirement_deltas(self) -> dict[str, int]:
        targets = list(self.required)
        targets.extend(t for t in self.running if t not in self.required)
        return {t: self.required.get(t, 0) - len(self.running.get(t, [])) for t in targets}

    def register_task(self, target: str, handle: TaskHandle) -> None:
        self.running.setdefault(target, []).append(handle)
        log_event("INFO", f"Registered task on port {handle.port}", target=target, task_id=handle.task_id)

    def unregister_task(self, task_id: str) -> bool:
        for target, handles in self.running.items():
            for i, h in enumerate(handles):
                if h.task_id != task_id:
                    continue
                del handles[i]
                if not handles:
                    del self.running[target]
                log_event("INFO", "Unregistered task", target=target, task_id=task_id)
                return True
        return False

    def youngest_task(self, target: str) -> TaskHandle | None:
        handles = self.running.get(target)
        return handles[-1] if handles else None

    def youngest_tasks(self, target: str, count: int) -> list[TaskHandle]:
        """Newest-first slice of the target's handles."""
        if count <= 0:
            return []
        return list(reversed(self.running.get(target, [])))[:count]

    def find_task(self, task_id: str) -> TaskHandle | None:
        for handles in self.running.values():
            for h in handles:
                if h.task_id == task_id:
                    return h
        return None

    def required_count(self, target: str) -> int:
        return self.required.get(target, 0)

    def running_count(self, target: str) -> int:
        return len(self.running.get(target, []))

    def tasks(self) -> list[TaskHandle]:
        return [h for handles in self.running.values() for h in handles]

    def snapshot(self) -> list[dict[str, object]]:
        return [
            {
                "target": t,
                "required": self.required_count(t),
                "running": self.running_count(t),
                "delta": d,
            }
            for t, d in self.requirement_deltas().items()
        ]
