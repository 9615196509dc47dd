from __future__ import annotations

from .runtime import Offer


class PortsExhausted(Exception):
    pass


class PortAllocator:
    """Host port bookkeeping for tasks sharing the host network.

    Assignments are keyed by task id; a port is never handed out twice while
    its task is alive.
    """

    def __init__(self) -> None:
        self.assigned: dict[str, int] = {}  # task_id -> port

    def allocate(self, task_id: str, offer: Offer) -> int:
        used = set(self.assigned.values())
        for pr in offer.ranges("ports"):
            for port in range(pr.begin, pr.end):
                if port not in used:
                    self.assigned[task_id] = port
                    return port
        raise PortsExhausted(f"Offer {offer.id} has no unused port for task {task_id}")

    def release(self, task_id: str) -> int | None:
        return self.assigned.pop(task_id, None)

    def port_of(self, task_id: str) -> int | None:
        return self.assigned.get(task_id)
