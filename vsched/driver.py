from __future__ import annotations

from typing import Protocol

from .runtime import LaunchDescriptor, Offer, TaskStatus


class SchedulerDriver(Protocol):
    """What the scheduler needs from a cluster orchestrator.

    Calls are fire-and-forget: their effect shows up later as status
    updates delivered to ``ViewerScheduler.status_update``.
    """

    def launch_task(self, offer_id: str, descriptor: LaunchDescriptor) -> None: ...

    def decline_offer(self, offer_id: str) -> None: ...

    def kill_task(self, task_id: str) -> None: ...


class PollingDriver(SchedulerDriver, Protocol):
    """A driver the run loop polls for offers and status updates."""

    def offers(self) -> list[Offer]: ...

    def poll_statuses(self) -> list[TaskStatus]: ...
