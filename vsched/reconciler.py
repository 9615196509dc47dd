from __future__ import annotations

import time
from threading import Thread

from . import db
from .driver import PollingDriver
from .scheduler import ViewerScheduler
from .settings import settings


class Reconciler:
    """Pumps status updates and offers from the driver into the scheduler."""

    def __init__(self, scheduler: ViewerScheduler, driver: PollingDriver, poll_interval_s: int | None = None):
        self.scheduler = scheduler
        self.driver = driver
        self.poll_interval_s = settings.poll_interval_s if poll_interval_s is None else poll_interval_s
        self._stop = False
        self._thr: Thread | None = None

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._stop = False
        self.scheduler.registered(self.driver)
        self._thr = Thread(target=self._loop, daemon=True)
        self._thr.start()

    def stop(self) -> None:
        self._stop = True

    @property
    def running(self) -> bool:
        return bool(self._thr and self._thr.is_alive() and not self._stop)

    def _loop(self) -> None:
        db.log_event("INFO", "Reconciler started")
        while not self._stop:
            try:
                self.tick()
            except Exception as e:
                db.log_event("ERROR", f"Reconciler tick failed: {type(e).__name__}: {e}")
            time.sleep(max(1, self.poll_interval_s))
        db.log_event("INFO", "Reconciler stopped")

    def tick(self) -> int:
        """Run one round; return the number of tasks launched."""
        for status in self.driver.poll_statuses():
            self.scheduler.status_update(self.driver, status)
        offers = self.driver.offers()
        if not offers:
            return 0
        return self.scheduler.resource_offers(self.driver, offers)
