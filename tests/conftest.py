import pytest

from vsched import db
from vsched.runtime import Offer, cpus, mem, ports
from vsched.scheduler import ViewerScheduler
from vsched.settings import Settings


TEST_SETTINGS = Settings(
    image="kibana",
    task_cpus=0.1,
    task_mem_mb=128.0,
    task_port_count=1,
    agent_hostname="localhost",
    agent_cpus=1.0,
    agent_mem_mb=512.0,
    agent_port_begin=31000,
    agent_port_end=31005,
    cleanup_exited=True,
)


@pytest.fixture(autouse=True)
def event_db(tmp_path, monkeypatch):
    """Point the event log at an isolated sqlite file."""
    monkeypatch.setattr(db, "settings", Settings(db_path=str(tmp_path / "events.db")))
    db.init_db()
    return db


class FakeDriver:
    """Records what the scheduler asks the orchestrator to do."""

    def __init__(self):
        self.launched = []  # (offer_id, descriptor)
        self.declined = []
        self.killed = []
        self.fail_launch = False
        self.fail_kill = False
        self.pending_offers = []
        self.pending_statuses = []

    def launch_task(self, offer_id, descriptor):
        if self.fail_launch:
            raise RuntimeError("image not found")
        self.launched.append((offer_id, descriptor))

    def decline_offer(self, offer_id):
        self.declined.append(offer_id)

    def kill_task(self, task_id):
        if self.fail_kill:
            raise RuntimeError("daemon unreachable")
        self.killed.append(task_id)

    def offers(self):
        out, self.pending_offers = self.pending_offers, []
        return out

    def poll_statuses(self):
        out, self.pending_statuses = self.pending_statuses, []
        return out


@pytest.fixture
def driver():
    return FakeDriver()


@pytest.fixture
def scheduler():
    return ViewerScheduler(TEST_SETTINGS)


@pytest.fixture
def make_offers():
    def _make(amount, port_ranges=((31000, 31010),), cpu=0.5, mem_mb=256.0, prefix="offer"):
        return [
            Offer(
                id=f"{prefix}-{i}",
                agent_id=f"agent-{i}",
                hostname="localhost",
                resources=(cpus(cpu), mem(mem_mb), ports(*port_ranges)),
            )
            for i in range(amount)
        ]

    return _make
