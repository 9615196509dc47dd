import pytest

from vsched.ports import PortAllocator, PortsExhausted
from vsched.runtime import Offer, cpus, mem, ports


def _offer(*ranges, offer_id="o1"):
    return Offer(id=offer_id, agent_id="a1", hostname="localhost", resources=(cpus(1), mem(512), ports(*ranges)))


def test_allocates_first_free_port_in_offer_order():
    alloc = PortAllocator()
    offer = _offer((5000, 5002), (6000, 6002))
    assert alloc.allocate("t1", offer) == 5000
    assert alloc.allocate("t2", offer) == 5001
    # end is exclusive, so the next one comes from the second range
    assert alloc.allocate("t3", offer) == 6000
    assert alloc.assigned == {"t1": 5000, "t2": 5001, "t3": 6000}


def test_exhausted_offer_raises_and_records_nothing():
    alloc = PortAllocator()
    alloc.allocate("t1", _offer((5601, 5602)))
    with pytest.raises(PortsExhausted):
        alloc.allocate("t2", _offer((5601, 5602), offer_id="o2"))
    assert "t2" not in alloc.assigned


def test_offer_without_port_resources_is_exhausted():
    alloc = PortAllocator()
    offer = Offer(id="o1", agent_id="a1", hostname="localhost", resources=(cpus(1), mem(512)))
    with pytest.raises(PortsExhausted):
        alloc.allocate("t1", offer)


def test_release_frees_port_for_reuse_and_is_idempotent():
    alloc = PortAllocator()
    offer = _offer((5601, 5602))
    assert alloc.allocate("t1", offer) == 5601
    assert alloc.release("t1") == 5601
    assert alloc.release("t1") is None
    assert alloc.allocate("t2", offer) == 5601
    assert alloc.port_of("t2") == 5601
