import pytest

from conftest import FakeProbe, nbr, probe_factory
from models import ScanStateError
from scanner import ScanNotFound, ScanOrchestrator
from settings import StaticCredentials
from store import MemoryStore
from subnet import InvalidSubnet, SubnetTooLarge
from transport import DirectTransport, TunnelUnavailable


def make_orchestrator(probe, store=None, **kwargs):
    return ScanOrchestrator(
        store=store or MemoryStore(),
        transport=DirectTransport(),
        credentials=StaticCredentials("admin", "secret"),
        probe_factory=probe_factory(probe),
        **kwargs
    )


def run(orchestrator, subnet):
    job = orchestrator.create_scan(subnet)
    subscription = orchestrator.subscribe(job.id)
    try:
        result = orchestrator.run_scan(job.id)
    finally:
        events = list(subscription)
    return result, events


def test_end_to_end_asymmetric_pair(two_routers):
    probe = FakeProbe(two_routers)
    orchestrator = make_orchestrator(probe)

    job, events = run(orchestrator, "10.0.0.0/30")

    assert job.status == "completed"
    assert job.completed_at is not None
    assert job.routers_found == 2
    assert job.asymmetries_found == 1

    topology = job.results.topology
    assert len(topology.nodes) == 2
    [edge] = topology.edges
    assert edge.is_asymmetric is True
    assert {edge.cost, edge.reverse_cost} == {10, 35}

    [route] = job.results.asymmetric_routes
    assert route.difference == 25
    assert route.severity == "medium"
    assert route.router1 == "R1"

    devices = orchestrator.store.list_devices()
    assert sorted(job.results.device_ids) == sorted(d.id for d in devices)
    assert {d.status for d in devices} == {"online"}
    assert orchestrator.store.get_device_by_ip("10.0.0.1").version == "7.12 (stable)"
    assert probe.credentials.username == "admin"

    assert [(e.percent_complete, e.status, e.current_address) for e in events] == [
        (50, "scanning", "10.0.0.1"),
        (100, "scanning", "10.0.0.2"),
        (100, "completed", None),
    ]
    assert [e.routers_found for e in events] == [0, 1, 2]
    assert events[-1].asymmetries_found == 1


def test_unreachable_addresses_are_skipped():
    routers = {"10.0.0.3": {"identity": "R3", "neighbors": []}}
    orchestrator = make_orchestrator(FakeProbe(routers))

    job, events = run(orchestrator, "10.0.0.0/29")

    assert job.status == "completed"
    assert job.routers_found == 1
    assert [d.ip for d in orchestrator.store.list_devices()] == ["10.0.0.3"]
    percents = [e.percent_complete for e in events]
    assert percents == sorted(percents)
    assert len(events) == 7
    assert events[-1].status == "completed"


def test_tunnel_failure_aborts_scan():
    routers = {"10.0.0.1": {"identity": "R1"}, "10.0.0.5": {"identity": "R5"}}
    probe = FakeProbe(routers, fatal={"10.0.0.3"})
    orchestrator = make_orchestrator(probe)
    job = orchestrator.create_scan("10.0.0.0/29")
    subscription = orchestrator.subscribe(job.id)

    with pytest.raises(TunnelUnavailable):
        orchestrator.run_scan(job.id)

    assert probe.probed == ["10.0.0.1", "10.0.0.2", "10.0.0.3"]
    failed = orchestrator.store.get_scan_job(job.id)
    assert failed.status == "error"
    assert failed.completed_at is not None
    assert failed.routers_found == 1
    assert "tunnel" in failed.error.lower()

    events = list(subscription)
    assert events[-1].status == "error"
    assert events[-1].routers_found == 1
    assert events[-1].percent_complete == events[-2].percent_complete
    assert "tunnel" in events[-1].error.lower()
    assert sum(1 for e in events if e.terminal) == 1


def test_rescan_updates_devices_in_place(two_routers):
    store = MemoryStore()
    orchestrator = make_orchestrator(FakeProbe(two_routers), store=store)
    run(orchestrator, "10.0.0.0/30")
    ids = sorted(d.id for d in store.list_devices())

    two_routers["10.0.0.2"]["neighbors"] = [nbr("10.0.0.1", 10)]
    job, _ = run(orchestrator, "10.0.0.0/30")

    assert sorted(d.id for d in store.list_devices()) == ids
    assert job.asymmetries_found == 0
    assert store.get_device_by_ip("10.0.0.2").neighbors[0].cost == 10
    assert len(store.list_scan_jobs()) == 2


def test_known_router_going_offline_is_marked(two_routers):
    store = MemoryStore()
    probe = FakeProbe(two_routers)
    orchestrator = make_orchestrator(probe, store=store)
    run(orchestrator, "10.0.0.0/30")
    seen = store.get_device_by_ip("10.0.0.2").last_seen

    del probe.routers["10.0.0.2"]
    job, _ = run(orchestrator, "10.0.0.0/30")

    assert job.status == "completed"
    assert job.routers_found == 1
    offline = store.get_device_by_ip("10.0.0.2")
    assert offline.status == "offline"
    assert offline.last_seen == seen


@pytest.mark.parametrize("subnet, error", [
    ("10.0.0.0", InvalidSubnet),
    ("10.0.0.0/21", SubnetTooLarge),
])
def test_invalid_subnet_creates_no_job(subnet, error):
    orchestrator = make_orchestrator(FakeProbe({}))

    with pytest.raises(error):
        orchestrator.start_scan(subnet)

    assert orchestrator.store.list_scan_jobs() == []


def test_max_addresses_is_applied():
    orchestrator = make_orchestrator(FakeProbe({}), max_addresses=4)
    orchestrator.create_scan("10.0.0.0/30")
    with pytest.raises(SubnetTooLarge):
        orchestrator.create_scan("10.0.0.0/29")


def test_job_runs_only_once(two_routers):
    orchestrator = make_orchestrator(FakeProbe(two_routers))
    job, _ = run(orchestrator, "10.0.0.0/30")

    with pytest.raises(ScanStateError):
        orchestrator.run_scan(job.id)
    with pytest.raises(ScanNotFound):
        orchestrator.run_scan("missing")


def test_background_scan(two_routers):
    orchestrator = make_orchestrator(FakeProbe(two_routers))

    job = orchestrator.start_scan("10.0.0.0/30")
    assert job.status == "pending"

    done = orchestrator.wait(job.id, timeout=5)
    assert done.status == "completed"
    assert done.routers_found == 2
    assert list(orchestrator.subscribe(job.id))[-1].status == "completed"


def test_background_scan_records_tunnel_failure():
    orchestrator = make_orchestrator(FakeProbe({}, fatal={"10.0.0.1"}))

    job = orchestrator.start_scan("10.0.0.0/30")
    failed = orchestrator.wait(job.id, timeout=5)

    assert failed.status == "error"
    assert failed.error


def test_derived_views_read_the_store(two_routers):
    orchestrator = make_orchestrator(FakeProbe(two_routers))
    run(orchestrator, "10.0.0.0/30")

    assert len(orchestrator.topology().edges) == 1
    assert orchestrator.asymmetric_routes()[0].difference == 25


def test_rescan_device(two_routers):
    probe = FakeProbe(two_routers)
    orchestrator = make_orchestrator(probe)
    run(orchestrator, "10.0.0.0/30")
    r1 = orchestrator.store.get_device_by_ip("10.0.0.1")

    probe.routers["10.0.0.1"]["identity"] = "R1-new"
    assert orchestrator.rescan_device(r1.id).identity == "R1-new"

    del probe.routers["10.0.0.1"]
    assert orchestrator.rescan_device(r1.id).status == "offline"

    probe.fatal.add("10.0.0.1")
    with pytest.raises(TunnelUnavailable):
        orchestrator.rescan_device(r1.id)

    with pytest.raises(ScanNotFound):
        orchestrator.rescan_device("missing")


def test_unexpected_error_without_message_still_names_the_failure():
    class BrokenProbe(FakeProbe):
        def probe(self, host):
            raise RuntimeError()

    orchestrator = make_orchestrator(BrokenProbe({}))
    job = orchestrator.create_scan("10.0.0.0/30")

    with pytest.raises(RuntimeError):
        orchestrator.run_scan(job.id)

    assert orchestrator.store.get_scan_job(job.id).error == "RuntimeError"


def test_created_jobs_hold_no_progress_channel():
    orchestrator = make_orchestrator(FakeProbe({}))
    job = orchestrator.create_scan("10.0.0.0/30")

    assert orchestrator.hub.subscriber_count(job.id) == 0
    assert job.id not in orchestrator.hub._channels
