from shownet.ifparse import DiscoveryFailed, Family, InterfaceAddress
from shownet.public_ip import PublicAddressResult
from shownet.status import (
    DISCOVERY_FAILED_LABEL, NO_CONNECTIONS_LABEL, SEPARATOR,
    CycleState, DisplayRow, StatusAggregator, copy_text,
)

EN0 = [InterfaceAddress("en0", "192.168.1.50", Family.IPV4)]
PUBLIC = {Family.IPV4: "198.51.100.1", Family.IPV6: "2001:db8::1"}


class InlineExecutor:
    def submit(self, fn, *args):
        fn(*args)

    def shutdown(self, wait=True, cancel_futures=False):
        self.shut = True


class DeferredExecutor:
    """Holds jobs until the test runs them."""

    def __init__(self):
        self.jobs = []
        self.shut = False

    def submit(self, fn, *args):
        if self.shut:
            raise RuntimeError("cannot schedule new futures after shutdown")
        self.jobs.append((fn, args))

    def run_all(self):
        jobs, self.jobs = self.jobs, []
        for fn, args in jobs:
            fn(*args)

    def shutdown(self, wait=True, cancel_futures=False):
        self.shut = True
        self.jobs = []


def _lookup_from(table):
    return lambda family: PublicAddressResult(family, table.get(family))


def _make(discover=lambda: EN0, lookup=_lookup_from(PUBLIC), executor=None):
    renders = []
    agg = StatusAggregator(render=renders.append, discover=discover, lookup=lookup,
                           executor=executor or InlineExecutor())
    return agg, renders


def test_end_to_end_rows():
    agg, renders = _make()
    assert agg.state is CycleState.IDLE
    agg.refresh()
    agg.pump()
    assert agg.state is CycleState.COMPLETE
    assert renders[-1] == [
        DisplayRow("en0: 192.168.1.50", copy_value="192.168.1.50", enabled=True),
        SEPARATOR,
        DisplayRow("Public IPv4: 198.51.100.1", copy_value="198.51.100.1", enabled=True),
        DisplayRow("Public IPv6: 2001:db8::1", copy_value="2001:db8::1", enabled=True),
    ]


def test_interface_rows_render_before_public_updates():
    executor = DeferredExecutor()
    agg, renders = _make(executor=executor)
    agg.refresh()
    assert agg.state is CycleState.DISCOVERING
    executor.run_all()
    agg.pump()
    assert agg.state is CycleState.PARTIAL
    assert renders == [[
        DisplayRow("en0: 192.168.1.50", copy_value="192.168.1.50", enabled=True),
        SEPARATOR,
        DisplayRow("Public IPv4: Loading..."),
        DisplayRow("Public IPv6: Loading..."),
    ]]
    assert len(executor.jobs) == 2

    executor.run_all()
    assert agg.pump() == 2
    assert agg.state is CycleState.COMPLETE
    # both public results land in a single render
    assert len(renders) == 2
    assert [r.label for r in renders[-1][2:]] == ["Public IPv4: 198.51.100.1", "Public IPv6: 2001:db8::1"]


def test_each_public_result_updates_only_its_row():
    executor = DeferredExecutor()
    agg, renders = _make(executor=executor)
    agg.refresh()
    executor.run_all()
    agg.pump()

    ipv4_job, ipv6_job = executor.jobs
    executor.jobs = []
    fn, args = ipv6_job
    fn(*args)
    agg.pump()
    assert agg.state is CycleState.PARTIAL
    assert renders[-1][2] == DisplayRow("Public IPv4: Loading...")
    assert renders[-1][3].label == "Public IPv6: 2001:db8::1"

    fn, args = ipv4_job
    fn(*args)
    agg.pump()
    assert agg.state is CycleState.COMPLETE
    assert renders[-1][2].label == "Public IPv4: 198.51.100.1"


def test_failed_lookup_shows_unavailable():
    agg, renders = _make(lookup=_lookup_from({Family.IPV4: "198.51.100.1"}))
    agg.refresh()
    agg.pump()
    assert renders[-1][3] == DisplayRow("Public IPv6: Unavailable")
    assert not renders[-1][3].enabled
    assert agg.copy(renders[-1][3]) is None


def test_lookup_that_raises_is_unavailable():
    def boom(family):
        raise RuntimeError("worker blew up")

    agg, renders = _make(lookup=boom)
    agg.refresh()
    agg.pump()
    assert agg.state is CycleState.COMPLETE
    assert [r.label for r in renders[-1][2:]] == ["Public IPv4: Unavailable", "Public IPv6: Unavailable"]


def test_no_interfaces_shows_placeholder_and_skips_lookups():
    def lookup(family):
        raise AssertionError("lookup must not run")

    agg, renders = _make(discover=lambda: [], lookup=lookup)
    agg.refresh()
    agg.pump()
    assert renders == [[DisplayRow(NO_CONNECTIONS_LABEL)]]
    assert agg.state is CycleState.COMPLETE


def test_discovery_failure_is_distinct_from_empty():
    def discover():
        raise DiscoveryFailed("could not run /sbin/ifconfig")

    agg, renders = _make(discover=discover)
    agg.refresh()
    agg.pump()
    assert renders == [[DisplayRow(DISCOVERY_FAILED_LABEL)]]
    assert agg.state is CycleState.COMPLETE


def test_stale_results_are_dropped():
    executor = DeferredExecutor()
    agg, renders = _make(executor=executor)
    first = agg.refresh()
    executor.run_all()
    agg.pump()
    stale_lookups = executor.jobs
    executor.jobs = []

    second = agg.refresh()
    assert second == first + 1
    for fn, args in stale_lookups:
        fn(*args)
    assert agg.pump() == 0
    assert agg.state is CycleState.DISCOVERING
    assert len(renders) == 1

    executor.run_all()
    agg.pump()
    executor.run_all()
    agg.pump()
    assert agg.state is CycleState.COMPLETE
    assert renders[-1][2].label == "Public IPv4: 198.51.100.1"


def test_public_rows_never_revert_within_a_cycle():
    answers = {Family.IPV4: ["198.51.100.1", None], Family.IPV6: ["2001:db8::1", None]}

    def lookup(family):
        return PublicAddressResult(family, answers[family].pop(0))

    executor = DeferredExecutor()
    agg, renders = _make(lookup=lookup, executor=executor)
    agg.refresh()
    executor.run_all()
    agg.pump()
    lookups = list(executor.jobs)
    executor.run_all()
    agg.pump()
    assert agg.state is CycleState.COMPLETE

    # the same cycle's lookup finishing again, this time empty, is ignored
    fn, args = lookups[0]
    fn(*args)
    assert agg.pump() == 0
    assert agg.rows[2].label == "Public IPv4: 198.51.100.1"
    assert len(renders) == 2


def test_copy_uses_text_after_last_delimiter():
    assert copy_text("en0: 192.168.1.50") == "192.168.1.50"
    assert copy_text("Public IPv6: 2001:db8::1") == "2001:db8::1"
    assert copy_text("192.168.1.50") == "192.168.1.50"
    agg, _ = _make()
    row = DisplayRow("en0: 192.168.1.50", copy_value="en0: 192.168.1.50", enabled=True)
    assert agg.copy(row) == "192.168.1.50"


def test_quit_stops_further_refreshes():
    executor = InlineExecutor()
    agg, renders = _make(executor=executor)
    agg.quit()
    assert executor.shut
    assert agg.closed
    assert agg.refresh() == 0
    assert agg.pump() == 0
    assert renders == []


def test_pump_after_quit_drops_queued_results():
    executor = DeferredExecutor()
    agg, renders = _make(executor=executor)
    agg.refresh()
    executor.run_all()
    agg.quit()
    assert agg.pump() == 0
    assert renders == []
    assert agg.state is CycleState.DISCOVERING
    assert agg.pump() == 0
