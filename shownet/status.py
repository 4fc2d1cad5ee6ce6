"""
Refresh orchestration for the menu.

A StatusAggregator owns the display rows. Only the coordinating thread (the
UI main thread in the app) may call refresh(), pump(), copy() and quit().
Blocking work runs on a thread pool; workers never touch the rows, they put
``(cycle_id, kind, payload)`` messages on a queue that pump() drains.

One refresh cycle goes

    IDLE -> DISCOVERING -> PARTIAL -> COMPLETE

PARTIAL means the interface rows are on screen and the two public lookups
are outstanding. Results tagged with an older cycle id are dropped.
"""

import enum
import logging
import queue
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set

from .ifparse import DiscoveryFailed, Family, list_interfaces
from .public_ip import PublicAddressResult, lookup_public_ip

logger = logging.getLogger(__name__)

INTERFACES = "interfaces"
PUBLIC_FAMILIES = (Family.IPV4, Family.IPV6)

NO_CONNECTIONS_LABEL = "No active connections"
DISCOVERY_FAILED_LABEL = "Error reading network status"


class CycleState(enum.Enum):
    IDLE = "idle"
    DISCOVERING = "discovering"
    PARTIAL = "partial"
    COMPLETE = "complete"


@dataclass(frozen=True)
class DisplayRow:
    label: str
    copy_value: Optional[str] = None
    enabled: bool = False
    separator: bool = False


SEPARATOR = DisplayRow("", separator=True)


def copy_text(value: str) -> str:
    """Clipboard text for a stored row value: whatever follows the last ': '."""
    return value.rsplit(": ", 1)[-1]


def public_row(family: Family, result: Optional[PublicAddressResult] = None) -> DisplayRow:
    prefix = f"Public {family.value}"
    if result is None:
        return DisplayRow(f"{prefix}: Loading...")
    if result.value is None:
        return DisplayRow(f"{prefix}: Unavailable")
    return DisplayRow(f"{prefix}: {result.value}", copy_value=result.value, enabled=True)


class StatusAggregator:
    def __init__(self, render: Callable[[List[DisplayRow]], None],
                 discover=list_interfaces, lookup=lookup_public_ip, executor=None):
        self._render = render
        self._discover = discover
        self._lookup = lookup
        self._executor = executor or ThreadPoolExecutor(max_workers=3, thread_name_prefix="shownet")
        self._inbox = queue.Queue()

        self.cycle_id = 0
        self.state = CycleState.IDLE
        self.rows: List[DisplayRow] = []
        self._public_index: Dict[Family, int] = {}
        self._outstanding: Set[Family] = set()
        self._closed = False

    # ───────────────────────── workers ───────────────────────── #

    def _discover_job(self, cycle: int):
        try:
            payload = self._discover()
        except DiscoveryFailed as e:
            logger.warning("Interface discovery failed: %s", e)
            payload = e
        except Exception as e:
            logger.exception("Unexpected error during interface discovery")
            payload = DiscoveryFailed(str(e))
        self._inbox.put((cycle, INTERFACES, payload))

    def _lookup_job(self, cycle: int, family: Family):
        try:
            payload = self._lookup(family)
        except Exception:
            logger.exception("Unexpected error during public %s lookup", family.value)
            payload = PublicAddressResult(family)
        self._inbox.put((cycle, family, payload))

    # ───────────────────────── coordinator ───────────────────── #

    @property
    def closed(self) -> bool:
        return self._closed

    def refresh(self) -> int:
        if self._closed:
            return self.cycle_id
        self.cycle_id += 1
        self.state = CycleState.DISCOVERING
        self._public_index = {}
        self._outstanding = set()
        logger.info("Refresh cycle %d started", self.cycle_id)
        self._executor.submit(self._discover_job, self.cycle_id)
        return self.cycle_id

    def pump(self) -> int:
        """
        Apply queued worker results for the current cycle and render once.

        Interface rows are rendered on their own as soon as they are applied,
        before the public lookups are launched. Returns how many results
        were applied.
        """
        if self._closed:
            self._drain()
            return 0

        applied = 0
        dirty = False
        while True:
            try:
                cycle, kind, payload = self._inbox.get_nowait()
            except queue.Empty:
                break
            if cycle != self.cycle_id:
                logger.debug("Dropping stale %s result from cycle %d (current %d)",
                             getattr(kind, "value", kind), cycle, self.cycle_id)
                continue
            if kind == INTERFACES:
                self._apply_interfaces(payload)
                # interface rows go out before any lookup starts
                self._emit()
                dirty = False
                self._launch_lookups()
            elif self._apply_public(payload):
                dirty = True
            else:
                continue
            applied += 1
        if dirty:
            self._emit()
        return applied

    def _drain(self):
        dropped = 0
        while True:
            try:
                self._inbox.get_nowait()
            except queue.Empty:
                break
            dropped += 1
        if dropped:
            logger.debug("Closed, dropped %d queued result(s)", dropped)

    def _emit(self):
        self._render(list(self.rows))

    def _apply_interfaces(self, payload):
        if isinstance(payload, DiscoveryFailed):
            self.rows = [DisplayRow(DISCOVERY_FAILED_LABEL)]
            self.state = CycleState.COMPLETE
            return
        if not payload:
            logger.info("No active connections")
            self.rows = [DisplayRow(NO_CONNECTIONS_LABEL)]
            self.state = CycleState.COMPLETE
            return

        rows = [DisplayRow(r.label, copy_value=r.address, enabled=True) for r in payload]
        rows.append(SEPARATOR)
        for family in PUBLIC_FAMILIES:
            self._public_index[family] = len(rows)
            rows.append(public_row(family))
        self.rows = rows
        self.state = CycleState.PARTIAL
        self._outstanding = set(PUBLIC_FAMILIES)

    def _launch_lookups(self):
        for family in PUBLIC_FAMILIES:
            if family in self._outstanding:
                self._executor.submit(self._lookup_job, self.cycle_id, family)

    def _apply_public(self, result: PublicAddressResult) -> bool:
        if result.family not in self._outstanding:
            logger.debug("Ignoring duplicate public %s result", result.family.value)
            return False
        self._outstanding.discard(result.family)
        self.rows[self._public_index[result.family]] = public_row(result.family, result)
        if not self._outstanding:
            self.state = CycleState.COMPLETE
            logger.info("Refresh cycle %d complete", self.cycle_id)
        return True

    def copy(self, row: DisplayRow) -> Optional[str]:
        if not row.enabled or row.copy_value is None:
            return None
        return copy_text(row.copy_value)

    def quit(self):
        if self._closed:
            return
        self._closed = True
        logger.info("Shutting down worker pool")
        self._executor.shutdown(wait=False, cancel_futures=True)
