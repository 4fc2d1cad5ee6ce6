"""
Interface discovery: run the system interface listing and turn its text
into (interface, address) records.

The listing format is the conventional BSD/macOS ``ifconfig`` layout:

    en0: flags=8863<UP,BROADCAST,SMART,RUNNING,SIMPLEX,MULTICAST> mtu 1500
    	ether 3c:22:fb:00:00:01
    	inet6 fe80::1c2b:aa:bb:cc%en0 prefixlen 64 secured scopeid 0x6
    	inet 192.168.1.50 netmask 0xffffff00 broadcast 192.168.1.255

Header lines start in column 0, everything belonging to the interface is
indented underneath.
"""

import enum
import logging
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

IFCONFIG = "/sbin/ifconfig"
IFCONFIG_TIMEOUT_SEC = 10

LOOPBACK_V4 = "127.0.0.1"
LOOPBACK_V6 = "::1"
LINK_LOCAL_PREFIX = "fe80:"


class Family(enum.Enum):
    IPV4 = "IPv4"
    IPV6 = "IPv6"


class DiscoveryFailed(Exception):
    """The interface listing could not be run or read."""


@dataclass(frozen=True)
class InterfaceAddress:
    interface_name: str
    address: str
    family: Family

    @property
    def label(self) -> str:
        return f"{self.interface_name}: {self.address}"


@dataclass(frozen=True)
class _Pending:
    name: Optional[str] = None
    ipv4: Optional[str] = None
    ipv6: Optional[str] = None

    def flush(self) -> List[InterfaceAddress]:
        if self.name is None:
            return []
        out = []
        if self.ipv4 is not None:
            out.append(InterfaceAddress(self.name, self.ipv4, Family.IPV4))
        if self.ipv6 is not None:
            out.append(InterfaceAddress(self.name, self.ipv6, Family.IPV6))
        return out


def _is_header(line: str) -> bool:
    return bool(line) and not line.startswith(("\t", " "))


def _interface_name(line: str) -> str:
    return line.split(":", 1)[0].strip()


def _token_after(line: str, keyword: str) -> Optional[str]:
    fields = line.split()
    try:
        idx = fields.index(keyword)
    except ValueError:
        return None
    if idx + 1 >= len(fields):
        return None
    return fields[idx + 1]


def _ipv4_of(line: str) -> Optional[str]:
    if "inet " not in line or "inet6" in line:
        return None
    addr = _token_after(line, "inet")
    if addr is None or addr == LOOPBACK_V4:
        return None
    return addr


def _ipv6_of(line: str) -> Optional[str]:
    if "inet6" not in line:
        return None
    addr = _token_after(line, "inet6")
    if addr is None:
        return None
    addr = addr.split("%", 1)[0]
    if addr == LOOPBACK_V6 or addr.lower().startswith(LINK_LOCAL_PREFIX):
        return None
    return addr


def _step(state: Tuple[List[InterfaceAddress], _Pending], line: str):
    done, pending = state
    if _is_header(line):
        return done + pending.flush(), _Pending(name=_interface_name(line))
    v4 = _ipv4_of(line)
    if v4 is not None:
        return done, _Pending(pending.name, v4, pending.ipv6)
    v6 = _ipv6_of(line)
    if v6 is not None:
        return done, _Pending(pending.name, pending.ipv4, v6)
    return state


def parse_ifconfig(text: str) -> List[InterfaceAddress]:
    """
    Parse an interface listing into address records.

    Interfaces keep the order in which they first appear; for each one the
    IPv4 record comes before the IPv6 record. Only the last address of each
    family per interface survives. Loopback and link-local addresses are
    dropped, and so are interfaces left with nothing to show.
    """
    state = ([], _Pending())
    for line in text.splitlines():
        state = _step(state, line)
    done, pending = state
    return done + pending.flush()


def list_interfaces(cmd=IFCONFIG, timeout=IFCONFIG_TIMEOUT_SEC) -> List[InterfaceAddress]:
    """Run the listing tool and parse its output. Raises DiscoveryFailed."""
    try:
        proc = subprocess.run(
            [cmd],
            stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
            timeout=timeout,
        )
    except (OSError, subprocess.SubprocessError) as e:
        raise DiscoveryFailed(f"could not run {cmd}: {e}") from e

    if proc.returncode != 0:
        logger.warning("%s exited with status %s", cmd, proc.returncode)
    try:
        text = proc.stdout.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DiscoveryFailed(f"undecodable output from {cmd}") from e

    records = parse_ifconfig(text)
    logger.debug("Parsed %d address record(s) from %s", len(records), cmd)
    return records
