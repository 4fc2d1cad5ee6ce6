"""
Public address lookup, one call per address family.

The primary path is curl pinned to the family (-4/-6) against an echo
service. When curl cannot be started at all, a single requests call against
a family-only endpoint is tried instead. Either way the answer has to pass
the syntax sieve in validate.py or it is treated as unavailable.
"""

import logging
import subprocess
from dataclasses import dataclass
from typing import Optional

import requests

from .ifparse import Family
from .validate import is_valid_ipv4, is_valid_ipv6

logger = logging.getLogger(__name__)

CURL = "/usr/bin/curl"
ECHO_URL = "https://ifconfig.me"
LOOKUP_TIMEOUT_SEC = 5

FALLBACK_URLS = {
    Family.IPV4: "https://api.ipify.org",
    Family.IPV6: "https://api6.ipify.org",
}

_CURL_FAMILY_FLAG = {Family.IPV4: "-4", Family.IPV6: "-6"}
_VALIDATORS = {Family.IPV4: is_valid_ipv4, Family.IPV6: is_valid_ipv6}


@dataclass(frozen=True)
class PublicAddressResult:
    family: Family
    value: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.value is not None


def _curl_output(family: Family, timeout) -> str:
    # stderr is merged into stdout; only the content matters, not the exit status
    proc = subprocess.run(
        [CURL, "-s", _CURL_FAMILY_FLAG[family], "--max-time", str(timeout), ECHO_URL],
        stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
        timeout=timeout,
    )
    return proc.stdout.decode("utf-8")


def _http_output(family: Family, timeout) -> str:
    r = requests.get(FALLBACK_URLS[family], timeout=timeout)
    return r.text


def fetch_raw(family: Family, timeout=LOOKUP_TIMEOUT_SEC) -> Optional[str]:
    """Raw echo-service output for ``family``, or None when the lookup itself failed."""
    try:
        return _curl_output(family, timeout)
    except subprocess.TimeoutExpired:
        logger.info("%s lookup timed out after %ss", family.value, timeout)
        return None
    except UnicodeDecodeError:
        logger.info("%s lookup returned undecodable output", family.value)
        return None
    except OSError as e:
        logger.info("curl unavailable (%s), falling back to HTTP for %s", e, family.value)

    try:
        return _http_output(family, timeout)
    except requests.RequestException as e:
        logger.info("%s HTTP lookup failed: %s", family.value, e)
        return None


def lookup_public_ip(family: Family, timeout=LOOKUP_TIMEOUT_SEC) -> PublicAddressResult:
    raw = fetch_raw(family, timeout)
    if raw is None:
        return PublicAddressResult(family)

    value = raw.strip()
    if not value:
        logger.info("%s lookup returned nothing", family.value)
        return PublicAddressResult(family)
    if not _VALIDATORS[family](value):
        logger.warning("%s lookup output rejected: %r", family.value, value[:80])
        return PublicAddressResult(family)

    logger.debug("Public %s is %s", family.value, value)
    return PublicAddressResult(family, value)
