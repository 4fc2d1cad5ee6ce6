"""
Syntax checks for IP strings coming back from public echo services.

These are sieves, not parsers: an echo service that is down tends to answer
with an HTML error page or a plain-text message, and those must never end up
in the menu or on the clipboard.
"""

IPV6_CHARS = frozenset("0123456789abcdefABCDEF:.")
_DIGITS = frozenset("0123456789")


def is_valid_ipv4(s) -> bool:
    if not isinstance(s, str):
        return False
    parts = s.split(".")
    if len(parts) != 4:
        return False
    for part in parts:
        if not part or not set(part) <= _DIGITS:
            return False
        if int(part) > 255:
            return False
    return True


def is_valid_ipv6(s) -> bool:
    # IPv4-mapped forms ("::ffff:1.2.3.4") pass on purpose
    if not isinstance(s, str):
        return False
    if ":" not in s or "<" in s or ">" in s:
        return False
    if not 2 < len(s) < 50:
        return False
    return all(c in IPV6_CHARS for c in s)
