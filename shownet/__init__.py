"""Menu-bar view of local interface addresses and public IPs."""

__version__ = "1.0.0"
