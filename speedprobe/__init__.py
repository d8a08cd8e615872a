"""speedprobe — bandwidth measurement against the closest reachable server."""

__version__ = "0.1.0"
