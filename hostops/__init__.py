"""hostops: remote host service orchestration over a shell channel."""

__version__ = "0.1.0"
