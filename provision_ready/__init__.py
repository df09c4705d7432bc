"""provision-ready: report a cloud instance ready to the WireServer."""

__version__ = "0.1.0"
