"""GearGuard Core - maintenance request lifecycle and authorization engine."""

__version__ = "1.0.0"
