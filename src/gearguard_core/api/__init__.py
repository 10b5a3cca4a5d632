"""HTTP surface of GearGuard Core."""
