"""HTTP routers grouped by back-office area."""
