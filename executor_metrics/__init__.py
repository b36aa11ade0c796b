"""Executor metrics reporter: batches registry snapshots into per-timestamp records."""

__all__ = [
    "config",
    "reporting",
]
