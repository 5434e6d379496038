"""Example scripts for Region Sync.

Available examples:

basic_usage.py
    Two players sharing card areas through one store.
    Shows controller construction, a local write, a remote replace,
    failure reporting and disposal.

failure_handling.py
    Malformed records, rejected writes and broken notification streams.
    Shows what reaches the failure channel and what the regions keep.

Run any example:
    python examples/basic_usage.py
    python examples/failure_handling.py
"""
