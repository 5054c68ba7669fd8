"""Adapters binding the reconciliation engine to storage, vendors and event sinks."""
