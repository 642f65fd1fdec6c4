"""Shared utilities: structured logging, request ids, counters."""
