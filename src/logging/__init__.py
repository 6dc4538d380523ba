"""Scoped, structured MDC entries and their propagation across threads."""
