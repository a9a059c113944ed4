"""Kernel services (flush-only)."""
