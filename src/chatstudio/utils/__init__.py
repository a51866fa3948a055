"""Utility helpers (logging, enums)."""
