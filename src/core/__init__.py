# src/core/__init__.py — v1
"""Execution records, runtime wrapper, events and the engine."""
