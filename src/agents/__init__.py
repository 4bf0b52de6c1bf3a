# src/agents/__init__.py — v1
"""Concrete agent kinds and the BaseAgent work contract."""
