# src/logging/__init__.py — v1
"""Structured logging: formatters, context variables, file rotation."""
