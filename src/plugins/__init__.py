# src/plugins/__init__.py — v1
"""Plugin hook contract and the TTL cache plugin."""
