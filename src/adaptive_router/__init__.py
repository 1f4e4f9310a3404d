"""Adaptive model routing: pick a worker per task and learn from the outcome."""

__version__ = "0.1.0"
