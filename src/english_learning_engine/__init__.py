"""Adaptive learning engine for English learners."""

__version__ = "0.1.0"
