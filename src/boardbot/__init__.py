"""Boardbot: chat-driven task agent for team sticky-note boards."""

__version__ = "0.1.0"
