"""Orbit: conversational Gmail and Google Calendar assistant."""

__version__ = "0.1.0"
