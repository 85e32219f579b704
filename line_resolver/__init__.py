"""Startup host resolution: fastest working API and frontend host with cloud fallback."""

__version__ = "0.1.0"
