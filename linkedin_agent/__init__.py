"""Scheduled LinkedIn automation agent: discovery, tracking, research and auto-apply."""

__version__ = "0.3.0"
