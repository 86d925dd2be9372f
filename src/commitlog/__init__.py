"""Commit activity sync and aggregation for GitHub and GitLab."""

__version__ = "0.1.0"
