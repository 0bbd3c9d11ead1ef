"""Slack and storage adapters implementing the core ports."""
