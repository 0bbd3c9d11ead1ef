"""Core domain package for triage reminders.

Core contains policy parsing, filtering, digest composition, scanning and
scheduling without any Slack or storage-specific code.
"""
