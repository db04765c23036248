"""Pluggable collaborators: record formatters and delivery adapters."""
