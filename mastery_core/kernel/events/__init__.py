"""Append-only event log services."""
