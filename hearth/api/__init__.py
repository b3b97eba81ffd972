"""Hearth HTTP API."""
