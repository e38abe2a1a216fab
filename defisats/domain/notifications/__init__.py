"""Notifications bounded context."""
