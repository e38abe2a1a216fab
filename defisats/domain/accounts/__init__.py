"""Accounts bounded context: users, sessions and plans."""
