"""Automation bounded context: automation rules and trade logs."""
