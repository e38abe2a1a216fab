"""
Entities, plan rules, automation evaluation and port ABCs for each bounded
context. Only the notification dispatcher performs IO, through injected
channels.
"""
