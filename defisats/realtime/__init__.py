"""
Background workers and the WebSocket fan-out they publish to.
"""
