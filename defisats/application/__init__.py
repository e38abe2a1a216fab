"""
Use cases. Each takes its ports through the constructor and exposes
``execute()``; routers and the scheduler are the only callers.
"""
