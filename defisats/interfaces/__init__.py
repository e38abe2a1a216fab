"""
HTTP adapters: one FastAPI router and schema module per bounded context,
plus the dependency providers that build use cases per request.
"""
