"""
Mapping of domain errors to the JSON error body.
"""
