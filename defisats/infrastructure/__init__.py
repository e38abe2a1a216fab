"""
Infrastructure layer package.

Concrete adapters for the ports defined in the domain layer:
the relational database, the LN Markets REST API and the
Lightning payment backends.
"""
