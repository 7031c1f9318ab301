"""
Database package for Modvote.

Public API:
    - db_connection: Module-level ConnectionManager (single SQLite connection)
    - ConnectionManager: Connection wrapper with serialised write transactions
    - SchemaManager: Creates the escalation tables and indexes
"""
