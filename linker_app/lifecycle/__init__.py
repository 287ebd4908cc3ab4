"""
Service lifecycle: the cancellation token (``cancel``) and the manager
that owns the database engine, the lookup statement and the HTTP server
(``manager``).
"""
