"""
Persistence primitives.

Repositories only read and stage writes on the session they are given;
transaction boundaries (commit / rollback) belong to the calling service.
"""
