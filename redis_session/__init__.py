"""
Redis session backend.

Stores opaque serialized session payloads in Redis with TTL-based
expiration so that every application process sharing the store sees the
same sessions.
"""

__version__ = "1.0.0"
