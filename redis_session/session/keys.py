"""Session key derivation."""

DEFAULT_KEY_PREFIX = "PHPSESSID:"


def derive_key(session_id: str, prefix: str = DEFAULT_KEY_PREFIX) -> str:
    """
    Map a session id to the Redis key holding its record.

    The id is appended to the prefix verbatim, without hashing or escaping,
    so distinct ids always map to distinct keys under one prefix. An empty
    id yields the bare prefix; checking id shape is the host's job.
    """
    return prefix + session_id
