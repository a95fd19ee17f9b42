"""Cache key derivation for song queries."""

SONG_NAMESPACE = "song"
STREAM_NAMESPACE = "stream"
NAMESPACES = (SONG_NAMESPACE, STREAM_NAMESPACE)


def normalize(raw: str, namespace: str = SONG_NAMESPACE) -> str:
    """
    Derive the cache key for a query.

    Trims surrounding whitespace, lower-cases and prefixes with the namespace.
    A value that already carries this namespace's prefix is treated as
    normalized, so the function is idempotent. Other prefixes are part of
    the query text.

    Examples:
        >>> normalize(" Shape of You ")
        'song:shape of you'
        >>> normalize(normalize("Shape of You"))
        'song:shape of you'
        >>> normalize("Stream: Foo")
        'song:stream: foo'
    """
    if namespace not in NAMESPACES:
        raise ValueError(f"Unknown cache namespace: {namespace}")

    prefix = f"{namespace}:"
    body = raw.strip().lower()
    if body.startswith(prefix):
        body = body[len(prefix):].strip()
    return f"{prefix}{body}"


def song_key(query: str) -> str:
    return normalize(query, SONG_NAMESPACE)


def stream_key(query: str) -> str:
    return normalize(query, STREAM_NAMESPACE)
