# Cache key extraction from request paths.


def extract_key(path: str) -> str:
    """Return the last path segment, e.g. ``/api/v1/cache/foo`` → ``foo``.

    An empty string means no key was supplied (``/api/v1/cache/``); callers
    must not treat it as a literal key.
    """
    return path.rsplit("/", 1)[-1]
