"""Exceptions raised by the listening history core."""


class NotFound(LookupError):
    """An artist, album or song is not part of the index."""

    def __init__(self, what: str, key):
        self.what = what
        self.key = key
        super().__init__(f"{what} not found: {key!r}")


class StoreFrozenError(RuntimeError):
    """Events were ingested after the store switched to its read-only phase."""
