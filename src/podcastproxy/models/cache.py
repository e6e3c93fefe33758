from __future__ import annotations

from pydantic import BaseModel

# Lower-cased header name → every value received for it, in order.
Headers = dict[str, list[str]]


class CacheEntry(BaseModel):
    """One cached HTTP resource: optional body plus its canonical headers."""

    content: bytes | None = None  # None for HEAD entries
    headers: Headers = {}

    def header(self, name: str) -> str | None:
        """Return the first value of header ``name`` (case-insensitive), or None."""
        values = self.headers.get(name.lower())
        if not values:
            return None
        return values[0]
