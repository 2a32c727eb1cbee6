"""URI Builder - Merges a base URI with multi-valued query parameters."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from urllib.parse import quote, urlencode, urlsplit, urlunsplit

from evrythng_client.errors import ClientError


class UriBuilder:
    """Builds an absolute URI from a base URI and query parameters.

    Usage:
        uri = UriBuilder.from_uri("https://api.evrythng.com/thngs") \\
            .query_params({"tags": ["a", "b"], "page": ["2"]}) \\
            .build()
        # https://api.evrythng.com/thngs?tags=a&tags=b&page=2

    Parameters keep insertion order; a name with several values becomes
    repeated name=value pairs. A query already present on the base URI is
    kept and the new pairs are appended to it.
    """

    def __init__(self, base_uri: str) -> None:
        parts = urlsplit(base_uri)
        if not parts.scheme or not parts.netloc:
            raise ClientError(f"URI must be absolute: '{base_uri}'")
        self._parts = parts
        self._pairs: list[tuple[str, str]] = []

    @classmethod
    def from_uri(cls, base_uri: str) -> UriBuilder:
        return cls(base_uri)

    def query_param(self, name: str, value: str) -> UriBuilder:
        """Append one name=value pair."""
        self._pairs.append((name, value))
        return self

    def query_params(self, params: Mapping[str, Iterable[str]]) -> UriBuilder:
        """Append every value of every parameter, in mapping order."""
        for name, values in params.items():
            for value in values:
                self._pairs.append((name, value))
        return self

    def build(self) -> str:
        query = self._parts.query
        if self._pairs:
            # quote, not quote_plus: spaces encode as %20
            encoded = urlencode(self._pairs, quote_via=quote)
            query = f"{query}&{encoded}" if query else encoded
        return urlunsplit(self._parts._replace(query=query))
