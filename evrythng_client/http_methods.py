"""Method Builder - HTTP verb plus optional body, bound to a URI at build time.

A MethodBuilder never touches headers other than Content-Type for the body
it serializes; everything else is set by the caller on the ApiCommand.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from pydantic_core import PydanticSerializationError, to_json

from evrythng_client.errors import ConversionError

JSON_MEDIA_TYPE = "application/json"


class Method(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


BODY_METHODS = frozenset({Method.POST, Method.PUT})


@dataclass(frozen=True)
class MethodBuilder:
    """Produces an httpx.Request for a given URI.

    Bodies are sent as JSON. Pydantic models are dumped by alias with unset
    (None) fields dropped; bytes are sent unchanged.
    """

    method: Method
    body: Any = None

    def build(self, uri: str) -> httpx.Request:
        if self.method not in BODY_METHODS or self.body is None:
            return httpx.Request(self.method.value, uri)
        return httpx.Request(
            self.method.value,
            uri,
            content=self._encode_body(),
            headers={"Content-Type": JSON_MEDIA_TYPE},
        )

    def _encode_body(self) -> bytes:
        if isinstance(self.body, bytes):
            return self.body
        try:
            return to_json(self.body, by_alias=True, exclude_none=True)
        except PydanticSerializationError as e:
            raise ConversionError(
                f"Unable to serialize {type(self.body).__name__} request body: {e}"
            ) from e


def http_get() -> MethodBuilder:
    return MethodBuilder(Method.GET)


def http_delete() -> MethodBuilder:
    return MethodBuilder(Method.DELETE)


def http_post(body: Any) -> MethodBuilder:
    return MethodBuilder(Method.POST, body)


def http_put(body: Any) -> MethodBuilder:
    return MethodBuilder(Method.PUT, body)
