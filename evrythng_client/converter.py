"""Response Converter - Status assertion and body materialization.

The converter only sees responses whose body has already been read, so every
materialization (including the raw response and the byte stream) stays
usable after the client that produced it is closed.
"""

from __future__ import annotations

import io
import json
import logging
from typing import Any

import httpx
from pydantic import PydanticSchemaGenerationError, TypeAdapter, ValidationError

from evrythng_client.errors import ConversionError, status_error_class
from evrythng_client.models import ErrorMessage, ResponseKind

logger = logging.getLogger(__name__)


def assert_status(response: httpx.Response, expected: int, uri: str) -> None:
    """Raise if the response status is not the expected one.

    Raises:
        UnexpectedStatusError: Or the subclass matching the actual status.
            Carries expected/actual status, the URI, the body text and the
            parsed error body when the API sent one.
    """
    actual = response.status_code
    if actual == expected:
        return

    body = response.text
    error = _parse_error_message(response)
    logger.debug(
        "Unexpected response status: [uri=%s, expected=%s, actual=%s]", uri, expected, actual
    )
    raise status_error_class(actual)(expected, actual, uri, body=body, error=error)


def convert(response: httpx.Response, kind: ResponseKind, response_type: Any = None) -> Any:
    """Materialize a response body.

    Args:
        response: A response whose body has been read.
        kind: Requested materialization. BUNDLE is not handled here; the
            command builds it from RESPONSE and TYPED.
        response_type: Target type for TYPED. None decodes plain JSON,
            str returns the text, bytes the raw content; anything else is
            validated with a pydantic TypeAdapter.

    Raises:
        ConversionError: If the body cannot be decoded or validated.
    """
    if kind == ResponseKind.RESPONSE:
        return response
    if kind == ResponseKind.STREAM:
        return io.BytesIO(response.content)
    if kind == ResponseKind.STRING:
        return response.text
    if kind == ResponseKind.TYPED:
        return _convert_typed(response, response_type)
    raise ValueError(f"Unsupported response kind: {kind}")


def _convert_typed(response: httpx.Response, response_type: Any) -> Any:
    if response_type is str:
        return response.text
    if response_type is bytes:
        return response.content
    # 204s and empty 200s on DELETE carry no entity
    if not response.content:
        return None
    if response_type is None:
        try:
            return json.loads(response.content)
        except ValueError as e:
            raise ConversionError(f"Response body is not valid JSON: {e}") from e

    try:
        adapter = TypeAdapter(response_type)
    except PydanticSchemaGenerationError as e:
        raise ConversionError(
            f"Unable to build a mapping for {_type_name(response_type)}: {e}"
        ) from e

    try:
        return adapter.validate_json(response.content)
    except ValidationError as e:
        raise ConversionError(
            f"Unable to map response body to {_type_name(response_type)}: {e}"
        ) from e


def _type_name(response_type: Any) -> str:
    return getattr(response_type, "__name__", None) or repr(response_type)


def _parse_error_message(response: httpx.Response) -> ErrorMessage | None:
    if "json" not in response.headers.get("content-type", "").lower():
        return None
    try:
        return ErrorMessage.model_validate_json(response.content)
    except ValidationError:
        # Error body is not in the API's error format; the raw text is still attached
        return None
