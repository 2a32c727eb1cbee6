"""ApiCommand - Generic definition for API commands.

Every API call goes through an ApiCommand: it holds the per-call headers and
query parameters, the expected response status and the response type, and
runs one HTTP exchange per terminal operation:

    create client -> build URI and request -> send -> assert status
    -> convert body -> close client

The client is created fresh for each terminal operation and closed on every
exit path, so nothing is pooled or shared between calls.

Thread safety: a command's mutators and the start of each dispatch share a
lock. A dispatch works on a snapshot of the headers, query parameters and
transport config taken when it starts; mutations made while it is in flight
only affect later dispatches. Separate commands share no state at all.
"""

from __future__ import annotations

import io
import logging
from http import HTTPStatus
from threading import Lock
from typing import Any, Generic, TypeVar, overload

import httpx

from evrythng_client.converter import assert_status, convert
from evrythng_client.errors import ExecutionError
from evrythng_client.http_methods import Method, MethodBuilder, http_get
from evrythng_client.models import ResponseKind, TransportConfig, TypedResponseWithEntity
from evrythng_client.transport import build_client_kwargs
from evrythng_client.uri_builder import UriBuilder

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ApiCommand(Generic[T]):
    """One configured, repeatable HTTP API call.

    Usage:
        command = ApiCommand(http_get(), "https://api.evrythng.com/thngs/abc",
                             HTTPStatus.OK, Thng)
        command.set_header("Authorization", api_key)
        thng = command.execute()

    Terminal operations (execute, content, request, stream, bundle, head)
    can be called any number of times.
    """

    def __init__(
        self,
        method_builder: MethodBuilder,
        uri: str,
        expected_status: int | HTTPStatus,
        response_type: Any = None,
        response_kind: ResponseKind = ResponseKind.TYPED,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the command.

        Args:
            method_builder: Builds the request (verb and body) for the final URI.
            uri: Absolute URI of the resource, without the command's query
                parameters.
            expected_status: The only status accepted as success.
            response_type: Type the body is mapped to by execute() and bundle().
            response_kind: What execute() returns. BUNDLE is reserved for
                bundle() and cannot be configured.
            transport: httpx transport handed to every client this command
                creates. None uses the default network transport.
        """
        if response_kind == ResponseKind.BUNDLE:
            raise ValueError("BUNDLE cannot be configured as the response kind; use bundle()")

        self._method_builder = method_builder
        self._uri = uri
        self._expected_status = int(expected_status)
        self._response_type = response_type
        self._response_kind = response_kind
        self._transport = transport

        self._headers: dict[str, str] = {}
        self._query_params: dict[str, list[str]] = {}
        self._transport_config: TransportConfig | None = None
        self._lock = Lock()

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def uri(self) -> str:
        return self._uri

    @property
    def method(self) -> Method:
        return self._method_builder.method

    @property
    def expected_status(self) -> int:
        return self._expected_status

    @property
    def response_type(self) -> Any:
        return self._response_type

    @property
    def response_kind(self) -> ResponseKind:
        return self._response_kind

    @property
    def headers(self) -> dict[str, str]:
        """Copy of the configured request headers."""
        with self._lock:
            return dict(self._headers)

    @property
    def query_params(self) -> dict[str, list[str]]:
        """Copy of the configured query parameters."""
        with self._lock:
            return {name: list(values) for name, values in self._query_params.items()}

    @property
    def transport_config(self) -> TransportConfig | None:
        return self._transport_config

    # -------------------------------------------------------------------------
    # Mutators
    # -------------------------------------------------------------------------

    def set_header(self, name: str, value: str) -> None:
        """Set (add or overwrite) a request header."""
        logger.debug("Setting header: [name=%s]", name)
        with self._lock:
            self._headers[name] = value

    def remove_header(self, name: str) -> None:
        """Remove a request header. No-op if it is not set."""
        logger.debug("Removing header: [name=%s]", name)
        with self._lock:
            self._headers.pop(name, None)

    @overload
    def set_query_param(self, name: str, value: str) -> None: ...

    @overload
    def set_query_param(self, name: str, value: list[str]) -> None: ...

    def set_query_param(self, name: str, value: str | list[str]) -> None:
        """Set a query parameter.

        The two forms differ on purpose:
        - a single string REPLACES every value already held for name, so the
          parameter ends up with exactly that one value;
        - a list APPENDS its values to whatever name already holds.

            command.set_query_param("page", "1")
            command.set_query_param("page", "2")        # page=2
            command.set_query_param("tags", ["a", "b"])
            command.set_query_param("tags", ["c"])      # tags=a&tags=b&tags=c
        """
        logger.debug("Setting query parameter: [name=%s, value=%s]", name, value)
        with self._lock:
            if isinstance(value, str):
                self._query_params.pop(name, None)
                self._query_params[name] = [value]
            else:
                self._query_params.setdefault(name, []).extend(value)

    def remove_query_param(self, name: str) -> None:
        """Remove all values of a query parameter."""
        logger.debug("Removing query parameter: [name=%s]", name)
        with self._lock:
            self._query_params.pop(name, None)

    def set_transport_config(self, config: TransportConfig | None) -> None:
        """Override transport parameters for subsequent executions.

        None restores the defaults.
        """
        logger.debug("Setting transport config: [%s]", config)
        with self._lock:
            self._transport_config = config

    # -------------------------------------------------------------------------
    # Terminal operations
    # -------------------------------------------------------------------------

    def execute(self) -> T:
        """Execute and return the body as configured by the response kind."""
        return self._dispatch(self._method_builder, self._response_kind)

    def content(self) -> str:
        """Execute and return the body as text."""
        return self._dispatch(self._method_builder, ResponseKind.STRING)

    def request(self) -> httpx.Response:
        """Execute and return the httpx.Response.

        The body is fully read before the client is closed, so .content,
        .text, .json() and .iter_bytes() all remain available.
        """
        return self._dispatch(self._method_builder, ResponseKind.RESPONSE)

    def stream(self) -> io.BytesIO:
        """Execute and return the body as a binary file-like object.

        The caller owns the stream and should close it.
        """
        return self._dispatch(self._method_builder, ResponseKind.STREAM)

    def bundle(self) -> TypedResponseWithEntity[T]:
        """Execute once and return both the response and the typed entity."""
        return self._dispatch(self._method_builder, ResponseKind.BUNDLE)

    def head(self, header_name: str) -> str | None:
        """Return the first value of a response header, or None if absent.

        Sent as a GET rather than a HEAD, so the entity body is transferred
        too. The expected status is the command's own.
        """
        response = self._dispatch(http_get(), ResponseKind.RESPONSE)
        logger.debug("Retrieving first header: [name=%s]", header_name)
        values = response.headers.get_list(header_name)
        return values[0] if values else None

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def build_uri(self) -> str:
        """Return the base URI with all current query parameters applied."""
        with self._lock:
            params = {name: list(values) for name, values in self._query_params.items()}
        return self._build_uri(params)

    def _build_uri(self, params: dict[str, list[str]]) -> str:
        return UriBuilder.from_uri(self._uri).query_params(params).build()

    def _dispatch(self, method_builder: MethodBuilder, kind: ResponseKind) -> Any:
        """Run one full client lifecycle and project the response as kind."""
        with self._lock:
            headers = dict(self._headers)
            params = {name: list(values) for name, values in self._query_params.items()}
            transport_config = self._transport_config

        uri = self._build_uri(params)
        client = self._create_client(transport_config)
        try:
            response = self._perform_request(client, method_builder, uri, headers)
            if kind == ResponseKind.BUNDLE:
                entity = convert(response, ResponseKind.TYPED, self._response_type)
                return TypedResponseWithEntity(response=response, entity=entity)
            return convert(response, kind, self._response_type)
        finally:
            self._shutdown(client)

    def _create_client(self, transport_config: TransportConfig | None) -> httpx.Client:
        """Create the client for one dispatch.

        Raises:
            TlsConfigurationError: If the SSL context cannot be built. No
                client is created in that case.
        """
        kwargs = build_client_kwargs(transport_config or TransportConfig())
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return httpx.Client(**kwargs)

    def _perform_request(
        self,
        client: httpx.Client,
        method_builder: MethodBuilder,
        uri: str,
        headers: dict[str, str],
    ) -> httpx.Response:
        """Build, send and status-check the request.

        Raises:
            ExecutionError: If the request cannot be built or sent, or the
                body cannot be read.
            UnexpectedStatusError: If the status is not the expected one.
        """
        try:
            request = method_builder.build(uri)
            for name, value in headers.items():
                request.headers[name] = value

            logger.debug(">> Executing request: [method=%s, url=%s]", request.method, request.url)
            # send() rather than request(): the client adds no default headers
            response = client.send(request)
            logger.debug(
                "<< Response received: [status=%s %s]", response.status_code, response.reason_phrase
            )
        except httpx.InvalidURL as e:
            raise ExecutionError(uri, str(e)) from e
        except httpx.HTTPError as e:
            raise ExecutionError(uri, str(e)) from e

        assert_status(response, self._expected_status, uri)
        return response

    def _shutdown(self, client: httpx.Client) -> None:
        """Close the client, releasing all of its connections."""
        client.close()
        logger.debug("Client closed")
