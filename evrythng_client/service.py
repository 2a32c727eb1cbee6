"""ApiService - Creates ApiCommands pre-configured for one API account.

Commands get the API key, Accept and User-Agent headers and the configured
transport parameters; the caller can still change any of them on the command
before executing it.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any

import httpx

from evrythng_client.command import ApiCommand
from evrythng_client.http_methods import (
    JSON_MEDIA_TYPE,
    MethodBuilder,
    http_delete,
    http_get,
    http_post,
    http_put,
)
from evrythng_client.models import ApiConfiguration, ResponseKind


class ApiService:
    """Factory for ApiCommands against one API base URL.

    Usage:
        service = ApiService(ApiConfiguration(api_key="..."))
        thng = service.get("/thngs/abc", Thng).execute()
        created = service.post("/thngs", new_thng, Thng).execute()
    """

    def __init__(
        self,
        config: ApiConfiguration,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport

    @property
    def config(self) -> ApiConfiguration:
        return self._config

    def absolute_uri(self, relative_path: str) -> str:
        """Join the API base URL and a path, with exactly one slash between."""
        return f"{self._config.api_url.rstrip('/')}/{relative_path.lstrip('/')}"

    def command(
        self,
        method_builder: MethodBuilder,
        relative_path: str,
        expected_status: int | HTTPStatus,
        response_type: Any = None,
        response_kind: ResponseKind = ResponseKind.TYPED,
    ) -> ApiCommand:
        command: ApiCommand = ApiCommand(
            method_builder,
            self.absolute_uri(relative_path),
            expected_status,
            response_type,
            response_kind=response_kind,
            transport=self._transport,
        )
        command.set_header("Authorization", self._config.api_key)
        command.set_header("Accept", JSON_MEDIA_TYPE)
        if self._config.user_agent:
            command.set_header("User-Agent", self._config.user_agent)
        command.set_transport_config(self._config.transport)
        return command

    def get(self, relative_path: str, response_type: Any = None) -> ApiCommand:
        return self.command(http_get(), relative_path, HTTPStatus.OK, response_type)

    def post(self, relative_path: str, body: Any, response_type: Any = None) -> ApiCommand:
        return self.command(http_post(body), relative_path, HTTPStatus.CREATED, response_type)

    def put(self, relative_path: str, body: Any, response_type: Any = None) -> ApiCommand:
        return self.command(http_put(body), relative_path, HTTPStatus.OK, response_type)

    def delete(self, relative_path: str) -> ApiCommand:
        return self.command(http_delete(), relative_path, HTTPStatus.OK)
