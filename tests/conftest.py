"""Pytest configuration and fixtures for evrythng-client tests.

This file provides:
- Thng: a small resource record used as the typed response in tests
- RecordingTransport: httpx.MockTransport that keeps every request it served
- TrackedClient / created_clients: count client creation and teardown
- PortReservation / MockServer: subprocess management for the mock API server
"""

from __future__ import annotations

import socket
import subprocess
import sys
import time
from pathlib import Path
from typing import Any, Callable, Generator
from unittest.mock import patch

import httpx
import pytest
from pydantic import Field

from evrythng_client.models import PRIVATE_VIEW, ResourceModel

# Project root for subprocess cwd
PROJECT_ROOT = Path(__file__).parent.parent
MOCK_SERVER_MODULE = "tests.integration.mock_server"

API_URL = "https://api.example.test"
MOCK_API_KEY = "integration-key"


class Thng(ResourceModel):
    """Minimal thng record for typed conversion tests."""

    name: str | None = None
    description: str | None = None
    product: str | None = None
    owner: str | None = Field(default=None, json_schema_extra=PRIVATE_VIEW)


class RecordingTransport(httpx.MockTransport):
    """MockTransport that records every request it handles.

    Usage:
        transport = RecordingTransport(lambda request: httpx.Response(200, json={}))
        ApiCommand(http_get(), uri, 200, transport=transport).execute()
        assert transport.requests[0].url == uri
    """

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def recording_handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(recording_handler)

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]


def json_transport(
    body: Any = None,
    status_code: int = 200,
    headers: dict[str, str] | list[tuple[str, str]] | None = None,
) -> RecordingTransport:
    """RecordingTransport that answers every request with the same JSON response.

    Prefer this over building handlers by hand when the test only varies the
    response status, body or headers.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        if body is None:
            return httpx.Response(status_code, headers=headers)
        return httpx.Response(status_code, json=body, headers=headers)

    return RecordingTransport(handler)


_real_client = httpx.Client


class TrackedClient(_real_client):
    """httpx.Client that counts close() calls."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.init_kwargs = kwargs
        self.close_calls = 0

    def close(self) -> None:
        self.close_calls += 1
        super().close()


@pytest.fixture
def created_clients() -> Generator[list[TrackedClient], None, None]:
    """Patch client creation in the command module and collect every client made."""
    clients: list[TrackedClient] = []

    def factory(*args: Any, **kwargs: Any) -> TrackedClient:
        client = TrackedClient(*args, **kwargs)
        clients.append(client)
        return client

    with patch("evrythng_client.command.httpx.Client", side_effect=factory):
        yield clients


class PortReservation:
    """Holds a reserved port with socket kept open to prevent races.

    The port stays bound until release(), which MockServer calls just before
    starting the server subprocess.
    """

    def __init__(self) -> None:
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._socket.bind(("127.0.0.1", 0))  # Port 0 = OS assigns ephemeral port
        self._port = self._socket.getsockname()[1]
        self._released = False

    @property
    def port(self) -> int:
        return self._port

    def release(self) -> int:
        """Release the socket and return the port for server use.

        Safe to call multiple times - subsequent calls are no-ops.
        """
        if not self._released:
            self._socket.close()
            self._released = True
        return self._port


def wait_for_server_ready(host: str, port: int, timeout: float = 10.0) -> bool:
    """Block until server accepts TCP connections, or timeout expires."""
    start = time.time()
    while time.time() - start < timeout:
        try:
            with socket.create_connection((host, port), timeout=1.0):
                return True
        except (ConnectionRefusedError, socket.timeout, OSError):
            time.sleep(0.1)
    return False


class MockServer:
    """Manages the mock API server subprocess for integration tests.

    Runs tests/integration/mock_server.py, a FastAPI app serving a few
    thng endpoints in the API's wire format.
    """

    def __init__(self, reservation: PortReservation) -> None:
        self._reservation = reservation
        self.port = reservation.port
        self.host = "127.0.0.1"
        self.base_url = f"http://{self.host}:{self.port}"
        self._process: subprocess.Popen | None = None

    def start(self) -> None:
        """Start the mock server subprocess.

        Raises:
            RuntimeError: If server fails to start within 10 seconds.
        """
        self._reservation.release()

        self._process = subprocess.Popen(
            [
                sys.executable, "-m", MOCK_SERVER_MODULE,
                "--host", self.host,
                "--port", str(self.port),
                "--api-key", MOCK_API_KEY,
            ],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=PROJECT_ROOT,
        )

        if not wait_for_server_ready(self.host, self.port):
            stderr = ""
            if self._process and self._process.stderr:
                stderr = self._process.stderr.read().decode(errors="replace")
            self.stop()
            raise RuntimeError(
                f"MockServer failed to start on port {self.port}. stderr: {stderr or '(empty)'}"
            )

    def stop(self) -> None:
        """Stop the mock server subprocess with graceful shutdown.

        Uses SIGTERM first, then SIGKILL after 5s if process doesn't exit.
        Safe to call multiple times or if server was never started.
        """
        if self._process:
            self._process.terminate()
            try:
                self._process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self._process.kill()
                try:
                    self._process.wait(timeout=5)
                except subprocess.TimeoutExpired:
                    pass  # Process is unkillable, nothing more we can do
            self._process = None

    def __enter__(self) -> MockServer:
        self.start()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop()


# =============================================================================
# Pytest Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def mock_server() -> Generator[MockServer, None, None]:
    """Start the mock API server once per test session."""
    pytest.importorskip("fastapi")
    pytest.importorskip("uvicorn")
    with MockServer(PortReservation()) as server:
        yield server


# =============================================================================
# Pytest Hooks
# =============================================================================


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Automatically apply markers based on test location.

    Enables running subsets via:
        pytest -m integration  # only integration tests
        pytest -m unit         # only unit tests
    """
    for item in items:
        test_path = Path(item.fspath)
        if "integration" in test_path.parts:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
