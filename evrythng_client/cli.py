"""CLI entry point for evrythng-client.

Issues a single API command from the command line, using a client
configuration file for the base URL, API key and transport settings.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from http import HTTPStatus
from pathlib import Path
from typing import Any

import httpx

from evrythng_client.config_loader import ConfigError, load_client_config
from evrythng_client.errors import EvrythngError, UnexpectedStatusError
from evrythng_client.http_methods import Method, MethodBuilder, http_get
from evrythng_client.models import ResponseKind
from evrythng_client.service import ApiService

SHOW_CHOICES = ("body", "headers", "status")


def parse_name_value(value: str) -> tuple[str, str]:
    """Parse NAME=VALUE format.

    Returns:
        Tuple of (name, value). The value may be empty or contain '='.

    Raises:
        argparse.ArgumentTypeError: If format is invalid.
    """
    if "=" not in value:
        raise argparse.ArgumentTypeError(
            f"Invalid format '{value}'. Expected NAME=VALUE (e.g., 'tags=sensor')"
        )
    name, _, parsed = value.partition("=")
    if not name:
        raise argparse.ArgumentTypeError(f"Invalid format '{value}'. Name cannot be empty.")
    return (name, parsed)


def parse_status(value: str) -> int:
    """Parse and validate an HTTP status code.

    Raises:
        argparse.ArgumentTypeError: If value is not a status between 100 and 599.
    """
    try:
        result = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid status '{value}'.")
    if not 100 <= result <= 599:
        raise argparse.ArgumentTypeError(f"Status must be between 100 and 599, got {result}.")
    return result


def parse_json_body(value: str) -> Any:
    """Parse a JSON request body.

    Raises:
        argparse.ArgumentTypeError: If value is not valid JSON.
    """
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"Invalid JSON body: {e}")


@dataclass
class RequestArgs:
    """Parsed arguments for request mode."""

    config: Path
    method: Method
    path: str
    query: dict[str, list[str]]
    headers: dict[str, str]
    data: Any
    expect: int
    show: str
    verbose: bool


@dataclass
class HeadArgs:
    """Parsed arguments for head mode."""

    config: Path
    path: str
    header: str
    expect: int
    verbose: bool


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with request and head subcommands."""
    parser = argparse.ArgumentParser(
        prog="evrythng-client",
        description="Issue EVRYTHNG API commands from the command line.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True, help="Execution mode")

    # Request subcommand
    request_parser = subparsers.add_parser(
        "request",
        help="Execute one API command and print the response",
    )
    request_parser.add_argument(
        "method",
        type=str.upper,
        choices=[m.value for m in Method],
        help="HTTP method",
    )
    request_parser.add_argument("path", help="Path relative to the configured api_url")
    _add_common_arguments(request_parser)
    request_parser.add_argument(
        "--query",
        type=parse_name_value,
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Add a query parameter (repeat a name to send several values)",
    )
    request_parser.add_argument(
        "--header",
        type=parse_name_value,
        action="append",
        default=[],
        metavar="NAME=VALUE",
        dest="header",
        help="Set a request header (last value wins)",
    )
    request_parser.add_argument(
        "--data",
        type=parse_json_body,
        default=None,
        metavar="JSON",
        help="JSON request body (POST and PUT only)",
    )
    request_parser.add_argument(
        "--show",
        choices=SHOW_CHOICES,
        default="body",
        help="What to print from the response (default: body)",
    )

    # Head subcommand
    head_parser = subparsers.add_parser(
        "head",
        help="Print the first value of one response header",
    )
    head_parser.add_argument("path", help="Path relative to the configured api_url")
    head_parser.add_argument("header", help="Response header name")
    _add_common_arguments(head_parser)

    return parser


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to client configuration file (YAML)",
    )
    parser.add_argument(
        "--expect",
        type=parse_status,
        default=None,
        metavar="STATUS",
        help="Expected response status (default: 201 for POST, 200 otherwise)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log requests and responses to stderr",
    )


def _build_query_params(pairs: list[tuple[str, str]]) -> dict[str, list[str]]:
    """Group repeated --query names, keeping first-seen order."""
    result: dict[str, list[str]] = {}
    for name, value in pairs:
        result.setdefault(name, []).append(value)
    return result


def _default_status(method: Method) -> int:
    return HTTPStatus.CREATED if method == Method.POST else HTTPStatus.OK


def parse_request_args(
    parser: argparse.ArgumentParser, namespace: argparse.Namespace
) -> RequestArgs:
    """Convert parsed namespace to RequestArgs dataclass."""
    method = Method(namespace.method)
    if namespace.data is not None and method not in (Method.POST, Method.PUT):
        parser.error(f"--data is not allowed with {method.value}")
    return RequestArgs(
        config=namespace.config,
        method=method,
        path=namespace.path,
        query=_build_query_params(namespace.query or []),
        headers=dict(namespace.header or []),
        data=namespace.data,
        expect=namespace.expect if namespace.expect is not None else int(_default_status(method)),
        show=namespace.show,
        verbose=namespace.verbose,
    )


def parse_head_args(namespace: argparse.Namespace) -> HeadArgs:
    """Convert parsed namespace to HeadArgs dataclass."""
    return HeadArgs(
        config=namespace.config,
        path=namespace.path,
        header=namespace.header,
        expect=namespace.expect if namespace.expect is not None else int(HTTPStatus.OK),
        verbose=namespace.verbose,
    )


def parse_args(args: list[str] | None = None) -> RequestArgs | HeadArgs:
    """Parse command-line arguments and return typed args dataclass.

    Args:
        args: Command-line arguments to parse. If None, uses sys.argv[1:].

    Raises:
        SystemExit: If arguments are invalid (argparse behavior).
    """
    parser = build_parser()
    namespace = parser.parse_args(args)

    if namespace.command == "request":
        return parse_request_args(parser, namespace)
    return parse_head_args(namespace)


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    try:
        parsed = parse_args(args)
        if parsed.verbose:
            logging.basicConfig(
                level=logging.DEBUG,
                format="%(levelname)s %(name)s: %(message)s",
                stream=sys.stderr,
            )

        if isinstance(parsed, RequestArgs):
            return run_request(parsed)
        return run_head(parsed)

    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 1


def _load_service(config_path: Path, transport: httpx.BaseTransport | None) -> ApiService | None:
    try:
        config = load_client_config(config_path)
    except ConfigError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return None
    return ApiService(config, transport=transport)


def run_request(args: RequestArgs, transport: httpx.BaseTransport | None = None) -> int:
    """Run request mode.

    Args:
        args: Parsed request arguments.
        transport: httpx transport for the command; None sends over the network.

    Returns:
        0 on success, 1 on any configuration or API error.
    """
    service = _load_service(args.config, transport)
    if service is None:
        return 1

    command = service.command(
        MethodBuilder(args.method, args.data),
        args.path,
        args.expect,
        response_kind=ResponseKind.RESPONSE,
    )
    for name, value in args.headers.items():
        command.set_header(name, value)
    for name, values in args.query.items():
        command.set_query_param(name, values)

    try:
        response = command.request()
    except UnexpectedStatusError as e:
        print(f"Error: expected status {e.expected}, got {e.actual}", file=sys.stderr)
        if e.body:
            print(e.body, file=sys.stderr)
        return 1
    except EvrythngError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    _print_response(response, args.show)
    return 0


def run_head(args: HeadArgs, transport: httpx.BaseTransport | None = None) -> int:
    """Run head mode.

    Returns:
        0 if the header was found, 1 if absent or on any error.
    """
    service = _load_service(args.config, transport)
    if service is None:
        return 1

    command = service.command(http_get(), args.path, args.expect)
    try:
        value = command.head(args.header)
    except EvrythngError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if value is None:
        print(f"Header '{args.header}' not present in response", file=sys.stderr)
        return 1
    print(value)
    return 0


def _print_response(response: httpx.Response, show: str) -> None:
    if show == "status":
        print(f"{response.status_code} {response.reason_phrase}")
    elif show == "headers":
        for name, value in response.headers.multi_items():
            print(f"{name}: {value}")
    else:
        print(response.text)
