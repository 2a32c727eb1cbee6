"""Transport - Turns a TransportConfig into httpx.Client keyword arguments.

TLS handling mirrors what httpx accepts: without TLS options the httpx
default verification is used; otherwise a single SSLContext carries the CA
bundle, client certificate, cipher list and (when explicitly requested) the
relaxed trust policy.
"""

from __future__ import annotations

import logging
import ssl
from typing import Any

import httpx

from evrythng_client.errors import TlsConfigurationError
from evrythng_client.models import TransportConfig

logger = logging.getLogger(__name__)


def build_client_kwargs(config: TransportConfig) -> dict[str, Any]:
    """Build kwargs for httpx.Client.

    Args:
        config: Transport configuration.

    Returns:
        Dictionary of kwargs for the httpx.Client constructor.

    Raises:
        TlsConfigurationError: If the SSL context cannot be built.
    """
    kwargs: dict[str, Any] = {
        "timeout": httpx.Timeout(config.timeout, connect=config.connect_timeout or config.timeout),
        "follow_redirects": config.follow_redirects,
    }
    if config.proxy:
        kwargs["proxy"] = config.proxy
    if config.customizes_tls:
        kwargs["verify"] = build_ssl_context(config)
    return kwargs


def build_ssl_context(config: TransportConfig) -> ssl.SSLContext:
    """Create the SSLContext for a client.

    Raises:
        TlsConfigurationError: On an invalid cipher string, or an unreadable
            CA bundle, certificate or key.
    """
    try:
        ssl_context = ssl.create_default_context(cafile=config.ca_bundle)
        if config.cert:
            ssl_context.load_cert_chain(
                config.cert, keyfile=config.key, password=config.key_password
            )
        if config.ciphers:
            ssl_context.set_ciphers(config.ciphers)
    except (ssl.SSLError, OSError) as e:
        raise TlsConfigurationError(f"Unable to build SSL context: {e}") from e

    if config.trust_all_certificates:
        # check_hostname must be cleared before verify_mode can drop to CERT_NONE
        logger.debug("Relaxed TLS trust enabled: certificates and hostnames are not verified")
        ssl_context.check_hostname = False
        ssl_context.verify_mode = ssl.CERT_NONE

    return ssl_context
