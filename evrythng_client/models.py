"""Data models for evrythng-client.

All models use Pydantic v2, except TypedResponseWithEntity which wraps a live
httpx.Response and is a plain dataclass.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Self, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

T = TypeVar("T")

DEFAULT_API_URL = "https://api.evrythng.com"
DEFAULT_TIMEOUT = 30.0


# =============================================================================
# Response Materialization
# =============================================================================


class ResponseKind(str, Enum):
    """How a terminal operation materializes the response body."""

    TYPED = "typed"  # Body mapped to the command's response type
    STRING = "string"  # Body as text
    RESPONSE = "response"  # The httpx.Response itself
    STREAM = "stream"  # Body as a binary stream
    BUNDLE = "bundle"  # Response plus typed entity; bundle() only


@dataclass(frozen=True)
class TypedResponseWithEntity(Generic[T]):
    """Result of ApiCommand.bundle(): one response, both materializations."""

    response: httpx.Response
    entity: T


# =============================================================================
# Runtime Configuration Models
# =============================================================================


class TransportConfig(BaseModel):
    """Transport-level parameters applied to each client a command creates.

    trust_all_certificates is the relaxed trust policy (any certificate, no
    hostname verification) for hosts with self-signed or pinned certificates.
    It is never on unless set explicitly.
    """

    model_config = ConfigDict(extra="forbid")

    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0, description="Default timeout in seconds")
    connect_timeout: float | None = Field(
        default=None, gt=0, description="Connect timeout override in seconds"
    )
    follow_redirects: bool = Field(default=False, description="Follow 3xx responses")
    proxy: str | None = Field(default=None, description="Proxy URL for all requests")
    trust_all_certificates: bool = Field(
        default=False, description="Accept any server certificate and skip hostname checks"
    )
    ca_bundle: str | None = Field(default=None, description="Path to CA bundle for server verification")
    cert: str | None = Field(default=None, description="Path to client certificate (mTLS)")
    key: str | None = Field(default=None, description="Path to client private key (mTLS)")
    key_password: str | None = Field(default=None, description="Password for the client key")
    ciphers: str | None = Field(default=None, description="OpenSSL cipher string")

    @model_validator(mode="after")
    def check_tls_options(self) -> Self:
        if self.trust_all_certificates and self.ca_bundle is not None:
            raise ValueError("trust_all_certificates and ca_bundle are mutually exclusive")
        if self.key is not None and self.cert is None:
            raise ValueError("key requires cert")
        if self.key_password is not None and self.key is None:
            raise ValueError("key_password requires key")
        return self

    @property
    def customizes_tls(self) -> bool:
        """Whether a custom SSL context is needed for this configuration."""
        return bool(
            self.trust_all_certificates or self.ca_bundle or self.cert or self.ciphers
        )


class ApiConfiguration(BaseModel):
    """Client configuration file structure."""

    model_config = ConfigDict(extra="forbid")

    api_url: str = Field(default=DEFAULT_API_URL, description="Base URL of the API")
    api_key: str = Field(min_length=1, description="API key sent in the Authorization header")
    user_agent: str | None = Field(default=None, description="User-Agent header value")
    transport: TransportConfig = Field(
        default_factory=TransportConfig, description="Transport parameters for every command"
    )


# =============================================================================
# API Payload Models
# =============================================================================


class ErrorMessage(BaseModel):
    """Error body returned by the API on failed requests."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, alias_generator=to_camel)

    status: int | None = None
    code: int | str | None = None
    message: str | None = None
    errors: list[str] = Field(default_factory=list)
    more_info: str | None = None


class ModelView(str, Enum):
    """Serialization views. PRIVATE includes everything PUBLIC does."""

    PUBLIC = "public"
    PRIVATE = "private"


# Marks a field as visible in the private view only:
#     secret: str | None = Field(default=None, json_schema_extra=PRIVATE_VIEW)
PRIVATE_VIEW: dict[str, Any] = {"view": ModelView.PRIVATE.value}


class ResourceModel(BaseModel):
    """Base for API resources.

    Wire names are camelCase; Python attributes are snake_case. Unknown keys
    are kept so that resources round-trip fields this client does not model.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True, alias_generator=to_camel)

    id: str | None = None
    created_at: int | None = None
    updated_at: int | None = None
    custom_fields: dict[str, Any] | None = None
    tags: list[str] | None = None

    @classmethod
    def private_fields(cls) -> set[str]:
        """Names of fields hidden from the public view."""
        names = set()
        for name, info in cls.model_fields.items():
            extra = info.json_schema_extra
            if isinstance(extra, dict) and extra.get("view") == ModelView.PRIVATE.value:
                names.add(name)
        return names

    def dump_view(self, view: ModelView = ModelView.PUBLIC) -> dict[str, Any]:
        """Dump with wire aliases, dropping unset values and fields outside view."""
        exclude = self.private_fields() if view == ModelView.PUBLIC else set()
        return self.model_dump(by_alias=True, exclude_none=True, exclude=exclude)
