"""Tests for evrythng_client.models.

Tests cover:
- TransportConfig defaults and TLS option validation
- ApiConfiguration defaults and required fields
- ResourceModel aliases and public/private views
- ErrorMessage tolerance of unknown keys
"""

import pytest
from pydantic import ValidationError

from evrythng_client.models import (
    DEFAULT_API_URL,
    ApiConfiguration,
    ErrorMessage,
    ModelView,
    ResourceModel,
    TransportConfig,
)

from tests.conftest import Thng


class TestTransportConfig:
    def test_defaults(self) -> None:
        config = TransportConfig()
        assert config.timeout == 30.0
        assert config.trust_all_certificates is False
        assert config.follow_redirects is False
        assert config.customizes_tls is False

    def test_trust_all_and_ca_bundle_exclusive(self) -> None:
        with pytest.raises(ValidationError, match="mutually exclusive"):
            TransportConfig(trust_all_certificates=True, ca_bundle="/etc/ca.pem")

    def test_key_requires_cert(self) -> None:
        with pytest.raises(ValidationError, match="key requires cert"):
            TransportConfig(key="/etc/client.key")

    def test_key_password_requires_key(self) -> None:
        with pytest.raises(ValidationError, match="key_password requires key"):
            TransportConfig(cert="/etc/client.pem", key_password="secret")

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            TransportConfig(timeout=0)

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TransportConfig(verify=False)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"trust_all_certificates": True},
            {"ca_bundle": "/etc/ca.pem"},
            {"cert": "/etc/client.pem"},
            {"ciphers": "ECDHE+AESGCM"},
        ],
    )
    def test_customizes_tls(self, kwargs: dict) -> None:
        assert TransportConfig(**kwargs).customizes_tls is True


class TestApiConfiguration:
    def test_defaults(self) -> None:
        config = ApiConfiguration(api_key="key")
        assert config.api_url == DEFAULT_API_URL
        assert config.user_agent is None
        assert config.transport == TransportConfig()

    def test_api_key_required(self) -> None:
        with pytest.raises(ValidationError):
            ApiConfiguration()

    def test_empty_api_key_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ApiConfiguration(api_key="")

    def test_nested_transport(self) -> None:
        config = ApiConfiguration.model_validate(
            {"api_key": "key", "transport": {"timeout": 5, "trust_all_certificates": True}}
        )
        assert config.transport.timeout == 5.0
        assert config.transport.trust_all_certificates is True


class TestResourceModel:
    def test_populate_by_alias_and_name(self) -> None:
        by_alias = ResourceModel.model_validate({"id": "a", "createdAt": 1, "customFields": {"k": 1}})
        by_name = ResourceModel(id="a", created_at=1, custom_fields={"k": 1})
        assert by_alias == by_name

    def test_public_view_hides_private_fields(self) -> None:
        thng = Thng(id="abc", name="Fridge", owner="user-1")
        assert thng.dump_view(ModelView.PUBLIC) == {"id": "abc", "name": "Fridge"}

    def test_private_view_includes_everything(self) -> None:
        thng = Thng(id="abc", name="Fridge", owner="user-1")
        assert thng.dump_view(ModelView.PRIVATE) == {"id": "abc", "name": "Fridge", "owner": "user-1"}

    def test_private_fields(self) -> None:
        assert Thng.private_fields() == {"owner"}
        assert ResourceModel.private_fields() == set()

    def test_view_dump_uses_aliases(self) -> None:
        thng = Thng(updated_at=5, custom_fields={"k": "v"})
        assert thng.dump_view() == {"updatedAt": 5, "customFields": {"k": "v"}}


class TestErrorMessage:
    def test_parses_api_error(self) -> None:
        error = ErrorMessage.model_validate_json(
            '{"status": 400, "errors": ["Bad field"], "moreInfo": "https://x", "extra": 1}'
        )
        assert error.status == 400
        assert error.errors == ["Bad field"]
        assert error.more_info == "https://x"

    def test_all_fields_optional(self) -> None:
        error = ErrorMessage.model_validate({})
        assert error.errors == []
        assert error.message is None
