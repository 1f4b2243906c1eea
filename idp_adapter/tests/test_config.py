"""Tests for AdapterConfig validation and environment loading."""
from dataclasses import FrozenInstanceError

import pytest

from idp_adapter.config import AdapterConfig, load_adapter_config
from idp_adapter.errors import ConfigurationError


def _config(**overrides):
    values = {
        "label": "okta",
        "client_id": "abc123",
        "client_secret": "s",
        "issuer": "https://idp.example.com",
        "audience": "abc123",
        "login_callback": "https://app.example.com/login/cb",
        "signup_callback": "https://app.example.com/signup/cb",
        "issuer_logout_path": "logout",
    }
    values.update(overrides)
    return AdapterConfig(**values)


def test_valid_config():
    c = _config()
    assert c.issuer == "https://idp.example.com"
    assert c.token_auth_style == "basic"
    assert c.signing_algorithms == ("RS256",)


@pytest.mark.parametrize("field", ["issuer", "login_callback", "signup_callback"])
@pytest.mark.parametrize("value", ["", "not a url", "idp.example.com/path", "ftp://idp.example.com"])
def test_invalid_urls_rejected(field, value):
    with pytest.raises(ConfigurationError):
        _config(**{field: value})


def test_unknown_token_auth_style_rejected():
    with pytest.raises(ConfigurationError):
        _config(token_auth_style="jwt")


def test_config_is_immutable():
    c = _config()
    with pytest.raises(FrozenInstanceError):
        c.issuer = "https://evil.example.com"


def test_load_from_environ():
    env = {
        "IDP_LABEL": "okta",
        "IDP_CLIENT_ID": "abc123",
        "IDP_CLIENT_SECRET": "s",
        "IDP_ISSUER": "https://idp.example.com",
        "IDP_AUDIENCE": "api://default",
        "IDP_LOGIN_CALLBACK": "https://app.example.com/login/cb",
        "IDP_SIGNUP_CALLBACK": "https://app.example.com/signup/cb",
        "IDP_ISSUER_LOGOUT_PATH": "/oauth2/v1/logout",
        "IDP_TOKEN_AUTH_STYLE": "post",
        "IDP_HTTP_TIMEOUT": "2.5",
    }
    c = load_adapter_config(env)
    assert c.audience == "api://default"
    assert c.issuer_logout_path == "/oauth2/v1/logout"
    assert c.token_auth_style == "post"
    assert c.http_timeout == 2.5


def test_load_from_environ_missing_issuer():
    with pytest.raises(ConfigurationError):
        load_adapter_config({"IDP_LOGIN_CALLBACK": "https://a/cb", "IDP_SIGNUP_CALLBACK": "https://a/cb"})


def test_load_from_environ_bad_timeout():
    with pytest.raises(ConfigurationError):
        load_adapter_config({"IDP_HTTP_TIMEOUT": "soon"})
