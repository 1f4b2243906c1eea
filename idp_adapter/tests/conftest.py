"""
Shared fixtures: a fake provider and an adapter wired to it with a fixed clock.
"""
import pytest

from idp_adapter.adapter import IdentityProviderAdapter
from idp_adapter.config import AdapterConfig
from idp_adapter.tests.fake_idp import (
    AUDIENCE,
    CLIENT_ID,
    CLIENT_SECRET,
    ISSUER,
    LOGIN_CALLBACK,
    SIGNUP_CALLBACK,
    FakeIdP,
    fixed_clock,
)


@pytest.fixture
def fake_idp():
    return FakeIdP()


@pytest.fixture
def idp_client(fake_idp):
    return fake_idp.client()


@pytest.fixture
def adapter_config():
    return AdapterConfig(
        label="test-idp",
        client_id=CLIENT_ID,
        client_secret=CLIENT_SECRET,
        issuer=ISSUER,
        audience=AUDIENCE,
        login_callback=LOGIN_CALLBACK,
        signup_callback=SIGNUP_CALLBACK,
        issuer_logout_path="/logout",
    )


@pytest.fixture
def adapter(adapter_config, idp_client):
    return IdentityProviderAdapter(adapter_config, http_client=idp_client, clock=fixed_clock)
