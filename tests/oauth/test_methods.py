"""Tests for auth strategy selection."""

import pytest

from xplorer.oauth.credentials import (
    CredentialSet,
    PkceClientCredentials,
    SignedUserCredentials,
    StaticBearerCredentials,
)
from xplorer.oauth.exceptions import NoAuthMethodError
from xplorer.oauth.methods import AuthMethod, ensure_method_available, select_auth_method

SIGNED = SignedUserCredentials("ck", "cs", "at", "ats")
PKCE = PkceClientCredentials("client")
BEARER = StaticBearerCredentials("bearer")


class TestSelectAuthMethod:
    """Preference order: signed > PKCE > bearer."""

    def test_signed_preferred_over_everything(self):
        credentials = CredentialSet(signed_user=SIGNED, pkce_client=PKCE, static_bearer=BEARER)
        assert select_auth_method(credentials) is AuthMethod.SIGNED_USER_CONTEXT

    def test_pkce_preferred_over_bearer(self):
        credentials = CredentialSet(pkce_client=PKCE, static_bearer=BEARER)
        assert select_auth_method(credentials) is AuthMethod.PKCE_DELEGATED

    def test_bearer_only(self):
        credentials = CredentialSet(static_bearer=BEARER)
        assert select_auth_method(credentials) is AuthMethod.STATIC_BEARER_ONLY

    def test_empty_set_raises(self):
        with pytest.raises(NoAuthMethodError):
            select_auth_method(CredentialSet())


class TestEnsureMethodAvailable:
    def test_available(self):
        ensure_method_available(AuthMethod.PKCE_DELEGATED, CredentialSet(pkce_client=PKCE))

    @pytest.mark.parametrize(
        "method",
        [AuthMethod.SIGNED_USER_CONTEXT, AuthMethod.PKCE_DELEGATED],
    )
    def test_missing_slot_raises(self, method):
        with pytest.raises(NoAuthMethodError, match=method.value):
            ensure_method_available(method, CredentialSet(static_bearer=BEARER))
