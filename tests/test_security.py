import pytest

from agri_initiatives_api.app.core.auth_provider import LocalAuthProvider
from agri_initiatives_api.app.core.errors import AuthProviderError, UnauthorizedError, UpstreamFailure
from agri_initiatives_api.app.core.security import (
    authenticate,
    check_public_key,
    create_access_token,
    decode_access_token,
    extract_bearer_token,
    hash_password,
    verify_password,
)
from agri_initiatives_api.app.schemas.user import CallerIdentity


def test_token_round_trip():
    token = create_access_token({"sub": "user-1"}, "secret", 60)
    payload = decode_access_token(token, "secret")
    assert payload["sub"] == "user-1"
    assert "exp" in payload


def test_token_rejected_with_wrong_secret_or_expired():
    token = create_access_token({"sub": "user-1"}, "secret", 60)
    assert decode_access_token(token, "other") is None
    expired = create_access_token({"sub": "user-1"}, "secret", -10)
    assert decode_access_token(expired, "secret") is None


@pytest.mark.parametrize("token", ["", "abc", "a.b", "a.b.c", "!!.??.**"])
def test_garbage_tokens_rejected(token):
    assert decode_access_token(token, "secret") is None


def test_password_hashing():
    hashed = hash_password("s3cret")
    assert hashed != hash_password("s3cret")
    assert verify_password("s3cret", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("s3cret", "not-a-hash")


@pytest.mark.parametrize("header", [None, "", "   ", "Bearer", "Basic abc", "Bearer a b", "token"])
def test_extract_bearer_token_rejects_malformed(header):
    with pytest.raises(UnauthorizedError):
        extract_bearer_token(header)


def test_extract_bearer_token():
    assert extract_bearer_token("Bearer abc.def") == "abc.def"
    assert extract_bearer_token("bearer xyz") == "xyz"


class StubProvider:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def get_user(self, token):
        self.calls.append(token)
        if self.error:
            raise self.error
        return CallerIdentity(id="user-1")


def test_authenticate_round_trips_every_call():
    provider = StubProvider()
    assert authenticate("Bearer t1", provider).id == "user-1"
    assert authenticate("Bearer t1", provider).id == "user-1"
    assert provider.calls == ["t1", "t1"]


def test_authenticate_maps_rejection_to_unauthorized():
    with pytest.raises(UnauthorizedError) as exc_info:
        authenticate("Bearer t1", StubProvider(AuthProviderError("bad token")))
    assert exc_info.value.message == "Unauthorized - Invalid token"


def test_authenticate_does_not_call_provider_without_token():
    provider = StubProvider()
    with pytest.raises(UnauthorizedError):
        authenticate(None, provider)
    assert provider.calls == []


def test_authenticate_propagates_upstream_failure():
    with pytest.raises(UpstreamFailure):
        authenticate("Bearer t1", StubProvider(UpstreamFailure("down")))


def test_check_public_key():
    check_public_key(None, "")
    check_public_key("Bearer anon", "anon")
    with pytest.raises(UnauthorizedError):
        check_public_key(None, "anon")
    with pytest.raises(UnauthorizedError):
        check_public_key("Bearer other", "anon")


@pytest.fixture
def local_provider(db_path):
    provider = LocalAuthProvider(db_path, "secret", 3600)
    provider.initialize()
    return provider


def test_local_provider_sign_up_sign_in_get_user(local_provider):
    user = local_provider.sign_up(" Farmer@Example.com ", "pw", "Farmer")
    assert user.email == "farmer@example.com"

    session = local_provider.sign_in("farmer@example.com", "pw")
    assert session.token_type == "bearer"
    assert session.user.id == user.id

    assert local_provider.get_user(session.access_token).model_dump() == user.model_dump()


def test_local_provider_rejections(local_provider):
    local_provider.sign_up("farmer@example.com", "pw", "Farmer")
    with pytest.raises(AuthProviderError):
        local_provider.sign_up("FARMER@example.com", "pw2", "Other")
    with pytest.raises(AuthProviderError):
        local_provider.sign_in("farmer@example.com", "wrong")
    with pytest.raises(AuthProviderError):
        local_provider.sign_in("nobody@example.com", "pw")
    with pytest.raises(AuthProviderError):
        local_provider.get_user("not-a-token")
    # A valid signature for an account that does not exist.
    orphan = create_access_token({"sub": "ghost"}, "secret", 60)
    with pytest.raises(AuthProviderError):
        local_provider.get_user(orphan)
