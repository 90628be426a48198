"""Tests for authentication and the authorization gate."""
import pytest

from bookcatalog.auth import AuthenticationService, AuthorizationGate, check_password, hash_password
from bookcatalog.errors import InvalidCredentialsError, UnauthorizedError
from bookcatalog.models import RegisterRequest
from bookcatalog.seed import FIXTURE_PASSWORD
from bookcatalog.storage import USER


def test_password_hash_round_trip():
    encoded = hash_password("password123")

    assert encoded.startswith("pbkdf2_sha256$")
    assert check_password("password123", encoded)
    assert not check_password("password124", encoded)
    assert not check_password("password123", "garbage")


def test_same_password_gets_different_salts():
    assert hash_password("secret") != hash_password("secret")


def test_login_issues_verifiable_token(auth, seeded, run):
    token, user = run(auth.login("John.Doe@example.com", FIXTURE_PASSWORD))

    identity = run(auth.verify(token))

    assert identity.email == "john.doe@example.com"
    assert identity.user_id == seeded.users_by_email["john.doe@example.com"]
    assert "passwordHash" not in user


def test_login_with_wrong_password_fails(auth, seeded, run):
    with pytest.raises(InvalidCredentialsError):
        run(auth.login("john.doe@example.com", "nope"))


def test_register_then_login(auth, run):
    user = run(auth.register(RegisterRequest(
        firstname="Ada", lastname="Lovelace", email="ada@example.com", password="analytical",
    )))

    assert user["email"] == "ada@example.com"
    token, _ = run(auth.login("ada@example.com", "analytical"))
    assert run(auth.verify(token)).user_id == user["_id"]


def test_expired_token_is_rejected(store, seeded, run):
    now = [1000.0]
    auth = AuthenticationService(store, token_ttl_seconds=60, clock=lambda: now[0])
    token, _ = run(auth.login("jane.smith@example.com", FIXTURE_PASSWORD))

    now[0] += 61

    with pytest.raises(UnauthorizedError):
        run(auth.verify(token))


def test_token_of_deleted_user_is_rejected(auth, store, seeded, token, run):
    run(store.delete_by_id(USER, seeded.users_by_email["john.doe@example.com"]))

    with pytest.raises(UnauthorizedError):
        run(auth.verify(token))


@pytest.mark.parametrize(
    "credential",
    [None, "", "   ", "Token abc", "Bearer", "Bearer a b", "Bearer not-a-real-token"],
)
def test_gate_rejects_bad_credentials(gate, seeded, credential, run):
    with pytest.raises(UnauthorizedError):
        run(gate.authorize(credential))


def test_gate_accepts_bearer_token(gate, token, run):
    identity = run(gate.authorize(f"Bearer {token}"))

    assert identity.email == "john.doe@example.com"


def test_gate_scheme_is_case_insensitive(auth, token, run):
    assert run(AuthorizationGate(auth).authorize(f"bearer {token}")).email == "john.doe@example.com"


def test_login_purges_expired_tokens(store, seeded, run):
    now = [1000.0]
    auth = AuthenticationService(store, token_ttl_seconds=60, clock=lambda: now[0])
    stale, _ = run(auth.login("jane.smith@example.com", FIXTURE_PASSWORD))

    now[0] += 61
    fresh, _ = run(auth.login("jane.smith@example.com", FIXTURE_PASSWORD))

    assert stale not in auth._tokens
    assert run(auth.verify(fresh)).email == "jane.smith@example.com"
