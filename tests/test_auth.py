"""Session token and logon tests."""

import uuid

import pytest

from imageboard.models.user import User
from imageboard.services.auth import (
    TokenError,
    authenticate_user,
    generate_token,
    revoke_token,
    validate_token,
)

IP = "10.0.0.7"


def _token_row(db, name):
    db.expire_all()
    return db.query(User).filter(User.name == name).one()


def test_generate_then_validate(db, make_user):
    make_user("alice")
    token = generate_token(db, "alice", IP)
    assert uuid.UUID(token).version == 4
    validate_token(db, "alice", token, IP)


def test_generate_token_unknown_user(db):
    with pytest.raises(TokenError, match="check if user exists"):
        generate_token(db, "nobody", IP)


def test_new_token_replaces_old(db, make_user):
    """Logging on again ends the previous session."""
    make_user("alice")
    first = generate_token(db, "alice", IP)
    second = generate_token(db, "alice", IP)
    assert first != second
    with pytest.raises(TokenError):
        validate_token(db, "alice", first, IP)
    validate_token(db, "alice", second, IP)


def test_validate_unknown_user(db):
    with pytest.raises(TokenError, match="Token invalid"):
        validate_token(db, "nobody", str(uuid.uuid4()), IP)


def test_validate_without_stored_token(db, make_user):
    make_user("alice")
    with pytest.raises(TokenError, match="Token invalid"):
        validate_token(db, "alice", str(uuid.uuid4()), IP)


@pytest.mark.parametrize("supplied", [None, "", "not-a-uuid", str(uuid.UUID(int=0))])
def test_validate_blank_or_malformed_token(db, make_user, supplied):
    make_user("alice")
    generate_token(db, "alice", IP)
    with pytest.raises(TokenError, match="blank"):
        validate_token(db, "alice", supplied, IP)


def test_validate_wrong_ip(db, make_user):
    make_user("alice")
    token = generate_token(db, "alice", IP)
    with pytest.raises(TokenError, match="Token invalid"):
        validate_token(db, "alice", token, "10.0.0.8")


def test_validate_wrong_token(db, make_user):
    make_user("alice")
    generate_token(db, "alice", IP)
    with pytest.raises(TokenError, match="Token invalid"):
        validate_token(db, "alice", str(uuid.uuid4()), IP)


def test_validate_accepts_uppercase_token(db, make_user):
    make_user("alice")
    token = generate_token(db, "alice", IP)
    validate_token(db, "alice", token.upper(), IP)


def test_validate_disabled_account(db, make_user):
    user = make_user("alice")
    token = generate_token(db, "alice", IP)
    user.disabled = True
    db.commit()
    with pytest.raises(TokenError, match="disabled"):
        validate_token(db, "alice", token, IP)


def test_revoke_token(db, make_user):
    make_user("alice")
    token = generate_token(db, "alice", IP)
    revoke_token(db, "alice")

    row = _token_row(db, "alice")
    assert row.token_id is None
    assert row.ip is None
    with pytest.raises(TokenError):
        validate_token(db, "alice", token, IP)


def test_revoke_token_is_idempotent(db, make_user):
    make_user("alice")
    revoke_token(db, "alice")
    revoke_token(db, "alice")
    revoke_token(db, "nobody")


def test_authenticate_user(db, make_user):
    user = make_user("alice")
    assert authenticate_user(db, "alice", "testpass123").id == user.id
    assert authenticate_user(db, "alice", "wrong") is None
    assert authenticate_user(db, "nobody", "testpass123") is None

    user.disabled = True
    db.commit()
    assert authenticate_user(db, "alice", "testpass123") is None


def test_logon_sets_session_cookies(client, db, make_user, celery_tasks):
    make_user("alice")
    response = client.post(
        "/logon",
        data={"userName": "alice", "password": "testpass123"},
        follow_redirects=False,
    )
    assert response.status_code == 302
    assert response.headers["location"] == "/images"
    assert response.cookies["UserName"] == "alice"

    row = _token_row(db, "alice")
    assert response.cookies["TokenID"] == row.token_id
    assert row.ip == "testclient"
    celery_tasks["audit"].assert_called_with(row.id, "LOGON", "alice logged on.")


def test_logon_invalid_password(client, make_user):
    make_user("alice")
    response = client.post("/logon", data={"userName": "alice", "password": "wrong"})
    assert response.status_code == 200
    assert "Invalid user name or password." in response.text
    assert "TokenID" not in response.cookies


def test_logon_missing_fields(client):
    response = client.post("/logon", data={"userName": "alice"})
    assert "Please provide a user name and password." in response.text


def test_session_shows_user_in_navigation(client, make_user, login):
    make_user("alice")
    login("alice")
    response = client.get("/images")
    assert response.status_code == 200
    assert '<span class="user">alice</span>' in response.text
    assert "Log out" in response.text


def test_tampered_cookie_is_anonymous(client, make_user, login):
    make_user("alice")
    login("alice")
    client.cookies.clear()
    client.cookies.set("UserName", "alice")
    client.cookies.set("TokenID", str(uuid.uuid4()))
    response = client.get("/images")
    assert '<span class="user">' not in response.text
    assert "Log on" in response.text


def test_logout_revokes_token(client, db, make_user, login):
    make_user("alice")
    login("alice")
    response = client.get("/logout", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "/logon?prevMessage=Logged+out"
    assert _token_row(db, "alice").token_id is None


def test_account_creation_disabled_by_default(client, db):
    response = client.post(
        "/logon", data={"userName": "bob", "password": "pw", "command": "create"}
    )
    assert "Account creation is disabled on this server." in response.text
    assert db.query(User).filter(User.name == "bob").first() is None


def test_account_creation(client, db, settings):
    settings.allow_account_creation = True
    response = client.post(
        "/logon",
        data={"userName": "bob", "password": "pw", "command": "create"},
        follow_redirects=False,
    )
    assert response.status_code == 302
    user = _token_row(db, "bob")
    assert user.permissions == settings.default_permissions
    assert user.token_id == response.cookies["TokenID"]


def test_account_creation_name_taken(client, make_user, settings):
    settings.allow_account_creation = True
    make_user("bob")
    response = client.post(
        "/logon", data={"userName": "bob", "password": "pw", "command": "create"}
    )
    assert "That user name is already taken." in response.text
