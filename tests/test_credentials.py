import base64

import pytest

from questportal.auth.credentials import (
    CredentialsMalformed,
    CredentialsOk,
    CredentialsUnauthorized,
    ensure_can_assign_role,
    extract_credentials,
    parse_basic_header,
)
from questportal.core.errors import ForbiddenError
from questportal.schemas.user_schema import Role


def header(raw: str) -> str:
    return "Basic " + base64.b64encode(raw.encode()).decode()


def test_parse_basic_header():
    assert parse_basic_header(header("alice:pw")) == ("alice", "pw")
    assert parse_basic_header(header("alice:p:w")) == ("alice", "p:w")
    assert parse_basic_header("Bearer abc") is None
    assert parse_basic_header("Basic !!!notbase64") is None
    assert parse_basic_header(header("no-colon")) is None
    assert parse_basic_header("Basic ") is None


def test_missing_header_is_unauthorized(ledger):
    assert isinstance(extract_credentials(None, ledger), CredentialsUnauthorized)


def test_garbage_header_is_malformed(ledger):
    assert isinstance(extract_credentials("Basic ???", ledger), CredentialsMalformed)


def test_wrong_password_is_unauthorized(ledger):
    ledger.create("alice", "pw")
    assert isinstance(extract_credentials(header("alice:nope"), ledger), CredentialsUnauthorized)
    assert isinstance(extract_credentials(header("ghost:pw"), ledger), CredentialsUnauthorized)


def test_valid_credentials_resolve_user(ledger):
    ledger.create("alice", "pw")

    result = extract_credentials(header("alice:pw"), ledger)

    assert isinstance(result, CredentialsOk)
    assert result.user.username == "alice"


@pytest.fixture
def people(ledger):
    ledger.create("admin", "pw")
    ledger.update("admin", role="admin")
    ledger.ensure_owner("owner", "pw")
    ledger.create("target", "pw")
    return {name: ledger.get_by_username(name) for name in ("admin", "owner", "target")}


def test_admin_cannot_grant_owner(people):
    with pytest.raises(ForbiddenError):
        ensure_can_assign_role(people["admin"], people["target"], Role.owner)


def test_owner_can_grant_owner(people):
    ensure_can_assign_role(people["owner"], people["target"], Role.owner)


def test_admin_can_grant_admin(people):
    ensure_can_assign_role(people["admin"], people["target"], Role.admin)


def test_admin_cannot_demote_owner(people):
    with pytest.raises(ForbiddenError):
        ensure_can_assign_role(people["admin"], people["owner"], Role.user)


def test_plain_user_cannot_assign_roles(people):
    with pytest.raises(ForbiddenError):
        ensure_can_assign_role(people["target"], people["target"], Role.admin)
