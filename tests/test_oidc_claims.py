import pytest

from tailcontrol.oidc_claims import (
    DomainNotAllowedError,
    EmptyCallbackParamsError,
    GroupNotAllowedError,
    IDTokenClaims,
    OIDCError,
    UserNotAllowedError,
    validate_allowed_domains,
    validate_allowed_groups,
    validate_allowed_users,
    validate_callback_params,
)


def _claims(email="alice@example.com", groups=None):
    return IDTokenClaims(email=email, groups=list(groups or []))


def test_from_mapping_reads_known_claims():
    claims = IDTokenClaims.from_mapping(
        {
            "name": "Alice",
            "groups": ["admins", "dev"],
            "email": "alice@example.com",
            "preferred_username": "alice",
            "sub": "ignored",
        }
    )
    assert claims == IDTokenClaims(
        name="Alice",
        groups=["admins", "dev"],
        email="alice@example.com",
        username="alice",
    )


def test_from_mapping_defaults_missing_claims():
    claims = IDTokenClaims.from_mapping({"email": "bob@example.com"})
    assert claims.name == ""
    assert claims.groups == []
    assert claims.username == ""
    assert claims.email == "bob@example.com"


@pytest.mark.parametrize(
    "data",
    [{"email": 5}, {"groups": "admins"}, {"groups": [1, 2]}, ["not", "a", "mapping"]],
)
def test_from_mapping_rejects_wrong_types(data):
    with pytest.raises(OIDCError) as info:
        IDTokenClaims.from_mapping(data)
    assert info.value.response_message == "Failed to decode id token claims"


def test_callback_params_returned():
    assert validate_callback_params("code-1", "state-1") == ("code-1", "state-1")


@pytest.mark.parametrize("code,state", [("", "s"), ("c", ""), (None, "s"), ("c", None)])
def test_callback_params_missing(code, state):
    with pytest.raises(EmptyCallbackParamsError) as info:
        validate_callback_params(code, state)
    assert str(info.value) == "empty OIDC callback params"
    assert info.value.response_message == "Wrong params"
    assert info.value.status == 400


def test_domains_empty_list_allows_anything():
    assert validate_allowed_domains([], _claims(email="no-at-sign")) is None


def test_domain_allowed():
    assert validate_allowed_domains(["example.com"], _claims()) is None


@pytest.mark.parametrize("email", ["alice@other.example.com", "alice", "alice@"])
def test_domain_rejected(email):
    with pytest.raises(DomainNotAllowedError) as info:
        validate_allowed_domains(["example.com"], _claims(email=email))
    assert info.value.response_message == "unauthorized principal (domain mismatch)"


def test_domain_uses_last_at_sign():
    claims = _claims(email="odd@name@example.com")
    assert validate_allowed_domains(["example.com"], claims) is None


def test_groups_empty_list_allows_anything():
    assert validate_allowed_groups([], _claims()) is None


def test_group_allowed_when_any_matches():
    claims = _claims(groups=["dev", "admins"])
    assert validate_allowed_groups(["ops", "admins"], claims) is None


def test_group_rejected():
    with pytest.raises(GroupNotAllowedError) as info:
        validate_allowed_groups(["ops"], _claims(groups=["dev"]))
    assert str(info.value) == "authenticated principal is not in any allowed group"
    assert info.value.response_message == "unauthorized principal (allowed groups)"


def test_users_empty_list_allows_anything():
    assert validate_allowed_users([], _claims()) is None


def test_user_allowed():
    assert validate_allowed_users(["alice@example.com"], _claims()) is None


def test_user_rejected():
    with pytest.raises(UserNotAllowedError) as info:
        validate_allowed_users(["bob@example.com"], _claims())
    assert str(info.value) == "authenticated principal does not match any allowed user"
    assert info.value.response_message == "unauthorized principal (user mismatch)"


def test_errors_share_base_class():
    for error in (
        EmptyCallbackParamsError(),
        DomainNotAllowedError(),
        GroupNotAllowedError(),
        UserNotAllowedError(),
    ):
        assert isinstance(error, OIDCError)
        assert error.status == 400