"""Claims of an OIDC ID token and the checks applied to them at login."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

_BAD_REQUEST = 400


class OIDCError(ValueError):
    """Base class for failures of the OIDC login callback.

    ``response_message`` is the text shown to the browser and ``status`` the
    HTTP status code to answer with.
    """

    default_message = "OIDC callback failed"
    default_response = "Bad request"

    def __init__(
        self,
        message: str | None = None,
        *,
        response_message: str | None = None,
        status: int = _BAD_REQUEST,
    ) -> None:
        super().__init__(message or self.default_message)
        self.response_message = response_message or self.default_response
        self.status = status


class EmptyCallbackParamsError(OIDCError):
    """The callback lacks its ``code`` or ``state`` parameter."""

    default_message = "empty OIDC callback params"
    default_response = "Wrong params"


class DomainNotAllowedError(OIDCError):
    """The e-mail address is not in any allowed domain."""

    default_message = "authenticated principal does not match any allowed domain"
    default_response = "unauthorized principal (domain mismatch)"


class GroupNotAllowedError(OIDCError):
    """The principal belongs to none of the allowed groups."""

    default_message = "authenticated principal is not in any allowed group"
    default_response = "unauthorized principal (allowed groups)"


class UserNotAllowedError(OIDCError):
    """The e-mail address is not among the allowed users."""

    default_message = "authenticated principal does not match any allowed user"
    default_response = "unauthorized principal (user mismatch)"


def _claim_string(data: Mapping, key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise OIDCError(
            f"claim {key!r} must be a string, got {value!r}",
            response_message="Failed to decode id token claims",
        )
    return value


def _claim_string_list(data: Mapping, key: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise OIDCError(
            f"claim {key!r} must be a list of strings, got {value!r}",
            response_message="Failed to decode id token claims",
        )
    return list(value)


@dataclass
class IDTokenClaims:
    """The claims of an ID token that the server uses."""

    name: str = ""
    groups: list[str] = field(default_factory=list)
    email: str = ""
    username: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> IDTokenClaims:
        """Build claims from a decoded token payload; unknown claims are ignored.

        Raises OIDCError if a known claim has the wrong type.
        """
        if not isinstance(data, Mapping):
            raise OIDCError(
                f"claims must be a mapping, got {data!r}",
                response_message="Failed to decode id token claims",
            )
        return cls(
            name=_claim_string(data, "name"),
            groups=_claim_string_list(data, "groups"),
            email=_claim_string(data, "email"),
            username=_claim_string(data, "preferred_username"),
        )


def validate_callback_params(code: str | None, state: str | None) -> tuple[str, str]:
    """Return ``(code, state)``; raise EmptyCallbackParamsError if either is empty."""
    if not code or not state:
        raise EmptyCallbackParamsError()
    return code, state


def validate_allowed_domains(allowed_domains: list[str], claims: IDTokenClaims) -> None:
    """Require the e-mail domain to be allowed, when any domains are configured."""
    if not allowed_domains:
        return
    at = claims.email.rfind("@")
    if at < 0 or claims.email[at + 1:] not in allowed_domains:
        raise DomainNotAllowedError()


def validate_allowed_groups(allowed_groups: list[str], claims: IDTokenClaims) -> None:
    """Require membership of an allowed group, when any groups are configured."""
    if not allowed_groups:
        return
    if not any(group in claims.groups for group in allowed_groups):
        raise GroupNotAllowedError()


def validate_allowed_users(allowed_users: list[str], claims: IDTokenClaims) -> None:
    """Require the e-mail address to be allowed, when any users are configured."""
    if allowed_users and claims.email not in allowed_users:
        raise UserNotAllowedError()