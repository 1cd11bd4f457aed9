"""Helpers for the OIDC login flow: token expiry, user names, state and pages."""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from tailcontrol.machines import normalize_to_fqdn_rules
from tailcontrol.oidc_claims import IDTokenClaims, OIDCError

RANDOM_BYTE_SIZE = 16
STATE_LENGTH = 32
CALLBACK_PATH = "/oidc/callback"

_INTERNAL_SERVER_ERROR = 500

_CALLBACK_TEMPLATE = """<html>
\t<body>
\t<h1>headscale</h1>
\t<p>
\t\t\t{verb} as {user}, you can now close this window.
\t</p>
\t</body>
\t</html>"""

_HTML_REPLACEMENTS = {
    "\0": "\ufffd",
    '"': "&#34;",
    "&": "&amp;",
    "'": "&#39;",
    "+": "&#43;",
    "<": "&lt;",
    ">": "&gt;",
}


def _html_escape(text: str) -> str:
    return "".join(_HTML_REPLACEMENTS.get(char, char) for char in text)


def determine_token_expiration(
    id_token_expiry: datetime,
    use_expiry_from_token: bool,
    default_expiry: timedelta,
    now: datetime | None = None,
) -> datetime:
    """Return when the node's login expires.

    With ``use_expiry_from_token`` the ID token's own expiry is used;
    otherwise the configured duration is added to ``now`` (the current UTC
    time when not given).
    """
    if use_expiry_from_token:
        return id_token_expiry
    if now is None:
        now = datetime.now(timezone.utc)
    return now + default_expiry


def get_user_name(claims: IDTokenClaims, strip_email_domain: bool) -> str:
    """Derive the user name from the claims' e-mail address.

    Raises OIDCError (status 500) if the address cannot be normalised.
    """
    try:
        return normalize_to_fqdn_rules(claims.email, strip_email_domain)
    except ValueError as error:
        raise OIDCError(
            f"couldn't normalize email: {error}",
            response_message="couldn't normalize email",
            status=_INTERNAL_SERVER_ERROR,
        ) from error


def render_callback_page(user: str, verb: str) -> str:
    """Return the HTML page shown after a successful login, values HTML-escaped."""
    return _CALLBACK_TEMPLATE.format(verb=_html_escape(verb), user=_html_escape(user))


def new_state() -> str:
    """Return a fresh random state value of 32 hexadecimal characters."""
    return secrets.token_hex(RANDOM_BYTE_SIZE)[:STATE_LENGTH]


def redirect_url(server_url: str) -> str:
    """Return the callback URL registered with the identity provider."""
    return f"{server_url.removesuffix('/')}{CALLBACK_PATH}"