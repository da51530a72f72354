"""Login handling for InvenTrack.

There is a single administrator account whose credentials come from the
``[Auth]`` section of ``config.ini`` (falling back to the built-in demo
account). Logging in only flips the session record kept in the session
workbook; nothing here is meant as real security.
"""

from __future__ import annotations

import hmac
from datetime import UTC, datetime
from typing import Optional

from . import log
from .constants import UserRole
from .core_logic import RuntimeContext
from .data_manager import SessionRow
from .errors import AuthenticationRequired


ADMIN_USER_ID = "1"


def login(context: RuntimeContext, email: str, password: str) -> bool:
    """Check the credentials and open a session on success.

    Returns:
        bool: ``True`` when the credentials match the configured admin.
    """

    settings = context.settings
    email = (email or "").strip()
    matches = email.casefold() == settings.admin_email.casefold() and hmac.compare_digest(
        (password or "").encode("utf-8"),
        settings.admin_password.encode("utf-8"),
    )
    if not matches:
        log.warning("Rejected login attempt for '%s'", email)
        return False

    context.session.current = SessionRow(
        user_id=ADMIN_USER_ID,
        email=settings.admin_email,
        name=settings.admin_name,
        role=UserRole.ADMIN.value,
        is_authenticated=True,
        logged_in_at=datetime.now(UTC).isoformat(),
    )
    log.info("User '%s' logged in", settings.admin_email)
    return True


def logout(context: RuntimeContext) -> None:
    current = context.session.current
    context.session.current = None
    if current is not None:
        log.info("User '%s' logged out", current.email)


def current_user(context: RuntimeContext) -> Optional[SessionRow]:
    """Return the authenticated session, or ``None``."""

    current = context.session.current
    if current is None or not current.is_authenticated:
        return None
    return current


def is_authenticated(context: RuntimeContext) -> bool:
    return current_user(context) is not None


def require_authenticated(context: RuntimeContext) -> SessionRow:
    """Return the current session or raise when nobody is logged in.

    Raises:
        AuthenticationRequired: If there is no authenticated session.
    """

    user = current_user(context)
    if user is None:
        log.warning("Rejected operation without an authenticated session")
        raise AuthenticationRequired("Please log in first (inventrack login)")
    return user
