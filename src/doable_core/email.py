"""Outbound invitation email over the Resend HTTP API."""
import logging
from typing import Optional, Any

import httpx

from .config import Settings, get_settings

logger = logging.getLogger("doable-core.email")

RESEND_API_URL = "https://api.resend.com/emails"
DEFAULT_LOCALE = "en"


def get_locale_from_request(accept_language: Optional[str]) -> str:
    """
    Pick the primary language from an Accept-Language header.

    Args:
        accept_language: Raw header value, e.g. "de-DE,de;q=0.9,en;q=0.8"

    Returns:
        Two-letter language code, "en" when absent
    """
    if not accept_language:
        return DEFAULT_LOCALE
    first = accept_language.split(",")[0].split(";")[0].strip()
    language = first.split("-")[0].lower()
    return language if language.isalpha() and len(language) == 2 else DEFAULT_LOCALE


def _invitation_body(team_name: str, inviter_name: str, role: str, invite_url: str) -> str:
    return (
        f"{inviter_name} has invited you to join the {team_name} team as a {role}.\n\n"
        f"Accept the invitation: {invite_url}\n\n"
        "If you didn't expect this invitation, you can safely ignore this email."
    )


async def send_invitation_email(
    email: str,
    team_name: str,
    inviter_name: str,
    role: str,
    invite_url: str,
    locale: str = DEFAULT_LOCALE,
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict[str, Any]:
    """
    Send a team invitation email.

    Delivery problems never raise: they are logged and reported in the
    returned dict so the invitation itself still stands.

    Args:
        email: Recipient address
        team_name: Name of the inviting team
        inviter_name: Display name of the inviting user
        role: Role the invitee will get
        invite_url: Link that accepts the invitation
        locale: Recipient locale, forwarded as a tag
        settings: Overrides the process settings
        transport: Optional httpx transport (used by tests)

    Returns:
        {"success": True} when sent, {"success": True, "skipped": True} when
        email is not configured, {"success": False, "error": ...} on failure
    """
    settings = settings or get_settings()

    if not settings.resend_api_key:
        logger.info(f"Email disabled (no RESEND_API_KEY); invitation URL for {email}: {invite_url}")
        return {"success": True, "skipped": True}

    payload = {
        "from": settings.resend_from_email,
        "to": email,
        "subject": f"You've been invited to join {team_name}",
        "text": _invitation_body(team_name, inviter_name, role, invite_url),
        "tags": [{"name": "locale", "value": locale}],
    }
    headers = {"Authorization": f"Bearer {settings.resend_api_key}"}

    try:
        async with httpx.AsyncClient(timeout=10.0, transport=transport) as client:
            response = await client.post(RESEND_API_URL, json=payload, headers=headers)
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.error(f"Resend rejected invitation email to {email}: {e.response.status_code} {e.response.text}")
        logger.info(f"Invitation URL for manual delivery: {invite_url}")
        return {"success": False, "error": f"HTTP {e.response.status_code}"}
    except httpx.RequestError as e:
        logger.error(f"Failed to reach Resend for {email}: {e}")
        logger.info(f"Invitation URL for manual delivery: {invite_url}")
        return {"success": False, "error": str(e)}

    logger.info(f"Invitation email sent to {email}")
    return {"success": True}
