import hmac
from typing import Optional

from fastapi import Request

from quizgate.app.exceptions import ForbiddenError

ADMIN_KEY_HEADER = "X-Admin-Key"
ADMIN_KEY_PARAM = "adminKey"


def get_bearer_token(request: Request) -> str | None:
    """Extract Bearer token from Authorization header.

    Args:
        request: The incoming request

    Returns:
        The token string if present, None otherwise
    """
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    return auth.replace("Bearer ", "", 1).strip()


async def get_supplied_admin_key(request: Request) -> Optional[str]:
    """Find the admin secret supplied with a request.

    Checked in order: ``X-Admin-Key`` header, ``Authorization: Bearer``,
    ``adminKey`` query parameter, ``adminKey`` field of a JSON body.
    """
    key = request.headers.get(ADMIN_KEY_HEADER)
    if key:
        return key.strip()

    key = get_bearer_token(request)
    if key:
        return key

    key = request.query_params.get(ADMIN_KEY_PARAM)
    if key:
        return key.strip()

    if request.method in ("POST", "PUT", "PATCH") and "application/json" in request.headers.get("content-type", ""):
        try:
            body = await request.json()
        except ValueError:
            return None
        if isinstance(body, dict) and isinstance(body.get(ADMIN_KEY_PARAM), str):
            return body[ADMIN_KEY_PARAM].strip()
    return None


def verify_admin_secret(provided: Optional[str], expected: str) -> bool:
    """Constant-time comparison of the supplied secret against the configured one.

    An empty configured secret never matches.
    """
    if not expected:
        return False
    # Always compare, even when nothing was supplied.
    return hmac.compare_digest((provided or "").encode(), expected.encode())


async def require_admin(request: Request) -> str:
    """Validate the admin secret for management endpoints.

    Raises:
        ForbiddenError: 403 if the secret is missing or wrong
    """
    expected = request.app.state.services.settings.admin_key
    provided = await get_supplied_admin_key(request)
    if not verify_admin_secret(provided, expected):
        raise ForbiddenError()
    return "admin"
