"""Public access-code verification endpoint."""

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from quizgate.app.api.dependencies import ClientIdDep, ServicesDep
from quizgate.app.core.logging import get_logger
from quizgate.app.exceptions import QuizGateException
from quizgate.app.middleware.request_id import get_request_id

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["access"])


def verification_error_response(exc: QuizGateException) -> JSONResponse:
    """Render an error in the verification endpoint's ``valid: false`` shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"valid": False, **exc.to_response()},
        headers=exc.headers,
    )


async def read_access_code(request: Request) -> Any:
    """Pull ``accessCode`` out of the body without rejecting anything.

    A body that is not JSON, or not a JSON object, yields ``None`` so the
    request is still judged (and counted) by the admission pipeline.
    """
    try:
        payload = await request.json()
    except ValueError:
        return None
    return payload.get("accessCode") if isinstance(payload, dict) else None


@router.post("/check-access-code")
async def check_access_code(
    request: Request,
    services: ServicesDep,
    client_id: ClientIdDep,
) -> Any:
    """Verify an access code and consume one use on success.

    Every outcome, including internal failures, is answered in the
    ``{valid, message}`` shape.
    """
    raw_code = await read_access_code(request)
    try:
        result = await services.admission.verify(client_id, raw_code)
    except QuizGateException as exc:
        return verification_error_response(exc)
    except Exception as exc:
        request_id = get_request_id(request)
        logger.exception(
            f"Access code verification failed [request_id={request_id}]",
            extra={"request_id": request_id, "exception_type": type(exc).__name__},
        )
        content = {
            "valid": False,
            "error": "internal_error",
            "message": "Internal server error",
            "request_id": request_id,
        }
        if services.settings.debug:
            content["message"] = str(exc)
        return JSONResponse(status_code=500, content=content)
    return result.to_response()
