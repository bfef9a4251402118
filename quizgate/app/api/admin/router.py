from fastapi import APIRouter, Depends

from quizgate.app.middleware.auth import require_admin

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])

from . import codes, security  # noqa: E402

router.include_router(codes.router, prefix="/codes", tags=["admin-codes"])
router.include_router(security.router, tags=["admin-security"])
