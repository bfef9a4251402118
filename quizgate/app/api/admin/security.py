"""Security ledger inspection and block overrides."""

from typing import Any, Optional

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, field_validator

from quizgate.app.api.dependencies import ServicesDep

router = APIRouter()


class UnblockRequest(BaseModel):
    # adminKey may travel in the body alongside ip
    model_config = ConfigDict(extra="ignore")

    ip: str
    adminKey: Optional[str] = None

    @field_validator("ip")
    @classmethod
    def normalize_ip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("ip cannot be empty")
        return v


@router.get("/security-status")
async def security_status(services: ServicesDep) -> dict[str, Any]:
    """Blocked clients, recent activity and attack counters."""
    return {"success": True, **await services.management.security_status()}


@router.post("/unblock-ip")
async def unblock_ip(data: UnblockRequest, services: ServicesDep) -> dict[str, Any]:
    await services.management.unblock_client(data.ip)
    return {"success": True, "message": f"IP {data.ip} unblocked"}
