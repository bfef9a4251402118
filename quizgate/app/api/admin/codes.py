"""Access-code inventory and lifecycle management."""

from typing import Any, Optional

from fastapi import APIRouter, status
from pydantic import BaseModel, Field, field_validator

from quizgate.app.api.dependencies import ServicesDep

router = APIRouter()


class CodeCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)
    maxUses: int = Field(..., ge=1)
    ttlSeconds: Optional[int] = Field(None, ge=1)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("code cannot be empty")
        return v


@router.get("")
async def list_codes(services: ServicesDep) -> dict[str, Any]:
    """List every stored code with its current validity."""
    return {"success": True, **await services.management.list_codes()}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_code(data: CodeCreate, services: ServicesDep) -> dict[str, Any]:
    created = await services.management.create_code(data.code, data.maxUses, data.ttlSeconds)
    return {
        "success": True,
        "message": f"Access code {created.code} created",
        "accessCode": created.to_dict(services.clock()),
    }


@router.get("/{code}")
async def get_code(code: str, services: ServicesDep) -> dict[str, Any]:
    """Diagnostic status of one code (active, exhausted or expired)."""
    return {"success": True, "accessCode": await services.management.code_status(code)}


@router.post("/{code}/reset")
async def reset_code(code: str, services: ServicesDep) -> dict[str, Any]:
    record = await services.management.reset_code(code)
    return {
        "success": True,
        "message": f"Access code {record.code} reset",
        "accessCode": record.to_dict(services.clock()),
    }
