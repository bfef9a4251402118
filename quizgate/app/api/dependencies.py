"""FastAPI dependencies for the service container.

Usage:
    from quizgate.app.api.dependencies import ServicesDep

    @router.get("/items")
    async def handler(services: ServicesDep):
        return await services.management.list_codes()
"""

from typing import Annotated

from fastapi import Depends, Request

from quizgate.app.core.utils import get_client_ip
from quizgate.app.services.container import AppServices


def get_services(request: Request) -> AppServices:
    return request.app.state.services


def get_client_id(request: Request) -> str:
    services: AppServices = request.app.state.services
    return get_client_ip(request, services.settings.trust_proxy_headers)


ServicesDep = Annotated[AppServices, Depends(get_services)]
ClientIdDep = Annotated[str, Depends(get_client_id)]

__all__ = ["ServicesDep", "ClientIdDep", "get_services", "get_client_id"]
