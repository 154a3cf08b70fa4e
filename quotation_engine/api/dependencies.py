"""
FastAPI dependencies for database sessions, the acting user and the work
order collaborator.
"""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from quotation_engine.database.base import get_session
from quotation_engine.services.exceptions import AuthorizationError
from quotation_engine.services.integrations.work_order_client import (
    HttpWorkOrderGateway, WorkOrderGateway
)
from quotation_engine.utils.security import decode_token

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db() -> AsyncSession:
    """Get database session dependency."""
    async for session in get_session():
        yield session


DatabaseDep = Annotated[AsyncSession, Depends(get_db)]


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str:
    """
    Resolve the acting user from the bearer token.

    Raises:
        AuthorizationError: If the token is missing, invalid or carries no subject
    """
    if credentials is None:
        raise AuthorizationError("Missing bearer token")

    payload = decode_token(credentials.credentials)
    if not payload:
        raise AuthorizationError("Invalid or expired token")

    actor = payload.get("username") or payload.get("sub")
    if not actor:
        raise AuthorizationError("Token carries no subject")
    return str(actor)


ActorDep = Annotated[str, Depends(get_current_actor)]


def get_work_order_gateway() -> WorkOrderGateway:
    """Work order collaborator used by `convert`."""
    return HttpWorkOrderGateway()


WorkOrderGatewayDep = Annotated[WorkOrderGateway, Depends(get_work_order_gateway)]
