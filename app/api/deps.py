from typing import Annotated, Optional
import uuid
import logging

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.services.cache_service import CacheService, get_cache


logger = logging.getLogger(__name__)


async def get_tenant_id(
    x_tenant_id: Annotated[Optional[str], Header(alias="X-Tenant-ID")] = None,
) -> uuid.UUID:
    """
    Dependency to get the tenant of the request.

    Tenant resolution and authentication happen upstream; the engine only
    requires a well-formed X-Tenant-ID header.
    """
    if not x_tenant_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Tenant context required. Include X-Tenant-ID header.",
        )
    try:
        return uuid.UUID(x_tenant_id)
    except ValueError:
        logger.warning(f"Invalid X-Tenant-ID header: {x_tenant_id}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-Tenant-ID header",
        )


def get_cache_service() -> CacheService:
    return get_cache()


# Type aliases for cleaner dependency injection
DB = Annotated[AsyncSession, Depends(get_db)]
TenantId = Annotated[uuid.UUID, Depends(get_tenant_id)]
Cache = Annotated[CacheService, Depends(get_cache_service)]
