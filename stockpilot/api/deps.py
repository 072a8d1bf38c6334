"""Shared request dependencies."""

from typing import Optional

from fastapi import Header


async def get_tenant_id(x_tenant_id: Optional[str] = Header(None)) -> Optional[str]:
    """Owning tenant from the ``X-Tenant-ID`` header; ``None`` means unscoped."""
    return x_tenant_id.strip() if x_tenant_id and x_tenant_id.strip() else None
