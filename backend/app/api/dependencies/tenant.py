"""Caller identity as resolved by the upstream auth/tenant middleware."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Header, HTTPException, status


@dataclass(frozen=True)
class TenantContext:
    tenant_id: str
    user_id: str


def get_tenant_context(
    x_tenant_id: str | None = Header(None, alias="X-Tenant-ID"),
    x_user_id: str | None = Header(None, alias="X-User-ID"),
) -> TenantContext:
    """Read the tenant and user ids forwarded by the gateway.

    Authentication happens upstream; requests without a tenant never reach
    the import pipeline.
    """
    if not x_tenant_id or not x_tenant_id.strip():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Valid user tenantId is required",
        )
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Authenticated user id is required",
        )
    return TenantContext(tenant_id=x_tenant_id.strip(), user_id=x_user_id.strip())
