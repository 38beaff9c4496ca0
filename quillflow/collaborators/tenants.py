"""Tenant directory backed by configuration."""

from __future__ import annotations

from typing import Dict, Mapping, Optional

from .base import TenantProfile


class StaticTenantDirectory:
    """Serve tenant profiles from an in-process mapping."""

    def __init__(self, tenants: Optional[Mapping[int, TenantProfile]] = None) -> None:
        self._tenants: Dict[int, TenantProfile] = {}
        for tenant_id, profile in (tenants or {}).items():
            self.add(tenant_id, profile)

    @classmethod
    def from_config(cls, config) -> "StaticTenantDirectory":
        return cls(config.tenants)

    def add(self, tenant_id: int, profile: TenantProfile) -> None:
        self._tenants[int(tenant_id)] = profile.model_copy(update={"id": int(tenant_id)})

    async def get_tenant(self, tenant_id: int) -> Optional[TenantProfile]:
        return self._tenants.get(tenant_id)
