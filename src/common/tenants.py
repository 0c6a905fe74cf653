"""
Tenant (agency) configuration.

Each staffing agency served by the assistant is a tenant: it owns a channel
number, a reviewer address, a conversation language, a retention policy and
a job list. One orchestrator serves every tenant; behaviour differences come
only from this configuration.

Usage:
    from src.common.tenants import get_tenant_registry

    registry = get_tenant_registry()
    tenant = registry.resolve("+31 6 1234 5678")   # channel number the event arrived on
    tenant = registry.get(session.tenant_id)
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantConfig:
    """
    Per-agency configuration.

    Attributes:
        tenant_id: Stable identifier stored on every Session
        agency_name: Display name used in candidate-facing texts
        channel_number: Number candidates write to (matched by digit suffix)
        language: Conversation language ("en", "ro", "nl", "de")
        reviewer_email: Address receiving dispatch summaries
        retention_days: Days personal data is kept after consent
        job_source: "catalog" (bundled list) or "sheet" (published Google Sheet CSV)
        job_sheet_id: Published sheet id when job_source is "sheet"
        confirm_extraction: Ask the candidate to confirm extracted CV data
            before qualification (False skips straight to qualification)
    """
    tenant_id: str
    agency_name: str
    channel_number: str
    language: str = "en"
    reviewer_email: str = ""
    retention_days: int = 30
    country: str = ""
    timezone: str = "UTC"
    job_categories: List[str] = field(default_factory=list)
    job_source: str = "catalog"
    job_sheet_id: Optional[str] = None
    confirm_extraction: bool = True
    is_active: bool = True


DEFAULT_TENANT = TenantConfig(
    tenant_id="default_001",
    agency_name="Default Staffing Agency",
    channel_number="555099999",
    language="ro",
    reviewer_email="recruitment@example.com",
    retention_days=30,
    country="Default",
    timezone="UTC",
    job_categories=["general"],
)

BUILTIN_TENANTS: Dict[str, TenantConfig] = {
    "logistics_nl_001": TenantConfig(
        tenant_id="logistics_nl_001",
        agency_name="Logistics Staffing NL",
        channel_number="+31612345678",
        language="nl",
        reviewer_email="hr-logistics@logistics-nl.example.com",
        retention_days=30,
        country="Netherlands",
        timezone="Europe/Amsterdam",
        job_categories=["logistics", "warehouse", "driver"],
    ),
    "health_ro_001": TenantConfig(
        tenant_id="health_ro_001",
        agency_name="Health Staffing Romania",
        channel_number="+40712345678",
        language="ro",
        reviewer_email="hr-health@health-ro.example.com",
        # Medical sector keeps data longer
        retention_days=90,
        country="Romania",
        timezone="Europe/Bucharest",
        job_categories=["healthcare", "nursing", "medical"],
    ),
}


def _digits(value: str) -> str:
    return re.sub(r"\D", "", value or "")


class TenantRegistry:
    """Lookup of tenants by id or by the channel number an event arrived on."""

    def __init__(
        self,
        tenants: Optional[Dict[str, TenantConfig]] = None,
        default: TenantConfig = DEFAULT_TENANT,
    ):
        self._tenants = dict(BUILTIN_TENANTS if tenants is None else tenants)
        self.default = default

    def get(self, tenant_id: Optional[str]) -> TenantConfig:
        """Return the tenant with this id, or the default tenant."""
        if tenant_id and tenant_id in self._tenants:
            return self._tenants[tenant_id]
        return self.default

    def resolve(self, channel_number: Optional[str]) -> TenantConfig:
        """
        Find the active tenant owning a channel number.

        Numbers are compared on digits only, and either side may carry an
        extra country prefix.

        Args:
            channel_number: Number the inbound event was addressed to

        Returns:
            Matching tenant, or the default tenant when none matches
        """
        normalized = _digits(channel_number)
        if not normalized:
            logger.warning("No channel number on inbound event, using default tenant")
            return self.default

        for tenant in self._tenants.values():
            if not tenant.is_active:
                continue
            tenant_digits = _digits(tenant.channel_number)
            if tenant_digits and (
                normalized.endswith(tenant_digits) or tenant_digits.endswith(normalized)
            ):
                return tenant

        logger.warning(f"No tenant for channel number ending {normalized[-4:]}, using default tenant")
        return self.default

    def list_active(self) -> List[TenantConfig]:
        return [tenant for tenant in self._tenants.values() if tenant.is_active]


_registry_instance: Optional[TenantRegistry] = None


def get_tenant_registry() -> TenantRegistry:
    """Get the process-wide tenant registry."""
    global _registry_instance
    if _registry_instance is None:
        _registry_instance = TenantRegistry()
    return _registry_instance


def reset_tenant_registry() -> None:
    """Reset the registry singleton (used by tests)."""
    global _registry_instance
    _registry_instance = None
