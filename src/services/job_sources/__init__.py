"""
Job Sources Module

Provides a unified interface for the open positions of each tenant:
- Bundled catalog (static per-tenant lists)
- Published Google Sheet (CSV export over HTTP)

Each source implements the JobSource abstract base class. Sources are
re-read on every matching call; nothing is cached between runs.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from src.common.schemas import LanguageLevel, coerce_string_list, parse_language_level
from src.common.tenants import TenantConfig

_ANY_LEVEL = {"", "any", "none", "n/a", "-"}


def _parse_required_level(value: Any) -> Optional[LanguageLevel]:
    """None means the job accepts any language level."""
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() in _ANY_LEVEL:
        return None
    return parse_language_level(value)


def _parse_years(value: Any) -> int:
    if value is None or value == "":
        return 0
    try:
        return max(0, int(float(str(value).strip())))
    except ValueError:
        return 0


@dataclass(frozen=True)
class Job:
    """Read-only job opening, immutable within one matching run."""
    id: str
    title: str
    city: str
    salary: str = ""
    required_skills: Tuple[str, ...] = field(default_factory=tuple)
    required_experience: int = 0  # years
    required_language_level: Optional[LanguageLevel] = None  # None = any
    nice_to_have_skills: Tuple[str, ...] = field(default_factory=tuple)
    description: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Job":
        """
        Build a Job from a loosely shaped mapping (catalog entry or CSV row).

        Skill columns may be lists or comma/semicolon separated strings.
        """
        return cls(
            id=str(data.get("id") or data.get("job_id") or "").strip(),
            title=str(data.get("title") or data.get("job_title") or "").strip(),
            city=str(data.get("city") or "").strip(),
            salary=str(data.get("salary") or "").strip(),
            required_skills=tuple(coerce_string_list(data.get("required_skills"))),
            required_experience=_parse_years(data.get("required_experience")),
            required_language_level=_parse_required_level(data.get("required_language_level")),
            nice_to_have_skills=tuple(coerce_string_list(data.get("nice_to_have_skills"))),
            description=str(data.get("description") or "").strip(),
        )


class JobSource(ABC):
    """Abstract base class for job data sources."""

    @abstractmethod
    def fetch_jobs(self, tenant: TenantConfig) -> list:
        """
        Fetch the open positions of a tenant.

        Args:
            tenant: Tenant whose jobs are requested

        Returns:
            Ordered list of Job objects
        """
        pass

    @abstractmethod
    def get_source_name(self) -> str:
        """
        Get the unique identifier for this source.

        Returns:
            Source name (e.g., "catalog", "sheet")
        """
        pass


# Import concrete implementations for convenience
from .catalog_source import CatalogSource
from .sheet_source import SheetSource


def get_job_source(tenant: TenantConfig) -> JobSource:
    """Pick the job source configured for a tenant."""
    if tenant.job_source == "sheet" and tenant.job_sheet_id:
        return SheetSource()
    return CatalogSource()


__all__ = ["Job", "JobSource", "CatalogSource", "SheetSource", "get_job_source"]
