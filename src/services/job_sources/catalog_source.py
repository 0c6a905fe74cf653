"""
Catalog Job Source

Bundled per-tenant job lists. Used for tenants without a published sheet
and as the test fixture for matching.
"""

import logging
from typing import Dict, List

from src.common.tenants import TenantConfig

from . import Job, JobSource

logger = logging.getLogger(__name__)

LOGISTICS_NL_JOBS = [
    {
        "id": "NL-LOG-001",
        "title": "Reach Truck Driver",
        "city": "Den Haag",
        "salary": "€13.50/h + 25% night shift",
        "required_skills": ["Reach Truck", "EPT", "RF Scanner"],
        "required_experience": 1,
        "required_language_level": "A2",
        "nice_to_have_skills": ["VCA", "Forklift", "SAP"],
        "description": "Reach truck operation in a modern warehouse. Fixed shifts 06:00-14:00 or 14:00-22:00. Relocation package available.",
    },
    {
        "id": "NL-LOG-002",
        "title": "Transport Coordinator",
        "city": "Rotterdam",
        "salary": "€2,800 - €3,200/month",
        "required_skills": ["Transport coordination", "Microsoft Office", "Logistics planning"],
        "required_experience": 2,
        "required_language_level": "B1",
        "nice_to_have_skills": ["SAP", "TMS software", "Driving license B"],
        "description": "Coordination of international and domestic transport. Office based, 09:00-17:00, hybrid after probation.",
    },
    {
        "id": "NL-LOG-003",
        "title": "Logistics Worker / Order Picker",
        "city": "Amsterdam",
        "salary": "€12.50/h + productivity bonus",
        "required_skills": ["Order picking", "Barcode scanning"],
        "required_experience": 0,
        "required_language_level": "A1",
        "nice_to_have_skills": ["RF Scanner", "Warehouse knowledge", "EPT"],
        "description": "Picking and packing orders in a logistics centre. Full training provided. Suitable without experience.",
    },
    {
        "id": "NL-LOG-004",
        "title": "Warehouse Supervisor",
        "city": "Eindhoven",
        "salary": "€3,500 - €4,000/month",
        "required_skills": ["Team supervision", "Microsoft Office", "Reporting", "Warehouse coordination"],
        "required_experience": 4,
        "required_language_level": "B2",
        "nice_to_have_skills": ["SAP WMS", "Lean/5S", "Management certificate"],
        "description": "Supervising a team of 15-20 people. Full operational responsibility per shift. Annual bonus.",
    },
    {
        "id": "NL-LOG-005",
        "title": "International Driver (Cat. CE)",
        "city": "Rotterdam - European routes",
        "salary": "€3,000 - €3,800/month + per diem",
        "required_skills": ["Driving license CE", "Digital tachograph", "International transport"],
        "required_experience": 2,
        "required_language_level": "A2",
        "nice_to_have_skills": ["CPC certificate", "ADR", "European road knowledge"],
        "description": "European routes (RO-NL-DE-BE) departing Rotterdam. Per diem and accommodation on route.",
    },
]

HEALTH_RO_JOBS = [
    {
        "id": "RO-MED-001",
        "title": "Asistent Medical Generalist",
        "city": "București",
        "salary": "5.000 - 6.500 RON/lună",
        "required_skills": ["Asistență medicală", "Îngrijire pacienți", "Administrare medicamente"],
        "required_experience": 1,
        "required_language_level": "A1",
        "nice_to_have_skills": ["BLS/CPR", "EKG", "Experiență ATI"],
        "description": "Asistent medical în spital privat. Program 12/24h.",
    },
    {
        "id": "RO-MED-002",
        "title": "Îngrijitor Bătrâni la Domiciliu",
        "city": "Cluj-Napoca",
        "salary": "4.500 RON/lună",
        "required_skills": ["Îngrijire vârstnici", "Răbdare", "Empatie"],
        "required_experience": 0,
        "required_language_level": "any",
        "nice_to_have_skills": ["Certificat îngrijitor", "Permis B"],
        "description": "Îngrijire personalizată la domiciliu. Program flexibil, training inclus.",
    },
]

DEFAULT_CATALOG: Dict[str, List[dict]] = {
    "default_001": LOGISTICS_NL_JOBS,
    "logistics_nl_001": LOGISTICS_NL_JOBS,
    "health_ro_001": HEALTH_RO_JOBS,
}


class CatalogSource(JobSource):
    """Static per-tenant job catalog."""

    def __init__(self, catalog: Dict[str, List[dict]] = None):
        self.catalog = DEFAULT_CATALOG if catalog is None else catalog

    def get_source_name(self) -> str:
        return "catalog"

    def fetch_jobs(self, tenant: TenantConfig) -> List[Job]:
        entries = self.catalog.get(tenant.tenant_id)
        if entries is None:
            entries = self.catalog.get("default_001", [])
            logger.info(f"No catalog for tenant {tenant.tenant_id}, using default list")

        jobs = [Job.from_dict(entry) for entry in entries]
        logger.info(f"Loaded {len(jobs)} catalog jobs for tenant {tenant.tenant_id}")
        return jobs
