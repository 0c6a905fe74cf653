"""
Google Sheet Job Source

Reads a tenant's open positions from a Google Sheet published as CSV
(File > Share > Publish to web > CSV). Expected header row:

    id, title, city, salary, required_skills, required_experience,
    required_language_level, nice_to_have_skills, description

Skill columns hold comma separated values; required_language_level is a
CEFR code or "any".
"""

import csv
import io
import logging
from typing import List

import requests

from src.common.tenants import TenantConfig

from . import Job, JobSource

logger = logging.getLogger(__name__)


class SheetSource(JobSource):
    """Published Google Sheet (CSV export) source."""

    URL_TEMPLATE = "https://docs.google.com/spreadsheets/d/e/{sheet_id}/pub?output=csv"
    TIMEOUT = 30  # seconds

    def get_source_name(self) -> str:
        return "sheet"

    def fetch_jobs(self, tenant: TenantConfig) -> List[Job]:
        """
        Download and parse the tenant's sheet.

        Raises:
            ValueError: If the tenant has no sheet id
            requests.exceptions.RequestException: On transport failure
        """
        if not tenant.job_sheet_id:
            raise ValueError(f"Tenant {tenant.tenant_id} has no job sheet configured")

        url = self.URL_TEMPLATE.format(sheet_id=tenant.job_sheet_id)
        logger.info(f"Fetching job sheet for tenant {tenant.tenant_id}")

        try:
            response = requests.get(url, timeout=self.TIMEOUT)
            response.raise_for_status()
        except requests.exceptions.Timeout:
            logger.error(f"Job sheet request timed out for tenant {tenant.tenant_id}")
            raise
        except requests.exceptions.RequestException as e:
            logger.error(f"Job sheet request failed for tenant {tenant.tenant_id}: {e}")
            raise

        response.encoding = response.encoding or "utf-8"
        jobs = self._parse_csv(response.text)
        logger.info(f"Fetched {len(jobs)} jobs from sheet for tenant {tenant.tenant_id}")
        return jobs

    def _parse_csv(self, text: str) -> List[Job]:
        reader = csv.DictReader(io.StringIO(text))
        jobs = []
        for line_number, row in enumerate(reader, start=2):
            normalized = {
                (key or "").strip().lower().replace(" ", "_"): (value or "").strip()
                for key, value in row.items()
            }
            job = Job.from_dict(normalized)
            if not job.id or not job.title:
                logger.warning(f"Skipping sheet row {line_number}: missing id or title")
                continue
            jobs.append(job)
        return jobs
