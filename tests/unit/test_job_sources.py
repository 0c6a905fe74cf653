"""
Unit tests for src/services/job_sources/

Tests the Job record, the bundled catalog and the published-sheet source.
HTTP is mocked.
"""

from dataclasses import replace
from unittest.mock import MagicMock, patch

import pytest
import requests

from src.common.schemas import LanguageLevel
from src.common.tenants import BUILTIN_TENANTS, DEFAULT_TENANT
from src.services.job_sources import CatalogSource, Job, SheetSource, get_job_source

SHEET_CSV = """ID,Title,City,Salary,Required Skills,Required Experience,Required Language Level,Nice To Have Skills,Description
NL-1,Reach Truck Driver,Den Haag,€13.50/h,"Reach Truck, EPT",1,A2,VCA,Night shifts
,Missing Id,Utrecht,,,,,,
NL-2,Order Picker,Amsterdam,,Order picking,,any,,
"""


# ===== TESTS: Job Record =====

class TestJob:
    """Tests for Job.from_dict."""

    def test_parses_loose_shapes(self):
        job = Job.from_dict({
            "job_id": "X1",
            "job_title": "Picker",
            "city": "Venlo",
            "required_skills": "EPT; RF Scanner",
            "required_experience": "2.0",
            "required_language_level": "b1",
        })
        assert job.id == "X1"
        assert job.title == "Picker"
        assert job.required_skills == ("EPT", "RF Scanner")
        assert job.required_experience == 2
        assert job.required_language_level == LanguageLevel.B1

    @pytest.mark.parametrize("level", ["any", "", None, "-", "None"])
    def test_any_language_level(self, level):
        job = Job.from_dict({"id": "X", "title": "T", "required_language_level": level})
        assert job.required_language_level is None

    def test_bad_years_default_to_zero(self):
        assert Job.from_dict({"id": "X", "title": "T", "required_experience": "several"}).required_experience == 0

    def test_is_immutable(self):
        job = Job.from_dict({"id": "X", "title": "T"})
        with pytest.raises(Exception):
            job.title = "Other"


# ===== TESTS: Catalog Source =====

class TestCatalogSource:
    """Tests for the bundled per-tenant catalog."""

    def test_tenant_catalog(self):
        jobs = CatalogSource().fetch_jobs(BUILTIN_TENANTS["health_ro_001"])
        assert [job.id for job in jobs] == ["RO-MED-001", "RO-MED-002"]
        assert jobs[1].required_language_level is None

    def test_unknown_tenant_uses_default_list(self):
        tenant = replace(DEFAULT_TENANT, tenant_id="unknown_999")
        jobs = CatalogSource().fetch_jobs(tenant)
        assert jobs[0].id == "NL-LOG-001"
        assert len(jobs) == 5

    def test_custom_catalog(self):
        source = CatalogSource({"default_001": [{"id": "C1", "title": "Cook", "city": "Iasi"}]})
        assert [job.title for job in source.fetch_jobs(DEFAULT_TENANT)] == ["Cook"]
        assert source.get_source_name() == "catalog"


# ===== TESTS: Sheet Source =====

class TestSheetSource:
    """Tests for the published Google Sheet source."""

    @pytest.fixture
    def sheet_tenant(self):
        return replace(DEFAULT_TENANT, job_source="sheet", job_sheet_id="2PACX-abc")

    def test_parses_csv_rows(self, sheet_tenant):
        response = MagicMock(text=SHEET_CSV, encoding="utf-8")
        with patch("src.services.job_sources.sheet_source.requests.get", return_value=response) as mock_get:
            jobs = SheetSource().fetch_jobs(sheet_tenant)

        assert mock_get.call_args.args[0] == (
            "https://docs.google.com/spreadsheets/d/e/2PACX-abc/pub?output=csv"
        )
        assert [job.id for job in jobs] == ["NL-1", "NL-2"]
        assert jobs[0].required_skills == ("Reach Truck", "EPT")
        assert jobs[0].required_language_level == LanguageLevel.A2
        assert jobs[0].nice_to_have_skills == ("VCA",)
        assert jobs[1].required_language_level is None

    def test_missing_sheet_id(self):
        with pytest.raises(ValueError):
            SheetSource().fetch_jobs(DEFAULT_TENANT)

    def test_transport_error_propagates(self, sheet_tenant):
        with patch(
            "src.services.job_sources.sheet_source.requests.get",
            side_effect=requests.exceptions.ConnectionError("down"),
        ):
            with pytest.raises(requests.exceptions.RequestException):
                SheetSource().fetch_jobs(sheet_tenant)

    def test_http_error_propagates(self, sheet_tenant):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.exceptions.HTTPError("404")
        with patch("src.services.job_sources.sheet_source.requests.get", return_value=response):
            with pytest.raises(requests.exceptions.HTTPError):
                SheetSource().fetch_jobs(sheet_tenant)


# ===== TESTS: Source Selection =====

class TestGetJobSource:
    """Tests for choosing a tenant's source."""

    def test_catalog_by_default(self):
        assert isinstance(get_job_source(DEFAULT_TENANT), CatalogSource)

    def test_sheet_when_configured(self):
        tenant = replace(DEFAULT_TENANT, job_source="sheet", job_sheet_id="abc")
        assert isinstance(get_job_source(tenant), SheetSource)

    def test_sheet_without_id_falls_back(self):
        tenant = replace(DEFAULT_TENANT, job_source="sheet")
        assert isinstance(get_job_source(tenant), CatalogSource)
