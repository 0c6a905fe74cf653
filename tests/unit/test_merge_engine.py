"""
Unit tests for src/services/merge_engine.py

Tests the non-regressing merge of extraction results into Sessions.
"""

from unittest.mock import patch

from src.common.schemas import ExperienceEntry, ExtractionResult, LanguageLevel
from src.services.merge_engine import merge_extraction


# ===== TESTS: Scalar Fields =====

class TestScalarMerge:
    """Tests for scalar field adoption."""

    def test_existing_value_is_never_overwritten(self, make_session):
        """A confirmed education survives a merge offering a different one."""
        session = make_session(education="Technical High School")
        outcome = merge_extraction(session, ExtractionResult(education="University"))

        assert outcome.session.education == "Technical High School"
        assert "education" not in outcome.adopted_fields
        assert not outcome.changed

    def test_empty_field_is_adopted(self, make_session):
        """Empty scalar fields take the extracted value."""
        session = make_session()
        outcome = merge_extraction(
            session, ExtractionResult(education="University", language_level="fluent")
        )

        assert outcome.session.education == "University"
        assert outcome.session.language_level == LanguageLevel.C1
        assert set(outcome.adopted_fields) == {"education", "language_level"}
        assert outcome.changed

    def test_original_session_is_not_mutated(self, make_session):
        """The merge works on a copy."""
        session = make_session()
        merge_extraction(session, ExtractionResult(name="Ana"))
        assert session.name is None

    def test_mixed_adoption(self, make_session):
        """Only the empty fields of a partially filled Session are adopted."""
        session = make_session(name="Ion", education="Liceu")
        outcome = merge_extraction(
            session,
            ExtractionResult(name="Ionut", education="Facultate", experience_summary="2 years picking"),
        )
        assert outcome.session.name == "Ion"
        assert outcome.session.education == "Liceu"
        assert outcome.session.experience_summary == "2 years picking"
        assert outcome.adopted_fields == ["experience_summary"]


# ===== TESTS: Collection Fields =====

class TestCollectionMerge:
    """Tests for wholesale adoption of collections."""

    def test_skills_adopted_when_empty(self, make_session):
        """An empty skill set takes the extracted list."""
        outcome = merge_extraction(make_session(), ExtractionResult(hard_skills=["EPT", "VCA"]))
        assert outcome.session.hard_skills == ["EPT", "VCA"]

    def test_skills_not_unioned(self, make_session):
        """A non-empty skill set is kept as is, with no element-wise union."""
        session = make_session(hard_skills=["Reach Truck"])
        outcome = merge_extraction(session, ExtractionResult(hard_skills=["Reach truck", "EPT"]))
        assert outcome.session.hard_skills == ["Reach Truck"]

    def test_experience_entries_adopted(self, make_session):
        """Structured experience is adopted wholesale when empty."""
        entries = [ExperienceEntry(company="DHL", role="Picker", duration="2 years")]
        outcome = merge_extraction(make_session(), ExtractionResult(experience=entries))
        assert outcome.session.experience[0].company == "DHL"

    def test_repeated_merge_is_stable(self, make_session):
        """Merging the same result twice changes nothing the second time."""
        result = ExtractionResult(hard_skills=["EPT"], education="Liceu")
        first = merge_extraction(make_session(), result)
        second = merge_extraction(first.session, result)
        assert second.session.hard_skills == ["EPT"]
        assert not second.changed


# ===== TESTS: Validation & No-ops =====

class TestMergeValidation:
    """Tests for validation failures and no-op merges."""

    def test_none_result_is_noop(self, make_session):
        """A missing result returns the session untouched."""
        session = make_session()
        outcome = merge_extraction(session, None)
        assert outcome.session is session
        assert outcome.adopted_fields == []

    def test_invalid_merge_returns_original_with_warning(self, make_session):
        """A merged record failing validation is discarded."""
        session = make_session()
        result = ExtractionResult(education="x" * 5000)

        outcome = merge_extraction(session, result)

        assert outcome.session is session
        assert outcome.warning is not None
        assert not outcome.changed

    def test_invalid_merge_is_logged(self, make_session):
        """The discarded merge is reported as a warning log."""
        with patch("src.services.merge_engine.logger") as mock_logger:
            merge_extraction(make_session(), ExtractionResult(education="x" * 5000))
        mock_logger.warning.assert_called_once()
