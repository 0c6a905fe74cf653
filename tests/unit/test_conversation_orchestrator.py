"""
Unit tests for src/services/conversation_orchestrator.py

Drives whole conversations through the stage machine with fake model-backed
collaborators (intent keywords instead of model calls, canned extraction
results) and the real store, queue, dispatch manager and job catalog.
"""

from dataclasses import replace
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.common.error_handling import DocumentTooLargeError
from src.common.messages import get_messages
from src.common.rate_limiter import IdentityRateLimiter
from src.common.schemas import (
    Completeness,
    ExtractionResult,
    MAX_TEXT_LENGTH,
    LanguageLevel,
    QualificationInfo,
    Sentiment,
    Stage,
    utcnow,
)
from src.common.tenants import DEFAULT_TENANT, TenantRegistry
from src.services.channels import RecordingChannel
from src.services.conversation_orchestrator import ConversationOrchestrator, InboundEvent
from src.services.dispatch_manager import DispatchManager
from src.services.document_pipeline import MediaReference
from src.services.intent_classifier import keyword_intent
from src.services.job_matcher import JobMatch, MatchingResult
from src.services.job_sources import CatalogSource, Job

IDENTITY = "whatsapp:+40712345678"
EN_TENANT = replace(DEFAULT_TENANT, language="en", retention_days=30)
MESSAGES = get_messages("en")

CV_RESULT = ExtractionResult(
    name="Ion Popescu",
    education="Technical High School",
    experience_summary="3 years reach truck driver",
    hard_skills=["Reach Truck", "EPT"],
    language_level=LanguageLevel.B1,
)

REACH_TRUCK_JOB = Job.from_dict({
    "id": "NL-LOG-001",
    "title": "Reach Truck Driver",
    "city": "Den Haag",
    "salary": "€13.50/h",
    "required_language_level": "A2",
})


def matching_result(*matches):
    return MatchingResult(
        candidate_name="Ion",
        total_jobs_analyzed=5,
        matches=list(matches),
        completeness=Completeness.COMPLETE,
    )


class Harness:
    """Orchestrator wired to fakes, plus helpers to talk to it."""

    def __init__(self, memory_store, tenant=EN_TENANT, rate_limiter=None):
        self.store = memory_store
        self.channel = RecordingChannel()

        self.intents = MagicMock()
        self.intents.classify = AsyncMock(side_effect=lambda text, question=None: keyword_intent(text))

        self.extractor = MagicMock()
        self.extractor.extract_profile = AsyncMock(return_value=None)
        self.extractor.extract_qualification = AsyncMock(
            return_value=QualificationInfo(
                availability="from Monday", accommodation_needed="own flat", sentiment=Sentiment.POSITIVE
            )
        )

        self.documents = MagicMock()
        self.documents.process = AsyncMock(return_value=CV_RESULT)
        self.documents.max_megabytes = 10

        self.matcher = MagicMock()
        self.matcher.match = AsyncMock(
            return_value=matching_result(
                JobMatch(job=REACH_TRUCK_JOB, score=88, skills_score=90, experience_score=85,
                         language_score=100, reasoning="Has Reach Truck and EPT.")
            )
        )

        self.notifier = MagicMock()
        self.notifier.notify.return_value = True

        self.orchestrator = ConversationOrchestrator(
            store=memory_store,
            channel=self.channel,
            extractor=self.extractor,
            intents=self.intents,
            documents=self.documents,
            matcher=self.matcher,
            dispatcher=DispatchManager(self.notifier),
            tenants=TenantRegistry(default=tenant),
            rate_limiter=rate_limiter or IdentityRateLimiter(max_requests=1000, window_seconds=60),
            job_source_factory=lambda tenant: CatalogSource(),
        )

    async def say(self, text="", media=None, channel_number=""):
        result = await self.orchestrator.handle_event(
            InboundEvent(identity=IDENTITY, channel_number=channel_number, text=text, media=media)
        )
        await self.orchestrator.queue.drain()
        return result

    def session(self):
        return self.store.load(IDENTITY)

    def seed(self, stage, **fields):
        from src.common.schemas import Session

        session = Session(identity=IDENTITY, tenant_id=EN_TENANT.tenant_id, stage=stage,
                          consent_given=True, **fields)
        self.store.save(session)
        return session


@pytest.fixture
def harness(memory_store):
    return Harness(memory_store)


# ===== TESTS: Onboarding & Consent =====

class TestConsent:
    """Tests for the disclosure and consent gate."""

    @pytest.mark.asyncio
    async def test_first_message_gets_disclosure(self, harness):
        result = await harness.say("Hello")

        assert result.stage == Stage.PENDING_CONSENT
        assert result.replies == [
            MESSAGES.render("welcome_disclosure", agency=EN_TENANT.agency_name, retention_days=30)
        ]
        assert harness.channel.texts_for(IDENTITY) == result.replies

    @pytest.mark.asyncio
    async def test_consent_sets_flags_and_retention(self, harness):
        await harness.say("Hello")
        result = await harness.say("yes")

        session = harness.session()
        assert result.stage == Stage.COLLECTING_DATA
        assert session.consent_given
        assert session.ai_disclosure_acknowledged
        assert session.data_retention_date == session.consent_timestamp.date() + timedelta(days=30)
        assert result.replies == [MESSAGES.render("presentation_options")]

    @pytest.mark.asyncio
    async def test_refusal_deletes_session(self, harness):
        await harness.say("Hello")
        result = await harness.say("no")

        assert result.replies == [MESSAGES.render("consent_refused")]
        assert result.stage is None
        assert harness.session() is None

    @pytest.mark.asyncio
    async def test_unclear_reply_reprompts(self, harness):
        await harness.say("Hello")
        result = await harness.say("what is this?")

        assert result.stage == Stage.PENDING_CONSENT
        assert result.replies == [MESSAGES.render("consent_reprompt")]

    @pytest.mark.asyncio
    async def test_tenant_resolved_by_channel_number(self, harness):
        """An event to the NL agency number gets the NL disclosure."""
        result = await harness.say("Hallo", channel_number="+31 6 1234 5678")

        assert "Logistics Staffing NL" in result.replies[0]
        assert result.replies[0].startswith("Hallo!")
        assert harness.session().tenant_id == "logistics_nl_001"


# ===== TESTS: Data Collection =====

class TestDataCollection:
    """Tests for CV and free-text profile collection."""

    @pytest.mark.asyncio
    async def test_cv_produces_summary(self, harness):
        harness.seed(Stage.COLLECTING_DATA)

        result = await harness.say(media=MediaReference(url="https://x/cv.pdf"))

        assert result.stage == Stage.COLLECTING_DATA
        assert "I went through your profile, Ion!" in result.replies[0]
        assert "Reach Truck, EPT" in result.replies[0]
        assert harness.session().education == "Technical High School"

    @pytest.mark.asyncio
    async def test_document_error_message(self, harness):
        harness.seed(Stage.COLLECTING_DATA)
        harness.documents.process.side_effect = DocumentTooLargeError("too big")

        result = await harness.say(media=MediaReference(url="https://x/cv.pdf"))

        assert result.replies == [MESSAGES.document_error("oversize", max_mb=10)]
        assert "10 MB" in result.replies[0]
        assert result.stage == Stage.COLLECTING_DATA

    @pytest.mark.asyncio
    async def test_incomplete_cv_asks_for_missing(self, harness):
        harness.seed(Stage.COLLECTING_DATA)
        harness.documents.process.return_value = ExtractionResult(education="Liceu")

        result = await harness.say(media=MediaReference(url="https://x/cv.pdf"))

        expected_missing = ", ".join(
            MESSAGES.field_label(name) for name in ("experience_summary", "hard_skills")
        )
        assert result.replies == [MESSAGES.render("data_recorded", missing=expected_missing)]

    @pytest.mark.asyncio
    async def test_free_text_is_extracted_in_background(self, harness):
        """The reply goes out first; the merge is stored before the next turn."""
        harness.seed(Stage.COLLECTING_DATA)
        harness.extractor.extract_profile.return_value = ExtractionResult(
            experience_summary="3 years order picking"
        )

        result = await harness.say("I worked 3 years as order picker at DHL")

        assert result.replies[0].startswith("✅")
        assert harness.session().experience_summary == "3 years order picking"
        assert harness.session().last_message == "I worked 3 years as order picker at DHL"

    @pytest.mark.asyncio
    async def test_trivial_text_asks_for_cv(self, harness):
        harness.seed(Stage.COLLECTING_DATA)

        result = await harness.say("ok")

        assert result.replies == [MESSAGES.render("send_cv_prompt")]
        harness.extractor.extract_profile.assert_not_called()

    @pytest.mark.asyncio
    async def test_language_reply_is_merged_before_advancing(self, harness, complete_profile):
        """'fluent' after the summary is merged as C1 before the next turn is handled."""
        complete_profile.pop("language_level")
        harness.seed(Stage.COLLECTING_DATA, **complete_profile)
        harness.extractor.extract_profile.return_value = ExtractionResult(language_level="fluent")

        first = await harness.say("fluent")
        assert first.stage == Stage.COLLECTING_DATA
        assert "I went through your profile" in first.replies[0]

        second = await harness.say("yes")

        assert second.stage == Stage.WAITING_QUALIFICATION
        assert harness.session().language_level == LanguageLevel.C1

    @pytest.mark.asyncio
    async def test_refused_summary_records_correction(self, harness, complete_profile):
        harness.seed(Stage.COLLECTING_DATA, **complete_profile)

        result = await harness.say("no")

        assert result.replies == [MESSAGES.render("correction_prompt")]
        assert harness.session().candidate_corrections == ["no"]
        assert result.stage == Stage.COLLECTING_DATA

    @pytest.mark.asyncio
    async def test_confirmation_skipped_when_disabled(self, memory_store):
        """Tenants without the confirmation step go straight to qualification."""
        harness = Harness(memory_store, tenant=replace(EN_TENANT, confirm_extraction=False))
        harness.seed(Stage.COLLECTING_DATA)

        result = await harness.say(media=MediaReference(url="https://x/cv.pdf"))

        assert result.stage == Stage.WAITING_QUALIFICATION
        assert result.replies == [MESSAGES.render("qualification_questions", name="Ion")]

    @pytest.mark.asyncio
    async def test_media_outside_collection_is_not_processed(self, harness):
        harness.seed(Stage.WAITING_QUALIFICATION, **CV_RESULT.populated_fields())

        await harness.say("from Monday", media=MediaReference(url="https://x/cv.pdf"))

        harness.documents.process.assert_not_called()


# ===== TESTS: Qualification, Note & Matching =====

class TestQualificationAndMatching:
    """Tests for qualification, candidate note and match presentation."""

    @pytest.mark.asyncio
    async def test_qualification_answers_stored(self, harness, complete_profile):
        harness.seed(Stage.WAITING_QUALIFICATION, **complete_profile)

        result = await harness.say("From Monday, I have my own flat")

        session = harness.session()
        assert result.stage == Stage.WAITING_CANDIDATE_NOTE
        assert session.availability == "from Monday"
        assert session.accommodation_needed == "own flat"
        assert session.sentiment == Sentiment.POSITIVE

    @pytest.mark.asyncio
    async def test_note_kept_verbatim_and_matches_presented(self, harness, complete_profile):
        harness.seed(Stage.WAITING_CANDIDATE_NOTE, **complete_profile)

        result = await harness.say("I prefer night shifts")

        session = harness.session()
        assert result.stage == Stage.WAITING_DISPATCH_CONSENT
        assert session.candidate_note == "I prefer night shifts"
        assert session.matched_job_ids == ["NL-LOG-001"]
        assert "🥇 Reach Truck Driver (Den Haag)" in result.replies[0]
        assert "88%" in result.replies[0]

        jobs = harness.matcher.match.call_args.args[1]
        assert [job.id for job in jobs][:1] == ["NL-LOG-001"]

    @pytest.mark.asyncio
    async def test_declined_note_is_empty(self, harness, complete_profile):
        harness.seed(Stage.WAITING_CANDIDATE_NOTE, **complete_profile)

        await harness.say("no")

        assert harness.session().candidate_note is None

    @pytest.mark.asyncio
    async def test_no_matches_still_asks_consent(self, harness, complete_profile):
        harness.seed(Stage.WAITING_CANDIDATE_NOTE, **complete_profile)
        harness.matcher.match.return_value = matching_result()

        result = await harness.say("no")

        assert result.stage == Stage.WAITING_DISPATCH_CONSENT
        assert result.replies == [MESSAGES.render("no_jobs_found", name="Ion")]

    @pytest.mark.asyncio
    async def test_matching_failure_reports_and_asks_consent(self, harness, complete_profile):
        harness.seed(Stage.WAITING_CANDIDATE_NOTE, **complete_profile)
        harness.matcher.match.side_effect = RuntimeError("model down")

        result = await harness.say("no")

        assert result.stage == Stage.WAITING_DISPATCH_CONSENT
        assert result.replies == [MESSAGES.render("api_error"), MESSAGES.render("dispatch_reprompt")]
        assert result.error is None


# ===== TESTS: Dispatch =====

class TestDispatch:
    """Tests for the dispatch consent gate."""

    @pytest.mark.asyncio
    async def test_consent_dispatches_and_purges(self, harness, complete_profile):
        harness.seed(Stage.WAITING_DISPATCH_CONSENT, matched_job_ids=["NL-LOG-001"], **complete_profile)

        result = await harness.say("yes")

        session = harness.session()
        assert result.stage == Stage.DISPATCHED
        assert result.replies == [
            MESSAGES.render("dispatch_confirmed", name="Ion", agency=EN_TENANT.agency_name)
        ]
        assert session.name is None
        assert session.hard_skills == []
        assert session.last_message is None
        assert session.dispatch_timestamp is not None
        assert session.dispatch_consent_timestamp is not None
        assert session.matched_job_ids == ["NL-LOG-001"]

        to, subject, body = harness.notifier.notify.call_args.args
        assert to == EN_TENANT.reviewer_email
        assert "Ion Popescu" in body

    @pytest.mark.asyncio
    async def test_failed_delivery_keeps_stage_and_data(self, harness, complete_profile):
        harness.seed(Stage.WAITING_DISPATCH_CONSENT, **complete_profile)
        harness.notifier.notify.return_value = False

        result = await harness.say("yes")

        session = harness.session()
        assert result.stage == Stage.WAITING_DISPATCH_CONSENT
        assert result.replies == [MESSAGES.render("dispatch_failed")]
        assert session.name == "Ion Popescu"
        assert session.dispatch_timestamp is None

    @pytest.mark.asyncio
    async def test_refusal_keeps_stage(self, harness, complete_profile):
        harness.seed(Stage.WAITING_DISPATCH_CONSENT, **complete_profile)

        result = await harness.say("no")

        assert result.stage == Stage.WAITING_DISPATCH_CONSENT
        assert result.replies == [MESSAGES.render("dispatch_refused")]
        harness.notifier.notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_after_dispatch_conversation_closes(self, harness):
        harness.seed(Stage.DISPATCHED)

        first = await harness.say("thanks")
        second = await harness.say("hello?")

        assert first.replies == [MESSAGES.render("already_dispatched")]
        assert first.stage == Stage.COMPLETED
        assert second.replies == [MESSAGES.render("conversation_closed")]
        assert harness.session().last_message is None


# ===== TESTS: Full Conversation =====

class TestFullConversation:
    """One candidate from first message to dispatch."""

    @pytest.mark.asyncio
    async def test_happy_path(self, harness):
        stages = []
        for kwargs in (
            {"text": "Hello"},
            {"text": "yes"},
            {"media": MediaReference(url="https://x/cv.pdf")},
            {"text": "yes"},
            {"text": "From Monday, own flat"},
            {"text": "no"},
            {"text": "yes"},
        ):
            result = await harness.say(**kwargs)
            assert result.error is None
            stages.append(result.stage)

        assert stages == [
            Stage.PENDING_CONSENT,
            Stage.COLLECTING_DATA,
            Stage.COLLECTING_DATA,
            Stage.WAITING_QUALIFICATION,
            Stage.WAITING_CANDIDATE_NOTE,
            Stage.WAITING_DISPATCH_CONSENT,
            Stage.DISPATCHED,
        ]
        harness.notifier.notify.assert_called_once()


# ===== TESTS: Commands, Limits & Failures =====

class TestTurnHandling:
    """Tests for RESET, rate limiting and turn-level failures."""

    @pytest.mark.asyncio
    async def test_reset_restarts_conversation(self, harness, complete_profile):
        harness.seed(Stage.WAITING_QUALIFICATION, **complete_profile)

        result = await harness.say("reset")

        assert result.stage == Stage.PENDING_CONSENT
        assert result.replies[0] == MESSAGES.render("session_reset")
        assert harness.session().name is None
        assert not harness.session().consent_given

    @pytest.mark.asyncio
    async def test_rate_limited_event_is_not_processed(self, memory_store):
        harness = Harness(memory_store, rate_limiter=IdentityRateLimiter(max_requests=1, window_seconds=60))
        await harness.say("Hello")

        result = await harness.say("yes")

        assert result.rate_limited
        assert result.replies == [MESSAGES.render("rate_limited")]
        assert harness.session().stage == Stage.PENDING_CONSENT

    @pytest.mark.asyncio
    async def test_exception_leaves_stage_unchanged(self, harness, complete_profile):
        harness.seed(Stage.WAITING_QUALIFICATION, **complete_profile)
        harness.extractor.extract_qualification.side_effect = RuntimeError("unexpected")

        result = await harness.say("next week")

        assert result.replies == [MESSAGES.render("generic_failure")]
        assert result.stage == Stage.WAITING_QUALIFICATION
        assert result.error.exception_type == "RuntimeError"
        assert harness.session().stage == Stage.WAITING_QUALIFICATION
        assert harness.session().availability is None

    @pytest.mark.asyncio
    async def test_failed_send_does_not_break_turn(self, harness):
        harness.orchestrator.channel = MagicMock()
        harness.orchestrator.channel.send.side_effect = ConnectionError("offline")

        result = await harness.say("Hello")

        assert result.stage == Stage.PENDING_CONSENT
        assert harness.session().stage == Stage.PENDING_CONSENT

    @pytest.mark.asyncio
    async def test_long_note_is_clipped_and_session_stays_loadable(self, harness, complete_profile):
        """An over-long note is cut to the field limit, so the next turn still loads the session."""
        harness.seed(Stage.WAITING_CANDIDATE_NOTE, **complete_profile)

        first = await harness.say("x" * 2500)
        assert first.error is None
        assert len(harness.session().candidate_note) == MAX_TEXT_LENGTH

        second = await harness.say("yes")

        assert second.error is None
        assert second.stage == Stage.DISPATCHED
        assert harness.session().stage == Stage.DISPATCHED

    @pytest.mark.asyncio
    async def test_long_correction_is_clipped(self, harness, complete_profile):
        harness.seed(Stage.COLLECTING_DATA, **complete_profile)

        await harness.say("no, " + "x" * 2500)

        corrections = harness.session().candidate_corrections
        assert len(corrections) == 1
        assert len(corrections[0]) == MAX_TEXT_LENGTH

    @pytest.mark.asyncio
    async def test_unreadable_session_is_replaced(self, harness, complete_profile):
        """A stored record that fails validation is dropped and the conversation restarts."""
        broken = harness.seed(Stage.WAITING_DISPATCH_CONSENT, **complete_profile).to_document()
        broken["candidate_note"] = "x" * 2500
        harness.store._documents[IDENTITY] = broken

        result = await harness.say("Hello")

        assert result.error is None
        assert result.stage == Stage.PENDING_CONSENT
        assert result.replies == [
            MESSAGES.render("welcome_disclosure", agency=EN_TENANT.agency_name, retention_days=30)
        ]
        assert harness.session().candidate_note is None

    @pytest.mark.asyncio
    async def test_event_without_identity_is_dropped(self, harness):
        result = await harness.orchestrator.handle_event(InboundEvent(identity="", text="hi"))
        assert result.replies == []
        assert harness.store.list_identities() == []

    @pytest.mark.asyncio
    async def test_activity_timestamp_updated(self, harness):
        before = utcnow()
        await harness.say("Hello")
        assert harness.session().last_update >= before


# ===== TESTS: Payload Parsing =====

class TestInboundEvent:
    """Tests for building events from webhook payloads."""

    def test_lowercase_payload(self):
        event = InboundEvent.from_payload({"from": " whatsapp:+1 ", "to": "+31612345678", "text": "hi"})
        assert event.identity == "whatsapp:+1"
        assert event.channel_number == "+31612345678"
        assert event.media is None

    def test_capitalized_payload_with_media(self):
        event = InboundEvent.from_payload({
            "From": "whatsapp:+1",
            "To": "+31612345678",
            "Body": "",
            "MediaUrl0": "https://x/cv.jpg",
            "MediaContentType0": "image/jpeg",
        })
        assert event.media.url == "https://x/cv.jpg"
        assert event.text == ""
