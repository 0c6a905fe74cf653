"""
Conversation Orchestrator.

Drives one candidate through the intake dialogue, one inbound event per
turn. Stage graph:

    new -> pending_consent -> collecting_data -> waiting_qualification
        -> waiting_candidate_note -> waiting_dispatch_consent
        -> dispatched (or legacy offered_job) -> completed

    pending_consent -> completed (consent refused, Session deleted)

Each turn:
1. Rate limit per identity (excess events get a short notice only)
2. Serialize through the per-identity queue
3. Load the Session (or create one), run the handler of its stage
4. Persist the Session once at the end of the turn
5. Send the replies (best-effort)

Any exception inside a turn is logged with traceback and answered with the
generic failure text; nothing from the failed turn is persisted, so the
stage is left unchanged.

Free text in collecting_data is extracted in a background job queued behind
the turn, so the reply goes out first and the merge happens before the next
turn of the same identity.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from src.common.config import Config
from src.common.error_handling import DispatchError, DocumentError, TurnError, safe_execute
from src.common.logger import ConversationLogger, get_logger
from src.common.messages import Messages, get_messages
from src.common.rate_limiter import IdentityRateLimiter
from src.common.repositories import SessionStoreInterface, get_session_store
from src.common.schemas import MAX_MESSAGE_LENGTH, Intent, Session, Stage, clip_text, utcnow
from src.common.tenants import TenantConfig, TenantRegistry, get_tenant_registry
from src.services.channels import LogOnlyChannel, MessageChannel
from src.services.dispatch_manager import DispatchManager
from src.services.document_pipeline import DocumentPipeline, MediaReference, detect_media
from src.services.extraction_client import ExtractionClient
from src.services.intent_classifier import IntentClassifier
from src.services.job_matcher import JobMatcher, MatchingResult
from src.services.job_sources import JobSource, get_job_source
from src.services.merge_engine import merge_extraction
from src.services.notifiers import create_notifier
from src.services.profile_extractor import ProfileExtractor, should_extract
from src.services.session_queue import SessionTaskQueue

logger = logging.getLogger(__name__)

RESET_COMMAND = "RESET"
MEDALS = ["🥇", "🥈", "🥉"]

# Stages whose profile data has been purged; nothing is merged or stored there
_POST_DISPATCH_STAGES = (Stage.DISPATCHED, Stage.OFFERED_JOB, Stage.COMPLETED)

CONSENT_QUESTION = "Do you agree that your data is processed to help you find a job?"
CONFIRM_QUESTION = "Is this summary of your profile correct?"
NOTE_QUESTION = "Is there anything you want the recruiter to know? Reply NO to skip."
DISPATCH_QUESTION = "May we send your profile to our recruitment team?"


@dataclass
class InboundEvent:
    """One message received from the channel."""
    identity: str
    channel_number: str = ""
    text: str = ""
    media: Optional[MediaReference] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "InboundEvent":
        """
        Build an event from a webhook-style payload.

        Accepts lowercase keys (identity/from, to, text/body) and the
        capitalized From/To/Body form.
        """
        identity = payload.get("identity") or payload.get("from") or payload.get("From") or ""
        return cls(
            identity=str(identity).strip(),
            channel_number=str(payload.get("to") or payload.get("To") or ""),
            text=str(payload.get("text") or payload.get("body") or payload.get("Body") or ""),
            media=detect_media(payload),
        )


@dataclass
class TurnResult:
    """What a turn produced (used by runners and tests)."""
    identity: str
    replies: List[str] = field(default_factory=list)
    stage: Optional[Stage] = None
    error: Optional[TurnError] = None
    rate_limited: bool = False


@dataclass
class _Turn:
    """Mutable state of the turn being handled."""
    event: InboundEvent
    session: Session
    tenant: TenantConfig
    messages: Messages
    log: ConversationLogger
    replies: List[str] = field(default_factory=list)
    deleted: bool = False

    @property
    def text(self) -> str:
        return (self.event.text or "").strip()

    def reply(self, key: str, **values) -> None:
        self.replies.append(self.messages.render(key, **values))

    def name(self) -> str:
        return self.session.display_name(self.messages.render("default_name"))


class ConversationOrchestrator:
    """
    Stage state machine for every tenant.

    Behaviour differences between agencies come only from TenantConfig
    (language, retention, reviewer, job source, confirmation step).
    """

    def __init__(
        self,
        store: SessionStoreInterface,
        channel: MessageChannel,
        extractor: ProfileExtractor,
        intents: IntentClassifier,
        documents: DocumentPipeline,
        matcher: JobMatcher,
        dispatcher: DispatchManager,
        tenants: Optional[TenantRegistry] = None,
        queue: Optional[SessionTaskQueue] = None,
        rate_limiter: Optional[IdentityRateLimiter] = None,
        job_source_factory: Callable[[TenantConfig], JobSource] = get_job_source,
    ):
        self.store = store
        self.channel = channel
        self.extractor = extractor
        self.intents = intents
        self.documents = documents
        self.matcher = matcher
        self.dispatcher = dispatcher
        self.tenants = tenants or get_tenant_registry()
        self.queue = queue or SessionTaskQueue()
        self.rate_limiter = rate_limiter or IdentityRateLimiter()
        self.job_source_factory = job_source_factory

        self._handlers = {
            Stage.NEW: self._handle_new,
            Stage.PENDING_CONSENT: self._handle_pending_consent,
            Stage.COLLECTING_DATA: self._handle_collecting_data,
            Stage.WAITING_QUALIFICATION: self._handle_waiting_qualification,
            Stage.WAITING_CANDIDATE_NOTE: self._handle_waiting_candidate_note,
            Stage.WAITING_DISPATCH_CONSENT: self._handle_waiting_dispatch_consent,
            Stage.DISPATCHED: self._handle_dispatched,
            Stage.OFFERED_JOB: self._handle_dispatched,
            Stage.COMPLETED: self._handle_completed,
        }

    @classmethod
    def from_config(
        cls,
        store: Optional[SessionStoreInterface] = None,
        channel: Optional[MessageChannel] = None,
    ) -> "ConversationOrchestrator":
        """Wire the production collaborators from Config."""
        text_client = ExtractionClient(model=Config.EXTRACTION_MODEL)
        return cls(
            store=store or get_session_store(),
            channel=channel or LogOnlyChannel(),
            extractor=ProfileExtractor(text_client),
            intents=IntentClassifier(text_client),
            documents=DocumentPipeline(ExtractionClient(model=Config.VISION_MODEL)),
            matcher=JobMatcher(ExtractionClient(model=Config.MATCHING_MODEL)),
            dispatcher=DispatchManager(create_notifier()),
        )

    # ===== ENTRY POINT =====

    async def handle_event(self, event: InboundEvent) -> TurnResult:
        """
        Process one inbound event to completion.

        Never raises; failures are reported through TurnResult.error.
        """
        if not event.identity:
            logger.warning("Dropping inbound event without identity")
            return TurnResult(identity="")

        if not self.rate_limiter.check(event.identity):
            tenant = self.tenants.resolve(event.channel_number)
            text = get_messages(tenant.language).render("rate_limited")
            self._send(event.identity, [text])
            return TurnResult(identity=event.identity, replies=[text], rate_limited=True)

        result = await self.queue.run(event.identity, lambda: self._process_turn(event))
        self._send(event.identity, result.replies)
        return result

    async def _process_turn(self, event: InboundEvent) -> TurnResult:
        existing: Optional[Session] = None
        tenant = self.tenants.resolve(event.channel_number)
        messages = get_messages(tenant.language)
        stage = Stage.NEW
        log = get_logger(__name__, identity=event.identity)

        try:
            existing = self._load_session(event.identity, log)
            if existing is not None:
                tenant = self.tenants.get(existing.tenant_id)
                messages = get_messages(tenant.language)
                stage = existing.stage
            log = log.bind(stage.value)

            turn = self._start_turn(event, existing, tenant, messages, log)
            await self._handlers[turn.session.stage](turn)

            if turn.deleted:
                self.store.delete(event.identity)
                log.info("Session deleted")
                return TurnResult(identity=event.identity, replies=turn.replies)

            if turn.session.stage not in _POST_DISPATCH_STAGES and turn.text:
                turn.session.last_message = clip_text(turn.text, MAX_MESSAGE_LENGTH)
            turn.session.touch()
            self.store.save(turn.session)
            log.bind(turn.session.stage.value).debug(f"Turn complete ({len(turn.replies)} replies)")
            return TurnResult(identity=event.identity, replies=turn.replies, stage=turn.session.stage)

        except Exception as e:
            error = TurnError.from_exception(stage.value, "handle_turn", e)
            log.exception(f"Turn failed: {error.exception_type}: {error.message}")
            return TurnResult(
                identity=event.identity,
                replies=[messages.render("generic_failure")],
                stage=stage if existing is not None else None,
                error=error,
            )

    def _start_turn(
        self,
        event: InboundEvent,
        existing: Optional[Session],
        tenant: TenantConfig,
        messages: Messages,
        log: ConversationLogger,
    ) -> _Turn:
        replies: List[str] = []
        session = existing

        if session is not None and (event.text or "").strip().upper() == RESET_COMMAND:
            self.store.delete(event.identity)
            replies.append(messages.render("session_reset"))
            log.info("Session reset by candidate")
            session = None

        if session is None:
            session = Session(identity=event.identity, tenant_id=tenant.tenant_id)
            log.info(f"New session for tenant {tenant.tenant_id}")

        return _Turn(
            event=event,
            session=session,
            tenant=tenant,
            messages=messages,
            log=log,
            replies=replies,
        )

    def _load_session(self, identity: str, log: ConversationLogger) -> Optional[Session]:
        """Load the stored session; an unreadable record is dropped so the candidate can start over."""
        try:
            return self.store.load(identity)
        except ValidationError as e:
            log.error(f"Stored session failed validation ({e.error_count()} errors), deleting it")
            self.store.delete(identity)
            return None

    def _send(self, identity: str, replies: List[str]) -> None:
        for text in replies:
            safe_execute(
                self.channel.send,
                identity,
                text,
                operation_name="outbound reply",
                logger=logger,
            )

    # ===== STAGE HANDLERS =====

    async def _handle_new(self, turn: _Turn) -> None:
        turn.reply(
            "welcome_disclosure",
            agency=turn.tenant.agency_name,
            retention_days=turn.tenant.retention_days,
        )
        turn.session.advance(Stage.PENDING_CONSENT)

    async def _handle_pending_consent(self, turn: _Turn) -> None:
        intent = await self.intents.classify(turn.text, question=CONSENT_QUESTION)
        turn.log.info(f"Consent intent: {intent.value}")

        if intent == Intent.AFFIRM:
            now = utcnow()
            session = turn.session
            session.consent_given = True
            session.ai_disclosure_acknowledged = True
            session.consent_timestamp = now
            session.data_retention_date = now.date() + timedelta(days=turn.tenant.retention_days)
            session.advance(Stage.COLLECTING_DATA)
            turn.reply("presentation_options")
        elif intent == Intent.REFUSE:
            turn.session.advance(Stage.COMPLETED)
            turn.reply("consent_refused")
            turn.deleted = True
        else:
            turn.reply("consent_reprompt")

    async def _handle_collecting_data(self, turn: _Turn) -> None:
        if turn.event.media is not None:
            await self._collect_from_document(turn)
        else:
            await self._collect_from_text(turn)

    async def _collect_from_document(self, turn: _Turn) -> None:
        try:
            result = await self.documents.process(turn.event.media, turn.session.identity)
        except DocumentError as e:
            turn.log.warning(f"Document rejected ({e.code}): {e}")
            turn.replies.append(
                turn.messages.document_error(e.code, max_mb=self.documents.max_megabytes)
            )
            return

        outcome = merge_extraction(turn.session, result)
        turn.session = outcome.session
        turn.log.info(f"Document merged: {outcome.adopted_fields}")

        if not turn.session.has_required_fields():
            self._reply_missing_fields(turn)
        elif turn.tenant.confirm_extraction:
            self._reply_summary(turn)
        else:
            self._start_qualification(turn)

    async def _collect_from_text(self, turn: _Turn) -> None:
        text = turn.text
        extractable = should_extract(text)
        if extractable:
            self._schedule_extraction(turn.session.identity, text)

        if not turn.session.has_required_fields():
            if extractable:
                self._reply_missing_fields(turn)
            else:
                turn.reply("send_cv_prompt")
            return

        if not turn.tenant.confirm_extraction:
            self._start_qualification(turn)
            return

        intent = await self.intents.classify(text, question=CONFIRM_QUESTION)
        turn.log.info(f"Summary confirmation intent: {intent.value}")

        if intent == Intent.AFFIRM:
            self._start_qualification(turn)
        elif intent == Intent.REFUSE:
            if text:
                turn.session.candidate_corrections.append(clip_text(text))
            turn.reply("correction_prompt")
        elif extractable:
            self._reply_summary(turn)
        else:
            turn.reply("confirm_reprompt")

    async def _handle_waiting_qualification(self, turn: _Turn) -> None:
        info = await self.extractor.extract_qualification(turn.text)
        session = turn.session
        session.availability = info.availability
        session.accommodation_needed = info.accommodation_needed
        session.sentiment = info.sentiment
        session.advance(Stage.WAITING_CANDIDATE_NOTE)
        turn.reply("candidate_note_prompt")

    async def _handle_waiting_candidate_note(self, turn: _Turn) -> None:
        intent = await self.intents.classify(turn.text, question=NOTE_QUESTION)
        if intent == Intent.REFUSE or not turn.text:
            turn.session.candidate_note = None
            turn.log.info("Candidate declined to leave a note")
        else:
            turn.session.candidate_note = clip_text(turn.text)

        turn.session.advance(Stage.WAITING_DISPATCH_CONSENT)
        await self._present_matches(turn)

    async def _handle_waiting_dispatch_consent(self, turn: _Turn) -> None:
        intent = await self.intents.classify(turn.text, question=DISPATCH_QUESTION)
        turn.log.info(f"Dispatch consent intent: {intent.value}")

        if intent == Intent.REFUSE:
            turn.reply("dispatch_refused")
            return
        if intent != Intent.AFFIRM:
            turn.reply("dispatch_reprompt")
            return

        name = turn.name()
        turn.session.dispatch_consent_timestamp = utcnow()
        try:
            minimized = await self.dispatcher.dispatch(turn.session, turn.tenant)
        except DispatchError as e:
            turn.log.error(f"Dispatch failed: {e}")
            turn.reply("dispatch_failed")
            return

        minimized.advance(Stage.DISPATCHED)
        turn.session = minimized
        turn.reply("dispatch_confirmed", name=name, agency=turn.tenant.agency_name)

    async def _handle_dispatched(self, turn: _Turn) -> None:
        turn.reply("already_dispatched")
        turn.session.advance(Stage.COMPLETED)

    async def _handle_completed(self, turn: _Turn) -> None:
        turn.reply("conversation_closed")

    # ===== HELPERS =====

    def _schedule_extraction(self, identity: str, text: str) -> None:
        async def job() -> None:
            # Reload: earlier jobs may have changed the Session since this turn
            session = self.store.load(identity)
            if session is None or session.stage in _POST_DISPATCH_STAGES:
                return
            result = await self.extractor.extract_profile(text, session)
            outcome = merge_extraction(session, result)
            if outcome.changed:
                self.store.save(outcome.session)

        self.queue.schedule_background(identity, job)

    def _reply_missing_fields(self, turn: _Turn) -> None:
        missing = ", ".join(
            turn.messages.field_label(name) for name in turn.session.missing_required_fields()
        )
        turn.reply("data_recorded", missing=missing)

    def _reply_summary(self, turn: _Turn) -> None:
        session = turn.session
        unknown = turn.messages.render("unknown_value")
        turn.reply(
            "cv_feedback",
            name=turn.name(),
            recent_role=session.recent_role or session.experience_summary or unknown,
            mobility=session.mobility or unknown,
            skills=", ".join(session.hard_skills) or unknown,
            language_level=session.language_level.value if session.language_level else unknown,
        )

    def _start_qualification(self, turn: _Turn) -> None:
        turn.session.advance(Stage.WAITING_QUALIFICATION)
        turn.reply("qualification_questions", name=turn.name())

    async def _present_matches(self, turn: _Turn) -> None:
        session = turn.session
        try:
            source = self.job_source_factory(turn.tenant)
            jobs = await asyncio.to_thread(source.fetch_jobs, turn.tenant)
            result = await self.matcher.match(session, jobs, turn.tenant)
        except Exception as e:
            # Consent is still requested so the profile can reach a recruiter
            turn.log.exception(f"Job matching failed: {e}")
            turn.reply("api_error")
            turn.reply("dispatch_reprompt")
            return

        session.matched_job_ids = [match.job_id for match in result.matches]
        session.matched_jobs = [match.to_snapshot() for match in result.matches]

        if not result.matches:
            turn.reply("no_jobs_found", name=turn.name())
            return

        unknown = turn.messages.render("unknown_value")
        turn.reply(
            "job_matches_found",
            name=turn.name(),
            jobs=self._render_offers(turn, result),
            availability=session.availability or unknown,
            accommodation=session.accommodation_needed or unknown,
        )

    def _render_offers(self, turn: _Turn, result: MatchingResult) -> str:
        lines = []
        for medal, match in zip(MEDALS, result.matches):
            lines.append(
                turn.messages.render(
                    "job_offer_line",
                    medal=medal,
                    title=match.job.title,
                    city=match.job.city,
                    salary=match.job.salary or "-",
                    score=match.score,
                    reasoning=match.reasoning,
                )
            )
        return "\n\n".join(lines)
