"""
Dispatch Manager.

Sends a minimized candidate summary to the tenant's reviewer once the
candidate has given dispatch consent, then strips the sensitive profile
fields from the Session. The summary never contains the raw document and
the identity is masked to its last four digits.

Fields kept after dispatch: identifiers, stage, consent flags, timestamps
and matched job ids (audit trail).
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from src.common.error_handling import DispatchError
from src.common.logger import mask_identity
from src.common.schemas import MatchSnapshot, Session, utcnow
from src.common.tenants import TenantConfig
from src.services.notifiers import ReviewerNotifier

logger = logging.getLogger(__name__)

SENSITIVE_FIELDS = (
    "name",
    "education",
    "experience_summary",
    "experience",
    "hard_skills",
    "language_level",
    "job_title_desired",
    "domain",
    "recent_role",
    "mobility",
    "ai_notes",
    "availability",
    "accommodation_needed",
    "sentiment",
    "candidate_note",
    "candidate_corrections",
    "last_message",
)


def _fmt(value: Optional[object]) -> str:
    if value is None or value == "" or value == []:
        return "-"
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M UTC")
    return str(getattr(value, "value", value))


@dataclass
class DispatchSummary:
    """Minimized candidate record sent to the reviewer."""
    masked_identity: str
    tenant_id: str
    agency_name: str
    name: Optional[str]
    education: Optional[str]
    experience_summary: Optional[str]
    recent_role: Optional[str]
    hard_skills: List[str]
    language_level: Optional[str]
    availability: Optional[str]
    accommodation_needed: Optional[str]
    candidate_note: Optional[str]
    corrections: List[str]
    matches: List[MatchSnapshot] = field(default_factory=list)
    consent_timestamp: Optional[datetime] = None
    dispatch_consent_timestamp: Optional[datetime] = None
    data_retention_date: Optional[str] = None

    @classmethod
    def from_session(cls, session: Session, tenant: TenantConfig) -> "DispatchSummary":
        return cls(
            masked_identity=mask_identity(session.identity),
            tenant_id=tenant.tenant_id,
            agency_name=tenant.agency_name,
            name=session.name,
            education=session.education,
            experience_summary=session.experience_summary,
            recent_role=session.recent_role,
            hard_skills=list(session.hard_skills),
            language_level=session.language_level.value if session.language_level else None,
            availability=session.availability,
            accommodation_needed=session.accommodation_needed,
            candidate_note=session.candidate_note,
            corrections=list(session.candidate_corrections),
            matches=list(session.matched_jobs),
            consent_timestamp=session.consent_timestamp,
            dispatch_consent_timestamp=session.dispatch_consent_timestamp,
            data_retention_date=(
                session.data_retention_date.isoformat() if session.data_retention_date else None
            ),
        )

    @property
    def subject(self) -> str:
        return f"New candidate profile: {self.name or 'Unnamed'} ({self.masked_identity})"

    def to_text(self) -> str:
        """Render the plain-text e-mail body."""
        lines = [
            f"Candidate: {_fmt(self.name)}",
            f"Contact: {self.masked_identity}",
            f"Agency: {self.agency_name} ({self.tenant_id})",
            "",
            "PROFILE",
            f"Education: {_fmt(self.education)}",
            f"Experience: {_fmt(self.experience_summary)}",
            f"Recent role: {_fmt(self.recent_role)}",
            f"Skills: {', '.join(self.hard_skills) or '-'}",
            f"Language level: {_fmt(self.language_level)}",
            "",
            "LOGISTICS",
            f"Availability: {_fmt(self.availability)}",
            f"Accommodation: {_fmt(self.accommodation_needed)}",
            "",
            "TOP MATCHES",
        ]
        if self.matches:
            for match in self.matches:
                lines.append(f"- {match.title} ({match.city or '-'}) [{match.job_id}]: {match.score}%")
        else:
            lines.append("- none above threshold")

        lines += ["", "CANDIDATE NOTE", _fmt(self.candidate_note)]
        if self.corrections:
            lines += ["", "CANDIDATE CORRECTIONS"] + [f"- {text}" for text in self.corrections]

        lines += [
            "",
            "COMPLIANCE",
            f"Processing consent: {_fmt(self.consent_timestamp)}",
            f"Dispatch consent: {_fmt(self.dispatch_consent_timestamp)}",
            f"Data retained until: {_fmt(self.data_retention_date)}",
        ]
        return "\n".join(lines)


def purge_sensitive_fields(session: Session) -> Session:
    """Return a copy of the Session with every sensitive field reset."""
    defaults = {}
    for name in SENSITIVE_FIELDS:
        model_field = Session.model_fields[name]
        defaults[name] = model_field.get_default(call_default_factory=True)
    return session.model_copy(update=defaults)


class DispatchManager:
    """Delivers summaries and minimizes the Session afterwards."""

    def __init__(self, notifier: ReviewerNotifier):
        self.notifier = notifier

    async def dispatch(self, session: Session, tenant: TenantConfig, now: Optional[datetime] = None) -> Session:
        """
        Send the summary and strip sensitive data on confirmed delivery.

        Args:
            session: Session with dispatch consent recorded
            tenant: Tenant owning the reviewer address

        Returns:
            Minimized Session with dispatch_timestamp set (stage unchanged)

        Raises:
            DispatchError: If delivery was not confirmed; the Session is untouched
        """
        summary = DispatchSummary.from_session(session, tenant)

        try:
            delivered = await asyncio.to_thread(
                self.notifier.notify, tenant.reviewer_email, summary.subject, summary.to_text()
            )
        except Exception as e:
            raise DispatchError(f"Notifier failed for {summary.masked_identity}: {e}") from e

        if not delivered:
            raise DispatchError(f"Delivery not confirmed for {summary.masked_identity}")

        minimized = purge_sensitive_fields(session)
        minimized.dispatch_timestamp = now or utcnow()
        minimized.touch(minimized.dispatch_timestamp)
        logger.info(
            f"Dispatched {summary.masked_identity} to {tenant.tenant_id} reviewer; "
            f"{len(SENSITIVE_FIELDS)} sensitive fields purged"
        )
        return minimized
