"""
Free-text profile extraction.

Turns candidate messages into partial profiles (ExtractionResult) and reads
the logistics answers of the qualification step (QualificationInfo).
Trivial messages (yes/no words, very short or punctuation-only texts) are
skipped before any model call.
"""

import logging
import re
from typing import Optional

from src.common.error_handling import ExtractionError
from src.common.schemas import ExtractionResult, QualificationInfo, Session, Sentiment
from src.services.extraction_client import ExtractionClient

logger = logging.getLogger(__name__)

MIN_EXTRACTABLE_LENGTH = 5

TRIVIAL_REPLIES = frozenset({
    "da", "nu", "yes", "no", "ok", "okay", "yep", "nope", "sure",
    "ja", "nee", "nein", "reset",
})

PROFILE_EXTRACTION_SYSTEM = """You extract a candidate's professional profile from a chat message sent to a recruitment assistant.

EXTRACT ONLY what the candidate states:
- name, education, work experience (summary and individual roles), technical skills,
  certificates and licenses, language proficiency, desired job title
- Map language descriptors to CEFR: "fluent"/"advanced" -> C1, "native" -> C2,
  "intermediate" -> B1, "basic"/"beginner" -> A1

NEVER EXTRACT:
- age, birth date, address, ID numbers, family or marital status, health, religion,
  political views, nationality

Fields already known are listed; do not repeat them unless the message adds something new.
Use null for anything not stated. Do not invent."""

PROFILE_EXTRACTION_USER = """ALREADY KNOWN:
{known}

CANDIDATE MESSAGE:
{message}"""

QUALIFICATION_SYSTEM = """You read a candidate's answer to two logistics questions:
1. When can they start a new job (availability)?
2. Do they need accommodation provided by the agency?

Also label the overall tone of the answer as positive, neutral or negative.
Quote the candidate's own wording for availability and accommodation; use null when a question is not answered."""


def should_extract(text: Optional[str]) -> bool:
    """
    Decide whether a message is worth an extraction call.

    >>> should_extract("da")
    False
    >>> should_extract("Am lucrat 3 ani ca stivuitorist")
    True
    """
    if not text:
        return False
    stripped = text.strip()
    if len(stripped) < MIN_EXTRACTABLE_LENGTH:
        return False
    if stripped.lower().strip(".!?, ") in TRIVIAL_REPLIES:
        return False
    if not re.search(r"\w", stripped):
        return False
    return True


def _known_fields(session: Session) -> str:
    known = []
    for name in ("name", "education", "experience_summary", "language_level", "job_title_desired"):
        value = getattr(session, name)
        if value:
            known.append(f"- {name}: {getattr(value, 'value', value)}")
    if session.hard_skills:
        known.append(f"- hard_skills: {', '.join(session.hard_skills)}")
    return "\n".join(known) or "(nothing yet)"


class ProfileExtractor:
    """Model-backed extraction of profile data from free text."""

    def __init__(self, client: ExtractionClient):
        self.client = client

    async def extract_profile(self, text: str, session: Session) -> Optional[ExtractionResult]:
        """
        Extract a partial profile from a candidate message.

        Returns:
            ExtractionResult, or None when the text is trivial, the call fails,
            or nothing was found
        """
        if not should_extract(text):
            return None

        try:
            result = await self.client.extract(
                ExtractionResult,
                system_prompt=PROFILE_EXTRACTION_SYSTEM,
                user_content=PROFILE_EXTRACTION_USER.format(
                    known=_known_fields(session), message=text.strip()
                ),
                operation="profile_extraction",
            )
        except ExtractionError as e:
            logger.warning(f"Profile extraction failed: {e}")
            return None

        if result.is_empty():
            logger.debug("Profile extraction found nothing")
            return None
        return result

    async def extract_qualification(self, text: str) -> QualificationInfo:
        """
        Extract availability, accommodation need and sentiment in one call.

        Falls back to the candidate's verbatim text for both answers (and an
        unknown sentiment) when the call fails.
        """
        verbatim = (text or "").strip() or None
        try:
            info = await self.client.extract(
                QualificationInfo,
                system_prompt=QUALIFICATION_SYSTEM,
                user_content=verbatim or "",
                operation="qualification_extraction",
            )
        except ExtractionError as e:
            logger.warning(f"Qualification extraction failed, keeping verbatim answer: {e}")
            return QualificationInfo(
                availability=verbatim,
                accommodation_needed=verbatim,
                sentiment=Sentiment.UNKNOWN,
            )

        # A partially answered reply keeps the raw text for the missing half
        return QualificationInfo(
            availability=info.availability or verbatim,
            accommodation_needed=info.accommodation_needed or verbatim,
            sentiment=info.sentiment,
        )
