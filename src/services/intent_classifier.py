"""
Intent classification for the conversation's yes/no gates.

Every gate (data-processing consent, extraction confirmation, dispatch
consent, candidate-note decline) reduces the candidate's reply to one of
{AFFIRM, REFUSE, UNCLEAR}. The model classifies first; when the call fails
the keyword classifier decides, conservatively returning UNCLEAR when the
reply carries both affirming and refusing words.
"""

import logging
import re
from typing import Optional

from src.common.error_handling import ExtractionError
from src.common.schemas import Intent, IntentResult
from src.services.extraction_client import ExtractionClient

logger = logging.getLogger(__name__)

INTENT_SYSTEM_PROMPT = """You classify a candidate's reply to a yes/no question asked by a recruitment assistant.
The reply may be in English, Romanian, Dutch or German and may contain typos.

Return:
- AFFIRM if the reply clearly agrees or confirms
- REFUSE if the reply clearly declines, refuses or denies
- UNCLEAR if it is ambiguous, off-topic, or both

Never guess. When in doubt return UNCLEAR."""

INTENT_USER_PROMPT = """QUESTION ASKED:
{question}

CANDIDATE REPLY:
{reply}"""

_AFFIRM_PATTERN = re.compile(
    r"\b(da|yes|yep|yeah|ok|okay|sure|accept|accepted|agree|agreed|confirm|confirmed|"
    r"correct|acord|sunt de acord|ja|akkoord|einverstanden|of course|desigur)\b",
    re.IGNORECASE,
)
_REFUSE_PATTERN = re.compile(
    r"\b(nu|no|nope|not|never|refuz|refuse|decline|disagree|nee|nein|niet|nicht|don't|do not)\b",
    re.IGNORECASE,
)


def keyword_intent(text: Optional[str]) -> Intent:
    """
    Classify a reply with keyword rules only.

    >>> keyword_intent("Da, sunt de acord")
    <Intent.AFFIRM: 'AFFIRM'>
    >>> keyword_intent("nu sunt de acord")
    <Intent.UNCLEAR: 'UNCLEAR'>
    """
    if not text or not text.strip():
        return Intent.UNCLEAR

    affirms = bool(_AFFIRM_PATTERN.search(text))
    refuses = bool(_REFUSE_PATTERN.search(text))

    if affirms and not refuses:
        return Intent.AFFIRM
    if refuses and not affirms:
        return Intent.REFUSE
    return Intent.UNCLEAR


class IntentClassifier:
    """Model-backed gate classifier with a keyword fallback."""

    def __init__(self, client: ExtractionClient):
        self.client = client

    async def classify(self, text: str, question: str = "Do you agree?") -> Intent:
        """
        Classify a candidate reply.

        Args:
            text: Candidate's reply
            question: The question the reply answers (gives the model context)

        Returns:
            Intent (never raises)
        """
        if not text or not text.strip():
            return Intent.UNCLEAR

        try:
            result = await self.client.extract(
                IntentResult,
                system_prompt=INTENT_SYSTEM_PROMPT,
                user_content=INTENT_USER_PROMPT.format(question=question, reply=text.strip()),
                operation="intent_classification",
            )
            return result.intent
        except ExtractionError as e:
            fallback = keyword_intent(text)
            logger.warning(f"Intent classifier failed ({e}); keyword fallback -> {fallback.value}")
            return fallback
