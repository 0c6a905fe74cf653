"""
Schemas and validation for the candidate intake assistant.

Pydantic models for the persisted Session and for every record the extraction
model returns. Validators coerce the mis-shapes models commonly produce
(arrays or objects where a string is expected, free-text proficiency
descriptors instead of CEFR codes) instead of rejecting the whole record,
and default to None when a value is ambiguous.

Usage:
    from src.common.schemas import ExtractionResult, Session, Stage

    result = ExtractionResult.model_validate(raw_dict)
    session = Session(identity="whatsapp:+40712345678", tenant_id="default_001")
    session.advance(Stage.PENDING_CONSENT)
"""

import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from src.common.error_handling import InvalidTransitionError

MAX_TEXT_LENGTH = 2000
MAX_SKILLS = 50
MAX_MESSAGE_LENGTH = 4096


def utcnow() -> datetime:
    return datetime.utcnow()


# ===== ENUMERATIONS =====

class Stage(str, Enum):
    """Position of a Session in the conversation graph."""
    NEW = "new"
    PENDING_CONSENT = "pending_consent"
    COLLECTING_DATA = "collecting_data"
    WAITING_QUALIFICATION = "waiting_qualification"
    WAITING_CANDIDATE_NOTE = "waiting_candidate_note"
    WAITING_DISPATCH_CONSENT = "waiting_dispatch_consent"
    OFFERED_JOB = "offered_job"  # legacy sessions only
    DISPATCHED = "dispatched"
    COMPLETED = "completed"


STAGE_TRANSITIONS: Dict[Stage, frozenset] = {
    Stage.NEW: frozenset({Stage.PENDING_CONSENT}),
    Stage.PENDING_CONSENT: frozenset({Stage.COLLECTING_DATA, Stage.COMPLETED}),
    Stage.COLLECTING_DATA: frozenset({Stage.WAITING_QUALIFICATION}),
    Stage.WAITING_QUALIFICATION: frozenset({Stage.WAITING_CANDIDATE_NOTE}),
    Stage.WAITING_CANDIDATE_NOTE: frozenset({Stage.WAITING_DISPATCH_CONSENT}),
    Stage.WAITING_DISPATCH_CONSENT: frozenset({Stage.DISPATCHED, Stage.OFFERED_JOB}),
    Stage.DISPATCHED: frozenset({Stage.COMPLETED}),
    Stage.OFFERED_JOB: frozenset({Stage.COMPLETED}),
    Stage.COMPLETED: frozenset(),
}


class LanguageLevel(str, Enum):
    """Six-level CEFR proficiency scale, lowest to highest."""
    A1 = "A1"
    A2 = "A2"
    B1 = "B1"
    B2 = "B2"
    C1 = "C1"
    C2 = "C2"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)


_LEVEL_ORDER = [LanguageLevel.A1, LanguageLevel.A2, LanguageLevel.B1,
                LanguageLevel.B2, LanguageLevel.C1, LanguageLevel.C2]


class Intent(str, Enum):
    """Tagged result of a yes/no gate."""
    AFFIRM = "AFFIRM"
    REFUSE = "REFUSE"
    UNCLEAR = "UNCLEAR"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"
    UNKNOWN = "unknown"


class Completeness(str, Enum):
    """How many of the core profile fields are populated."""
    COMPLETE = "complete"
    PARTIAL = "partial"
    INCOMPLETE = "incomplete"


# ===== COERCION HELPERS =====

_CEFR_CODE = re.compile(r"\b([abc][12])\b", re.IGNORECASE)

# Ordered so longer phrases win over their substrings
_PROFICIENCY_DESCRIPTORS = [
    ("upper intermediate", LanguageLevel.B2),
    ("upper-intermediate", LanguageLevel.B2),
    ("pre-intermediate", LanguageLevel.A2),
    ("pre intermediate", LanguageLevel.A2),
    ("mother tongue", LanguageLevel.C2),
    ("limba maternă", LanguageLevel.C2),
    ("limba materna", LanguageLevel.C2),
    ("native", LanguageLevel.C2),
    ("nativ", LanguageLevel.C2),
    ("bilingual", LanguageLevel.C2),
    ("moedertaal", LanguageLevel.C2),
    ("muttersprache", LanguageLevel.C2),
    ("fluent", LanguageLevel.C1),
    ("fluently", LanguageLevel.C1),
    ("advanced", LanguageLevel.C1),
    ("avansat", LanguageLevel.C1),
    ("vloeiend", LanguageLevel.C1),
    ("fließend", LanguageLevel.C1),
    ("fliessend", LanguageLevel.C1),
    ("intermediate", LanguageLevel.B1),
    ("conversational", LanguageLevel.B1),
    ("mediu", LanguageLevel.B1),
    ("gemiddeld", LanguageLevel.B1),
    ("elementary", LanguageLevel.A2),
    ("elementar", LanguageLevel.A2),
    ("basic", LanguageLevel.A1),
    ("beginner", LanguageLevel.A1),
    ("începător", LanguageLevel.A1),
    ("incepator", LanguageLevel.A1),
    ("de bază", LanguageLevel.A1),
    ("de baza", LanguageLevel.A1),
    ("basis", LanguageLevel.A1),
    ("anfänger", LanguageLevel.A1),
    ("grundkenntnisse", LanguageLevel.A1),
]


def parse_language_level(value: Any) -> Optional[LanguageLevel]:
    """
    Map a CEFR code or a free-text proficiency descriptor onto the scale.

    When several levels are mentioned the highest one is kept. Text that
    names no level maps to None rather than a guess.

    >>> parse_language_level("fluent")
    <LanguageLevel.C1: 'C1'>
    >>> parse_language_level("English B2, Dutch A1")
    <LanguageLevel.B2: 'B2'>
    >>> parse_language_level("some English") is None
    True
    """
    if value is None:
        return None
    if isinstance(value, LanguageLevel):
        return value
    text = coerce_text(value)
    if not text:
        return None

    found = [LanguageLevel(code.upper()) for code in _CEFR_CODE.findall(text)]
    if not found:
        lowered = text.lower()
        for phrase, level in _PROFICIENCY_DESCRIPTORS:
            if re.search(rf"(?<!\w){re.escape(phrase)}(?!\w)", lowered):
                found.append(level)
                # Strip the phrase so "upper intermediate" is not read again as "intermediate"
                lowered = lowered.replace(phrase, " ")

    if not found:
        return None
    return max(found, key=lambda level: level.rank)


def coerce_text(value: Any) -> Optional[str]:
    """
    Coerce a model-produced value into a single string.

    Lists are joined with ", ", objects become "key: value" pairs joined with
    "; ". Empty results become None.
    """
    if value is None:
        return None
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped or stripped.lower() in ("null", "none", "n/a", "unknown"):
            return None
        return stripped
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, dict):
        parts = []
        for key, item in value.items():
            text = coerce_text(item)
            if text:
                parts.append(f"{key}: {text}")
        return "; ".join(parts) or None
    if isinstance(value, (list, tuple, set)):
        parts = [text for text in (coerce_text(item) for item in value) if text]
        return ", ".join(parts) or None
    return coerce_text(str(value))


def clip_text(value: Optional[str], limit: int = MAX_TEXT_LENGTH) -> Optional[str]:
    """Cut candidate-supplied text to the length a Session field accepts."""
    if value is None:
        return None
    return value[:limit]


def coerce_string_list(value: Any) -> List[str]:
    """
    Coerce a model-produced value into a de-duplicated list of strings.

    A comma/semicolon/newline separated string is split; nested objects
    contribute their values.
    """
    if value is None:
        return []
    if isinstance(value, str):
        raw_items = re.split(r"[,;\n]", value)
    elif isinstance(value, dict):
        raw_items = list(value.values())
    elif isinstance(value, (list, tuple, set)):
        raw_items = list(value)
    else:
        raw_items = [value]

    result: List[str] = []
    seen = set()
    for item in raw_items:
        text = coerce_text(item)
        if not text:
            continue
        key = text.lower()
        if key not in seen:
            seen.add(key)
            result.append(text)
    return result


def _coerce_score(value: Any) -> int:
    """Clamp a model-produced score into [0, 100]."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        number = float(str(value).strip().rstrip("%"))
    except ValueError:
        return 0
    return max(0, min(100, int(round(number))))


# ===== PROFILE MODELS =====

class ExperienceEntry(BaseModel):
    """One structured work-history entry."""
    company: Optional[str] = None
    role: Optional[str] = None
    duration: Optional[str] = None

    @field_validator("company", "role", "duration", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> Optional[str]:
        return coerce_text(v)


def _coerce_experience(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, dict):
        return [value]
    if not isinstance(value, (list, tuple)):
        value = [value]
    entries = []
    for item in value:
        if isinstance(item, (dict, ExperienceEntry)):
            entries.append(item)
        else:
            text = coerce_text(item)
            if text:
                entries.append({"role": text})
    return entries


class MatchSnapshot(BaseModel):
    """Minimal audit record of an offer presented to the candidate."""
    job_id: str
    title: str
    city: Optional[str] = None
    score: int = 0


SCALAR_PROFILE_FIELDS = (
    "name",
    "education",
    "experience_summary",
    "language_level",
    "job_title_desired",
    "domain",
    "recent_role",
    "mobility",
    "ai_notes",
)
COLLECTION_PROFILE_FIELDS = ("hard_skills", "experience")

# Fields the machine needs before it can ask for confirmation
REQUIRED_PROFILE_FIELDS = ("education", "experience_summary", "hard_skills")

# Fields that decide matching completeness
CORE_PROFILE_FIELDS = ("education", "experience_summary", "hard_skills", "language_level")

_SESSION_TEXT_FIELDS = (
    "name", "education", "experience_summary", "job_title_desired", "domain",
    "recent_role", "mobility", "ai_notes", "availability", "accommodation_needed",
    "candidate_note", "last_message",
)


class Session(BaseModel):
    """
    Durable per-candidate conversation state.

    Mutated by the orchestrator, the merge engine and the dispatch manager.
    Scalar profile fields are only ever filled when empty by background
    extraction (see merge_engine).
    """

    # Identity
    identity: str = Field(..., min_length=1)
    tenant_id: str = Field(..., min_length=1)
    stage: Stage = Stage.NEW

    # Profile
    name: Optional[str] = Field(None, max_length=200)
    education: Optional[str] = Field(None, max_length=MAX_TEXT_LENGTH)
    experience_summary: Optional[str] = Field(None, max_length=MAX_TEXT_LENGTH)
    experience: List[ExperienceEntry] = Field(default_factory=list)
    hard_skills: List[str] = Field(default_factory=list, max_length=MAX_SKILLS)
    language_level: Optional[LanguageLevel] = None
    job_title_desired: Optional[str] = Field(None, max_length=200)
    domain: Optional[str] = Field(None, max_length=MAX_TEXT_LENGTH)
    recent_role: Optional[str] = Field(None, max_length=MAX_TEXT_LENGTH)
    mobility: Optional[str] = Field(None, max_length=MAX_TEXT_LENGTH)
    ai_notes: Optional[str] = Field(None, max_length=MAX_TEXT_LENGTH)

    # Qualification
    availability: Optional[str] = Field(None, max_length=MAX_TEXT_LENGTH)
    accommodation_needed: Optional[str] = Field(None, max_length=MAX_TEXT_LENGTH)
    sentiment: Optional[Sentiment] = None
    candidate_note: Optional[str] = Field(None, max_length=MAX_TEXT_LENGTH)
    candidate_corrections: List[str] = Field(default_factory=list)

    # Compliance
    consent_given: bool = False
    ai_disclosure_acknowledged: bool = False
    consent_timestamp: Optional[datetime] = None
    data_retention_date: Optional[date] = None
    dispatch_consent_timestamp: Optional[datetime] = None
    dispatch_timestamp: Optional[datetime] = None

    # Audit
    matched_job_ids: List[str] = Field(default_factory=list)
    matched_jobs: List[MatchSnapshot] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    last_update: datetime = Field(default_factory=utcnow)
    last_message: Optional[str] = Field(None, max_length=MAX_MESSAGE_LENGTH)

    @field_validator(*_SESSION_TEXT_FIELDS, mode="before")
    @classmethod
    def _coerce_text_fields(cls, v: Any) -> Optional[str]:
        return coerce_text(v)

    @field_validator("hard_skills", mode="before")
    @classmethod
    def _coerce_skills(cls, v: Any) -> List[str]:
        return coerce_string_list(v)

    @field_validator("experience", mode="before")
    @classmethod
    def _coerce_experience_entries(cls, v: Any) -> List[Any]:
        return _coerce_experience(v)

    @field_validator("language_level", mode="before")
    @classmethod
    def _coerce_language(cls, v: Any) -> Optional[LanguageLevel]:
        return parse_language_level(v)

    # ----- stage handling -----

    def can_advance(self, target: Stage) -> bool:
        return target in STAGE_TRANSITIONS[self.stage]

    def advance(self, target: Stage) -> None:
        """
        Move to the target stage.

        Raises:
            InvalidTransitionError: If target is not reachable from the current stage
        """
        if not self.can_advance(target):
            raise InvalidTransitionError(self.stage.value, target.value)
        self.stage = target
        self.touch()

    def touch(self, now: Optional[datetime] = None) -> None:
        self.last_update = now or utcnow()

    # ----- profile helpers -----

    def is_field_empty(self, field_name: str) -> bool:
        value = getattr(self, field_name)
        if isinstance(value, str):
            return not value.strip()
        if isinstance(value, (list, tuple)):
            return len(value) == 0
        return value is None

    def has_required_fields(self) -> bool:
        return all(not self.is_field_empty(name) for name in REQUIRED_PROFILE_FIELDS)

    def missing_required_fields(self) -> List[str]:
        return [name for name in REQUIRED_PROFILE_FIELDS if self.is_field_empty(name)]

    def populated_core_fields(self) -> int:
        return sum(1 for name in CORE_PROFILE_FIELDS if not self.is_field_empty(name))

    def display_name(self, fallback: str = "") -> str:
        return self.name.split()[0] if self.name else fallback

    def to_document(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dict for the session store."""
        return self.model_dump(mode="json")

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Session":
        data = {key: value for key, value in document.items() if key != "_id"}
        return cls.model_validate(data)


# ===== EXTRACTION MODELS =====

class ExtractionResult(BaseModel):
    """
    Partial profile returned by one extraction call.

    Every profile field is optional; the merge engine adopts only the
    populated ones. Never persisted on its own.
    """
    name: Optional[str] = Field(None, description="candidate full name (string or null)")
    education: Optional[str] = Field(None, description="highest education or qualifications (string or null)")
    experience_summary: Optional[str] = Field(
        None, description="one-paragraph summary of work experience incl. total years (string or null)"
    )
    experience: List[ExperienceEntry] = Field(
        default_factory=list, description="list of {company, role, duration} objects"
    )
    hard_skills: List[str] = Field(
        default_factory=list, description="list of technical skills, certificates, licenses, tools"
    )
    language_level: Optional[LanguageLevel] = Field(
        None, description="best CEFR level A1|A2|B1|B2|C1|C2 or null if unclear"
    )
    job_title_desired: Optional[str] = Field(None, description="job title the candidate wants (string or null)")
    domain: Optional[str] = Field(None, description="main field of activity (string or null)")
    recent_role: Optional[str] = Field(None, description="most recent role and employer (string or null)")
    mobility: Optional[str] = Field(None, description="countries or regions worked in (string or null)")
    ai_notes: Optional[str] = Field(None, description="other job-relevant remarks (string or null)")
    confidence: int = Field(0, ge=0, le=100, description="extraction confidence 0-100")
    rationale: Optional[str] = Field(None, description="short explanation of what was and was not found")

    @field_validator(
        "name", "education", "experience_summary", "job_title_desired", "domain",
        "recent_role", "mobility", "ai_notes", "rationale",
        mode="before",
    )
    @classmethod
    def _coerce_text_fields(cls, v: Any) -> Optional[str]:
        return coerce_text(v)

    @field_validator("hard_skills", mode="before")
    @classmethod
    def _coerce_skills(cls, v: Any) -> List[str]:
        return coerce_string_list(v)

    @field_validator("experience", mode="before")
    @classmethod
    def _coerce_experience_entries(cls, v: Any) -> List[Any]:
        return _coerce_experience(v)

    @field_validator("language_level", mode="before")
    @classmethod
    def _coerce_language(cls, v: Any) -> Optional[LanguageLevel]:
        return parse_language_level(v)

    @field_validator("confidence", mode="before")
    @classmethod
    def _coerce_confidence(cls, v: Any) -> int:
        return _coerce_score(v)

    def populated_fields(self) -> Dict[str, Any]:
        """Profile fields that carry a value."""
        populated = {}
        for name in SCALAR_PROFILE_FIELDS + COLLECTION_PROFILE_FIELDS:
            value = getattr(self, name)
            if value:
                populated[name] = value
        return populated

    def is_empty(self) -> bool:
        return not self.populated_fields()


class QualificationInfo(BaseModel):
    """Logistics answers extracted from the qualification reply."""
    availability: Optional[str] = Field(None, description="earliest start date or notice period, as stated")
    accommodation_needed: Optional[str] = Field(None, description="whether agency accommodation is needed, as stated")
    sentiment: Sentiment = Field(Sentiment.UNKNOWN, description="positive|neutral|negative|unknown")

    @field_validator("availability", "accommodation_needed", mode="before")
    @classmethod
    def _coerce_text_fields(cls, v: Any) -> Optional[str]:
        # Stored on the Session as-is, so keep within its field limit
        return clip_text(coerce_text(v))

    @field_validator("sentiment", mode="before")
    @classmethod
    def _coerce_sentiment(cls, v: Any) -> Sentiment:
        text = (coerce_text(v) or "").lower()
        try:
            return Sentiment(text)
        except ValueError:
            return Sentiment.UNKNOWN


class IntentResult(BaseModel):
    """Classifier output for a yes/no gate."""
    intent: Intent = Field(Intent.UNCLEAR, description="AFFIRM|REFUSE|UNCLEAR")

    @field_validator("intent", mode="before")
    @classmethod
    def _coerce_intent(cls, v: Any) -> Intent:
        text = (coerce_text(v) or "").upper()
        aliases = {"YES": Intent.AFFIRM, "NO": Intent.REFUSE}
        if text in aliases:
            return aliases[text]
        try:
            return Intent(text)
        except ValueError:
            return Intent.UNCLEAR


class MatchAssessment(BaseModel):
    """Model-produced sub-scores and justification for one job."""
    skills_score: int = Field(0, ge=0, le=100, description="hard skills sub-score 0-100")
    experience_score: int = Field(0, ge=0, le=100, description="experience sub-score 0-100")
    reasoning: str = Field(..., min_length=1, description="specific, professional justification")

    @field_validator("skills_score", "experience_score", mode="before")
    @classmethod
    def _coerce_scores(cls, v: Any) -> int:
        return _coerce_score(v)

    @field_validator("reasoning", mode="before")
    @classmethod
    def _coerce_reasoning(cls, v: Any) -> Optional[str]:
        return coerce_text(v)
