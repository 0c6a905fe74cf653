"""
Job Matching Engine.

Scores a completed candidate profile against a tenant's open positions:

    score = round(0.40 * skills + 0.35 * experience + 0.25 * language)

The skills and experience sub-scores and the written reasoning come from a
model call constrained by an anti-discrimination system prompt. The language
sub-score is computed here on the CEFR ordinal so the same profile always
scores the same against the same requirement.

Every reasoning string is scanned against a lexicon of protected-ground
terms. A hit is recorded on the match as an audit flag and logged; it never
blocks the match.

Output: matches scoring above 50, highest first, at most three.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from src.common.error_handling import ExtractionError
from src.common.schemas import (
    Completeness,
    LanguageLevel,
    MatchAssessment,
    MatchSnapshot,
    Session,
)
from src.common.tenants import TenantConfig
from src.services.extraction_client import ExtractionClient
from src.services.job_sources import Job

logger = logging.getLogger(__name__)

SKILLS_WEIGHT = 0.40
EXPERIENCE_WEIGHT = 0.35
LANGUAGE_WEIGHT = 0.25

MIN_MATCH_SCORE = 50  # exclusive
MAX_MATCHES = 3

LANGUAGE_PENALTY_PER_LEVEL = 40
UNKNOWN_LANGUAGE_SCORE = 50

FORBIDDEN_BIAS_TERMS = [
    # Age
    "old", "young", "youthful", "aged", "generation", "millennial", "boomer",
    "graduate year", "born in", "over 40", "under 25",
    # Gender
    "male", "female", "woman", "man", "she", "he", "mother", "father",
    "girlfriend", "boyfriend", "wife", "husband", "his voice", "her appearance",
    "masculine", "feminine",
    # Ethnicity
    "caucasian", "african", "asian", "hispanic", "white", "black", "brown",
    "nationality", "country of origin", "ethnic", "race", "immigrant",
    # Religion
    "christian", "muslim", "jewish", "hindu", "buddhist", "atheist", "religious",
    "faith", "prayer", "halal", "kosher",
    # Health / disability
    "disabled", "disability", "mental health", "anxiety", "depression", "autism",
    "wheelchair", "blind", "deaf", "medical condition", "sick leave", "pregnant",
    "maternity",
    # Marital / family status
    "married", "single", "divorced", "children", "family status", "dependents",
    "spouse", "household",
    # Appearance
    "attractive", "handsome", "pretty", "ugly", "obese", "thin", "tattoo",
    "piercing", "appearance", "looks",
]

_BIAS_PATTERNS = [
    (term, re.compile(rf"\b{re.escape(term)}\b", re.IGNORECASE))
    for term in FORBIDDEN_BIAS_TERMS
]

ANTI_BIAS_SYSTEM_PROMPTS = {
    "en": """You are a fair and unbiased job matching system.

EU AI ACT COMPLIANCE (Article 10). You MUST NOT take into account or mention:
- age
- gender
- ethnicity or nationality
- religion
- health or disability
- marital or family status
- appearance

YOU MAY EVALUATE ONLY:
- professional skills and certifications
- years and relevance of work experience
- language proficiency

Your reasoning must be free of discriminatory language.""",
    "ro": """Ești un sistem corect și imparțial de potrivire a locurilor de muncă.

CONFORMITATE EU AI ACT (Articolul 10). NU ai voie să iei în considerare sau să menționezi:
- vârsta
- genul
- etnia sau naționalitatea
- religia
- sănătatea sau dizabilitatea
- starea civilă sau familială
- aspectul fizic

POȚI EVALUA DOAR:
- competențe profesionale și certificări
- anii și relevanța experienței
- nivelul de limbă

Scrie motivarea în engleză, fără limbaj discriminatoriu.""",
    "nl": """Je bent een eerlijk en onbevooroordeeld systeem voor het matchen van vacatures.

EU AI ACT (Artikel 10). Je mag NIET kijken naar of verwijzen naar:
- leeftijd
- geslacht
- etniciteit of nationaliteit
- religie
- gezondheid of handicap
- burgerlijke staat of gezinssituatie
- uiterlijk

JE MAG ALLEEN BEOORDELEN:
- vakkennis en certificaten
- jaren en relevantie van werkervaring
- taalvaardigheid

Schrijf de motivatie in het Engels, zonder discriminerende taal.""",
    "de": """Du bist ein faires und unvoreingenommenes Job-Matching-System.

EU AI ACT (Artikel 10). Du DARFST NICHT berücksichtigen oder erwähnen:
- Alter
- Geschlecht
- Ethnizität oder Nationalität
- Religion
- Gesundheit oder Behinderung
- Familienstand
- Aussehen

DU DARFST NUR BEWERTEN:
- berufliche Fähigkeiten und Zertifikate
- Jahre und Relevanz der Berufserfahrung
- Sprachkenntnisse

Schreibe die Begründung auf Englisch, ohne diskriminierende Sprache.""",
}

MATCH_USER_PROMPT = """CANDIDATE PROFILE:
- Skills: {skills}
- Experience: {experience}
- Education: {education}
{assessment_note}
JOB OPENING:
- Title: {title}
- Location: {city}
- Required skills: {required_skills}
- Required experience: {required_experience}+ years
- Nice-to-have skills: {nice_to_have}
- Description: {description}

SCORING RUBRIC (language is scored separately, do not score it):
1. skills_score (0-100):
   - exact matches of required skills: 90-100
   - partial or related matches: 60-80
   - each missing required skill: -20
   - each missing nice-to-have skill: -5
2. experience_score (0-100):
   - compare the candidate's years with the requirement
   - judge how relevant the roles are to this job
   - experience that is not represented in the profile: penalize 30-50

REASONING:
- be specific, e.g. "Has RF Scanner (required) but no SAP (nice-to-have)"
- name what matches and what does not
- never assume a missing skill is "probably" there
- mention only skills, experience and qualifications"""


# ===== PURE HELPERS =====

def find_bias_terms(text: Optional[str]) -> List[str]:
    """
    Return the lexicon terms found in a text on word boundaries.

    >>> find_bias_terms("Candidate can understand the forklift manual")
    []
    >>> find_bias_terms("A young and motivated candidate")
    ['young']
    """
    if not text:
        return []
    return [term for term, pattern in _BIAS_PATTERNS if pattern.search(text)]


def assess_completeness(session: Session) -> Completeness:
    """Grade a profile by how many of the four core fields are populated."""
    populated = session.populated_core_fields()
    if populated == 4:
        return Completeness.COMPLETE
    if populated == 3:
        return Completeness.PARTIAL
    return Completeness.INCOMPLETE


def language_score(candidate: Optional[LanguageLevel], required: Optional[LanguageLevel]) -> int:
    """
    Deterministic language sub-score.

    >>> language_score(LanguageLevel.B1, None)
    100
    >>> language_score(LanguageLevel.A2, LanguageLevel.B2)
    20
    >>> language_score(None, LanguageLevel.A1)
    50
    """
    if required is None:
        return 100
    if candidate is None:
        return UNKNOWN_LANGUAGE_SCORE
    gap = required.rank - candidate.rank
    if gap <= 0:
        return 100
    return max(0, 100 - LANGUAGE_PENALTY_PER_LEVEL * gap)


def combine_scores(skills: int, experience: int, language: int) -> int:
    score = round(SKILLS_WEIGHT * skills + EXPERIENCE_WEIGHT * experience + LANGUAGE_WEIGHT * language)
    return max(0, min(100, score))


# ===== RESULT TYPES =====

@dataclass
class JobMatch:
    """One scored job."""
    job: Job
    score: int
    skills_score: int
    experience_score: int
    language_score: int
    reasoning: str
    bias_flagged: bool = False
    bias_terms: List[str] = field(default_factory=list)

    @property
    def job_id(self) -> str:
        return self.job.id

    def to_snapshot(self) -> MatchSnapshot:
        return MatchSnapshot(job_id=self.job.id, title=self.job.title, city=self.job.city, score=self.score)


@dataclass
class MatchingResult:
    """Outcome of one matching run."""
    candidate_name: str
    total_jobs_analyzed: int
    matches: List[JobMatch]
    completeness: Completeness
    notes: Optional[str] = None

    @property
    def has_bias_flags(self) -> bool:
        return any(match.bias_flagged for match in self.matches)


# ===== ENGINE =====

class JobMatcher:
    """Scores a Session against a list of jobs."""

    def __init__(self, client: ExtractionClient):
        self.client = client

    async def match(self, session: Session, jobs: List[Job], tenant: TenantConfig) -> MatchingResult:
        """
        Score every job and keep the best qualifying ones.

        Args:
            session: Candidate Session
            jobs: Open positions (read-only for the run)
            tenant: Tenant (selects the anti-bias prompt language)

        Returns:
            MatchingResult with at most MAX_MATCHES matches above MIN_MATCH_SCORE,
            ordered by non-increasing score. Equal scores keep the job list order,
            so scores are strictly descending only when they differ.
        """
        completeness = assess_completeness(session)
        logger.info(f"Matching {len(jobs)} jobs (profile {completeness.value})")

        scored: List[JobMatch] = []
        for job in jobs:
            match = await self._score_job(session, job, tenant, completeness)
            if match is not None:
                scored.append(match)

        # sorted() is stable, so ties keep the job list order
        qualifying = sorted(
            (match for match in scored if match.score > MIN_MATCH_SCORE),
            key=lambda match: match.score,
            reverse=True,
        )[:MAX_MATCHES]

        notes = None
        if completeness != Completeness.COMPLETE:
            notes = f"Assessment is {completeness.value}. Some factors may be conservatively scored."

        if qualifying:
            logger.info(f"Top match: {qualifying[0].job.title} ({qualifying[0].score}%)")
        else:
            logger.info("No qualifying matches")

        return MatchingResult(
            candidate_name=session.name or "Unknown",
            total_jobs_analyzed=len(jobs),
            matches=qualifying,
            completeness=completeness,
            notes=notes,
        )

    async def _score_job(
        self,
        session: Session,
        job: Job,
        tenant: TenantConfig,
        completeness: Completeness,
    ) -> Optional[JobMatch]:
        try:
            assessment = await self.client.extract(
                MatchAssessment,
                system_prompt=ANTI_BIAS_SYSTEM_PROMPTS.get(tenant.language, ANTI_BIAS_SYSTEM_PROMPTS["en"]),
                user_content=self._build_prompt(session, job, completeness),
                operation=f"job_match:{job.id}",
            )
        except ExtractionError as e:
            logger.warning(f"Skipping job {job.id}: {e}")
            return None

        lang = language_score(session.language_level, job.required_language_level)
        score = combine_scores(assessment.skills_score, assessment.experience_score, lang)

        bias_terms = find_bias_terms(assessment.reasoning)
        if bias_terms:
            logger.warning(f"[BIAS AUDIT] Reasoning for {job.id} contains: {', '.join(bias_terms)}")

        return JobMatch(
            job=job,
            score=score,
            skills_score=assessment.skills_score,
            experience_score=assessment.experience_score,
            language_score=lang,
            reasoning=assessment.reasoning,
            bias_flagged=bool(bias_terms),
            bias_terms=bias_terms,
        )

    def _build_prompt(self, session: Session, job: Job, completeness: Completeness) -> str:
        note = ""
        if completeness != Completeness.COMPLETE:
            note = f"NOTE: the assessment is {completeness.value}. Score conservatively.\n"
        return MATCH_USER_PROMPT.format(
            skills=", ".join(session.hard_skills) or "(none specified - penalize)",
            experience=session.experience_summary or "(no experience specified - penalize)",
            education=session.education or "(not specified)",
            assessment_note=note,
            title=job.title,
            city=job.city,
            required_skills=", ".join(job.required_skills) or "none",
            required_experience=job.required_experience,
            nice_to_have=", ".join(job.nice_to_have_skills) or "none",
            description=job.description or "-",
        )
