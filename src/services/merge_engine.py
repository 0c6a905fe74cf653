"""
Merge Engine.

Reconciles an ExtractionResult into a Session without regressing data the
Session already holds:

- Scalar fields are adopted only when the Session field is empty.
- Collection fields (skills, structured experience) are adopted wholesale,
  and only when the Session collection is empty. There is no element-wise
  union, so repeated passes never accumulate near-duplicate entries.
- The merged record is re-validated against the full Session schema. If it
  fails, the merge is discarded and the original Session is returned with a
  warning.

Usage:
    outcome = merge_extraction(session, result)
    if outcome.changed:
        store.save(outcome.session)
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from pydantic import ValidationError

from src.common.schemas import (
    COLLECTION_PROFILE_FIELDS,
    SCALAR_PROFILE_FIELDS,
    ExtractionResult,
    Session,
)

logger = logging.getLogger(__name__)


@dataclass
class MergeOutcome:
    """
    Result of a merge.

    Attributes:
        session: Merged Session, or the untouched original when nothing was
            adopted or validation failed
        adopted_fields: Names of the fields taken from the extraction
        warning: Set when the merged record failed validation
    """
    session: Session
    adopted_fields: List[str] = field(default_factory=list)
    warning: Optional[str] = None

    @property
    def changed(self) -> bool:
        return bool(self.adopted_fields) and self.warning is None


def merge_extraction(session: Session, result: Optional[ExtractionResult]) -> MergeOutcome:
    """
    Merge an extraction result into a session.

    Args:
        session: Current Session (not modified)
        result: Extraction to merge (None is a no-op)

    Returns:
        MergeOutcome with the merged copy or the original session
    """
    if result is None:
        return MergeOutcome(session=session)

    merged = session.model_dump()
    adopted: List[str] = []

    for name in SCALAR_PROFILE_FIELDS:
        value = getattr(result, name)
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        if session.is_field_empty(name):
            merged[name] = value
            adopted.append(name)

    for name in COLLECTION_PROFILE_FIELDS:
        value = getattr(result, name)
        if not value:
            continue
        if session.is_field_empty(name):
            merged[name] = [item.model_dump() if hasattr(item, "model_dump") else item for item in value]
            adopted.append(name)

    if not adopted:
        return MergeOutcome(session=session)

    try:
        merged_session = Session.model_validate(merged)
    except ValidationError as e:
        warning = f"Merge discarded, merged record failed validation ({e.error_count()} errors)"
        logger.warning(f"{warning}: fields={adopted}")
        return MergeOutcome(session=session, warning=warning)

    merged_session.touch()
    logger.info(f"Merged fields {adopted} (confidence {result.confidence})")
    return MergeOutcome(session=merged_session, adopted_fields=adopted)
