"""
Services for the candidate intake assistant.

Each service owns one step of the conversation: extraction, document
ingestion, merging, matching, dispatch, and the orchestrator that drives
them per inbound event.
"""

from src.services.conversation_orchestrator import (
    ConversationOrchestrator,
    InboundEvent,
    TurnResult,
)
from src.services.dispatch_manager import DispatchManager, DispatchSummary
from src.services.document_pipeline import DocumentPipeline, MediaReference, detect_media
from src.services.extraction_client import ExtractionClient
from src.services.intent_classifier import IntentClassifier, keyword_intent
from src.services.job_matcher import JobMatch, JobMatcher, MatchingResult
from src.services.merge_engine import MergeOutcome, merge_extraction
from src.services.profile_extractor import ProfileExtractor
from src.services.retention_sweeper import RetentionSweeper
from src.services.session_queue import SessionTaskQueue

__all__ = [
    # Orchestration
    "ConversationOrchestrator",
    "InboundEvent",
    "TurnResult",
    "SessionTaskQueue",
    "RetentionSweeper",
    # Extraction
    "ExtractionClient",
    "IntentClassifier",
    "keyword_intent",
    "ProfileExtractor",
    "DocumentPipeline",
    "MediaReference",
    "detect_media",
    "MergeOutcome",
    "merge_extraction",
    # Matching & dispatch
    "JobMatch",
    "JobMatcher",
    "MatchingResult",
    "DispatchManager",
    "DispatchSummary",
]
