"""
Unit tests for src/services/intent_classifier.py

Tests the yes/no gate classifier and its keyword fallback.
"""

import pytest

from src.common.error_handling import ExtractionError
from src.common.schemas import Intent, IntentResult
from src.services.intent_classifier import IntentClassifier, keyword_intent


# ===== TESTS: Keyword Fallback =====

class TestKeywordIntent:
    """Tests for the keyword-only classifier."""

    @pytest.mark.parametrize("text", ["Da", "yes please", "OK", "Sunt de acord", "ja", "akkoord"])
    def test_affirm(self, text):
        assert keyword_intent(text) == Intent.AFFIRM

    @pytest.mark.parametrize("text", ["Nu", "no thanks", "nee", "nein", "refuz"])
    def test_refuse(self, text):
        assert keyword_intent(text) == Intent.REFUSE

    def test_mixed_signals_are_unclear(self):
        """Both affirming and refusing words give UNCLEAR."""
        assert keyword_intent("nu sunt de acord") == Intent.UNCLEAR

    def test_no_signal_is_unclear(self):
        assert keyword_intent("what is this about?") == Intent.UNCLEAR
        assert keyword_intent("") == Intent.UNCLEAR
        assert keyword_intent(None) == Intent.UNCLEAR

    def test_word_boundaries(self):
        """'nu' inside another word does not count as refusal."""
        assert keyword_intent("numai da") == Intent.AFFIRM


# ===== TESTS: Model Classification =====

class TestIntentClassifier:
    """Tests for the model-backed classifier."""

    @pytest.mark.asyncio
    async def test_uses_model_result(self, mock_extraction_client):
        """The model's label is returned when the call succeeds."""
        mock_extraction_client.extract.return_value = IntentResult(intent=Intent.REFUSE)
        classifier = IntentClassifier(mock_extraction_client)

        intent = await classifier.classify("hmm, mai bine nu", question="Do you agree?")

        assert intent == Intent.REFUSE
        kwargs = mock_extraction_client.extract.call_args.kwargs
        assert kwargs["operation"] == "intent_classification"
        assert "Do you agree?" in kwargs["user_content"]

    @pytest.mark.asyncio
    async def test_falls_back_to_keywords_on_failure(self, mock_extraction_client):
        """A failed call uses the keyword classifier."""
        mock_extraction_client.extract.side_effect = ExtractionError("intent_classification", "timeout")
        classifier = IntentClassifier(mock_extraction_client)

        assert await classifier.classify("Da, accept") == Intent.AFFIRM

    @pytest.mark.asyncio
    async def test_empty_text_skips_model(self, mock_extraction_client):
        """Empty replies are UNCLEAR without a model call."""
        classifier = IntentClassifier(mock_extraction_client)

        assert await classifier.classify("   ") == Intent.UNCLEAR
        mock_extraction_client.extract.assert_not_called()
