"""
Extraction Client.

Single entry point to the language-model inference service. Given ordered
messages and a target pydantic schema, returns a validated record or raises
ExtractionError. All extraction-style calls (profile, document, intent,
qualification, job matching) go through here.

Flow:
1. Append the JSON contract for the schema to the system prompt
2. Invoke the model in JSON mode (transient failures retried with backoff)
3. Parse the response leniently (json_utils.parse_llm_json)
4. Validate against the schema; field validators coerce known mis-shapes

Usage:
    client = ExtractionClient()
    result = await client.extract(
        ExtractionResult,
        system_prompt=PROFILE_EXTRACTION_SYSTEM,
        user_content="I worked 3 years as a forklift driver",
        operation="profile_extraction",
    )
"""

import json
import logging
from typing import Any, List, Optional, Type, TypeVar, Union

from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel, ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from src.common.config import Config
from src.common.error_handling import ExtractionError
from src.common.json_utils import parse_llm_json
from src.common.llm_factory import create_json_llm

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

# Content is either plain text or a list of multimodal blocks
UserContent = Union[str, List[dict]]

JSON_CONTRACT = """

Respond with ONLY a JSON object using exactly these keys (use null when a value is unknown):
{schema}"""


def describe_schema(schema: Type[BaseModel]) -> str:
    """Render the schema's JSON properties for the prompt."""
    properties = schema.model_json_schema().get("properties", {})
    compact = {}
    for name, spec in properties.items():
        compact[name] = spec.get("description") or spec.get("type") or "value"
    return json.dumps(compact, indent=2)


class ExtractionClient:
    """
    Structured extraction over a chat model.

    The LLM instance is created lazily so constructing the client never
    needs credentials (tests inject a mock via the llm argument).
    """

    def __init__(
        self,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        llm: Optional[Any] = None,
    ):
        self.model = model or Config.EXTRACTION_MODEL
        self.temperature = temperature if temperature is not None else Config.EXTRACTION_TEMPERATURE
        self._llm = llm

    @property
    def llm(self):
        if self._llm is None:
            self._llm = create_json_llm(model=self.model, temperature=self.temperature)
        return self._llm

    @retry(stop=stop_after_attempt(Config.LLM_MAX_ATTEMPTS), wait=wait_exponential(multiplier=1, min=2, max=10))
    async def _call_model(self, messages: list) -> str:
        """Invoke the model; transient failures are retried by tenacity."""
        response = await self.llm.ainvoke(messages)
        content = response.content
        if isinstance(content, list):
            content = "".join(
                block.get("text", "") if isinstance(block, dict) else str(block)
                for block in content
            )
        return content

    async def extract(
        self,
        schema: Type[SchemaT],
        system_prompt: str,
        user_content: UserContent,
        operation: str = "extraction",
    ) -> SchemaT:
        """
        Run one extraction call.

        Args:
            schema: Pydantic model the response must validate against
            system_prompt: Instructions for the model
            user_content: Text, or a list of content blocks (text/image/file)
            operation: Name used in logs and errors

        Returns:
            Validated schema instance

        Raises:
            ExtractionError: If the call fails after retries, or the response
                cannot be parsed or validated
        """
        messages = [
            SystemMessage(content=system_prompt + JSON_CONTRACT.format(schema=describe_schema(schema))),
            HumanMessage(content=user_content),
        ]

        try:
            raw = await self._call_model(messages)
        except Exception as e:
            logger.error(f"[{operation}] Model call failed: {e}")
            raise ExtractionError(operation, f"model call failed: {e}") from e

        try:
            data = parse_llm_json(raw)
        except ValueError as e:
            logger.warning(f"[{operation}] Unparseable response: {e}")
            raise ExtractionError(operation, "response is not a JSON object") from e

        try:
            record = schema.model_validate(data)
        except ValidationError as e:
            logger.warning(f"[{operation}] Response failed validation: {e.error_count()} errors")
            raise ExtractionError(operation, f"response failed validation: {e}") from e

        logger.debug(f"[{operation}] Extracted {schema.__name__}")
        return record
