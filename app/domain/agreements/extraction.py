"""
Pay-rate extraction from enterprise agreement documents.

The workflow depends only on ``RateExtractionService``; the default adapter
asks Claude (through LangChain) to return the rate table as JSON.
"""
import json
import logging
import re
from typing import List, Protocol

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import ValidationError

from app.api.schemas.shared import ExtractedPayRate
from app.core.config import settings
from app.domain.errors import ExtractionServiceError

logger = logging.getLogger(__name__)


class RateExtractionService(Protocol):
    def extract_rates(self, document: bytes, document_name: str) -> List[ExtractedPayRate]: ...


RATE_EXTRACTION_PROMPT = """You extract pay rates from Australian enterprise agreements.

Return ONLY a JSON array inside a ```json code block. Each element must have:
- "classification": the classification or level name, as written in the document
- "rate": the hourly rate as a number without currency symbols
- "effective_date": the date the rate applies from, formatted YYYY-MM-DD
- "notes": optional short note (e.g. "first year apprentice"), or null

If the document contains no pay rates, return an empty array."""


def decode_document(document: bytes, document_name: str) -> str:
    """
    Return the document as text.

    Raises:
        ExtractionServiceError: empty or non-text content
    """
    if not document:
        raise ExtractionServiceError(f"Document '{document_name}' is empty")
    for encoding in ("utf-8-sig", "cp1252"):
        try:
            text = document.decode(encoding)
            break
        except UnicodeDecodeError:
            continue
    else:
        raise ExtractionServiceError(f"Document '{document_name}' is not readable text")
    if "\x00" in text or not text.strip():
        raise ExtractionServiceError(f"Document '{document_name}' is not readable text")
    return text


def parse_rates_response(content: str) -> List[ExtractedPayRate]:
    """
    Parse the model's reply into validated rates.

    Raises:
        ExtractionServiceError: no JSON array, or an element fails validation
    """
    match = re.search(r'```(?:json)?\s*(.*?)\s*```', content, re.DOTALL | re.IGNORECASE)
    payload = match.group(1) if match else content.strip()
    try:
        items = json.loads(payload)
    except json.JSONDecodeError as e:
        raise ExtractionServiceError(f"Could not read rates from extraction response: {e}")
    if not isinstance(items, list):
        raise ExtractionServiceError("Extraction response is not a list of rates")

    try:
        return [ExtractedPayRate(**item) for item in items]
    except (TypeError, ValidationError) as e:
        raise ExtractionServiceError(f"Extraction returned an invalid rate: {e}")


def _response_text(content) -> str:
    if isinstance(content, str):
        return content
    # Content blocks: keep the text parts only
    return "".join(
        block.get("text", "") if isinstance(block, dict) else str(block)
        for block in content
    )


class AnthropicRateExtractor:
    """``RateExtractionService`` backed by ``ChatAnthropic``."""

    def __init__(self, model: str = None, api_key: str = None):
        self.model = model or settings.extraction_model
        self.api_key = (api_key if api_key is not None else settings.anthropic_api_key or "").strip()

    def _client(self) -> ChatAnthropic:
        if not self.api_key:
            raise ExtractionServiceError(
                "Anthropic API key not configured. Set ANTHROPIC_API_KEY in your environment."
            )
        return ChatAnthropic(
            model=self.model,
            api_key=self.api_key,
            temperature=0,
            max_tokens=4096,
            timeout=settings.extraction_timeout_seconds,
        )

    def extract_rates(self, document: bytes, document_name: str) -> List[ExtractedPayRate]:
        text = decode_document(document, document_name)
        limit = settings.extraction_max_document_chars
        if len(text) > limit:
            logger.info("Truncating %s from %d to %d characters for extraction", document_name, len(text), limit)
            text = text[:limit]

        messages = [
            SystemMessage(content=RATE_EXTRACTION_PROMPT),
            HumanMessage(content=f"Document: {document_name}\n\n{text}"),
        ]
        try:
            response = self._client().invoke(messages)
        except ExtractionServiceError:
            raise
        except Exception as e:
            logger.error("Rate extraction call failed for %s: %s", document_name, e)
            raise ExtractionServiceError(f"Extraction service failed: {e}") from e

        rates = parse_rates_response(_response_text(response.content))
        logger.info("Extracted %d rates from %s", len(rates), document_name)
        return rates
