"""
LLM-based receipt structuring supporting multiple providers (OpenAI, Anthropic, Azure OpenAI).
"""

import datetime as dt
import json
import os
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import ParseError
from .models import LineItem, Record, clamp_confidence
from .parsers import normalize_transaction_date, parse_number
from .utils import new_record_id


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    AZURE_OPENAI = "azure-openai"


PROVIDER_CHOICES = [p.value for p in LLMProvider]

# Default models for each provider
DEFAULT_MODELS = {
    LLMProvider.ANTHROPIC: "claude-3-5-haiku-20241022",
    LLMProvider.OPENAI: "gpt-4o-mini",
    LLMProvider.AZURE_OPENAI: "gpt-4o-mini",
}

# Receipts with many line items need room in the response
MAX_RESPONSE_TOKENS = 2000

# Keep the prompt bounded; long receipts rarely need more
MAX_TEXT_CHARS = 6000

# Lazy import clients
_clients = {}


def _get_anthropic_client():
    """Get or create Anthropic client (lazy initialization)."""
    if "anthropic" not in _clients:
        import anthropic
        _clients["anthropic"] = anthropic.Anthropic()  # Uses ANTHROPIC_API_KEY env var
    return _clients["anthropic"]


def _get_openai_client():
    """Get or create OpenAI client (lazy initialization)."""
    if "openai" not in _clients:
        import openai
        _clients["openai"] = openai.OpenAI()  # Uses OPENAI_API_KEY env var
    return _clients["openai"]


def _get_azure_openai_client():
    """Get or create Azure OpenAI client (lazy initialization)."""
    if "azure" not in _clients:
        import openai
        _clients["azure"] = openai.AzureOpenAI(
            api_key=os.getenv("AZURE_OPENAI_API_KEY"),
            api_version=os.getenv("AZURE_OPENAI_API_VERSION", "2024-02-15-preview"),
            azure_endpoint=os.getenv("AZURE_OPENAI_ENDPOINT")
        )
    return _clients["azure"]


def _call_anthropic(prompt: str, model: str) -> str:
    client = _get_anthropic_client()
    response = client.messages.create(
        model=model,
        max_tokens=MAX_RESPONSE_TOKENS,
        temperature=0.0,
        messages=[{"role": "user", "content": prompt}]
    )
    return response.content[0].text.strip()


def _call_openai(prompt: str, model: str) -> str:
    client = _get_openai_client()
    response = client.chat.completions.create(
        model=model,
        messages=[{"role": "user", "content": prompt}],
        max_tokens=MAX_RESPONSE_TOKENS,
        temperature=0.0,
        response_format={"type": "json_object"}
    )
    return (response.choices[0].message.content or "").strip()


def _call_azure_openai(prompt: str, model: str) -> str:
    client = _get_azure_openai_client()
    response = client.chat.completions.create(
        model=model,
        messages=[{"role": "user", "content": prompt}],
        max_tokens=MAX_RESPONSE_TOKENS,
        temperature=0.0,
        response_format={"type": "json_object"}
    )
    return (response.choices[0].message.content or "").strip()


def build_prompt(ocr_text: str, today: Optional[dt.date] = None) -> str:
    """Build the structuring prompt for raw OCR text."""
    today = today or dt.date.today()
    return f"""You are a receipt parsing engine. Below is raw text extracted from a receipt using OCR.
Structure this text into JSON.

RAW OCR TEXT (may contain errors):
\"\"\"
{ocr_text[:MAX_TEXT_CHARS]}
\"\"\"

Instructions:
1. Identify the merchant name (the business that issued the receipt).
2. Extract the transaction date as YYYY-MM-DD. If the year is missing, assume {today.year}.
3. Extract the currency symbol or code (e.g. $, USD, EUR).
4. Extract the final total amount paid.
5. Extract individual line items with quantity and price.
6. Determine a general category (e.g. Food, Transport, Utilities).
7. Give a confidence score from 0 to 100 based on data completeness.

Return ONLY a JSON object (no markdown, no explanation):
{{
  "merchantName": "Store Name",
  "transactionDate": "{today.isoformat()}",
  "currency": "$",
  "totalAmount": 12.34,
  "category": "Food",
  "items": [{{"description": "Item", "qty": 1, "price": 12.34}}],
  "confidenceScore": 90
}}"""


def _strip_code_fence(response_text: str) -> str:
    """Extract JSON from a Markdown code block if present."""
    if not response_text.startswith("```"):
        return response_text
    json_lines = []
    in_code = False
    for line in response_text.split("\n"):
        if line.startswith("```"):
            in_code = not in_code
            continue
        if in_code:
            json_lines.append(line)
    return "\n".join(json_lines)


def _parse_items(raw_items: Any) -> List[LineItem]:
    if not isinstance(raw_items, list):
        raise ParseError("'items' must be a list")

    items = []
    for i, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ParseError(f"Item {i} is not an object")
        qty = parse_number(raw.get("qty"))
        price = parse_number(raw.get("price"))
        if price is not None and price < 0:
            raise ParseError(f"Item {i} has a negative price")
        items.append(LineItem(
            description=str(raw.get("description") or "").strip(),
            qty=1 if qty is None else qty,
            price=price or 0.0,
        ))
    return items


def parse_structured_response(response_text: str) -> Record:
    """
    Validate a structuring response and turn it into a new, unsynced record.

    Raises:
        ParseError: if the response is not JSON or lacks the required
            fields (merchantName, totalAmount, items).
    """
    try:
        result = json.loads(_strip_code_fence(response_text.strip()))
    except json.JSONDecodeError as e:
        raise ParseError(f"Structuring service returned invalid JSON: {e}") from e
    if not isinstance(result, dict):
        raise ParseError("Structuring service did not return a JSON object")

    missing = [k for k in ("merchantName", "totalAmount", "items") if k not in result]
    if missing:
        raise ParseError(f"Missing required field(s): {', '.join(missing)}")

    merchant = str(result.get("merchantName") or "").strip()
    if not merchant:
        raise ParseError("Merchant name is empty")

    total = parse_number(result.get("totalAmount"))
    if total is None:
        raise ParseError(f"Invalid total amount: {result.get('totalAmount')!r}")
    if total < 0:
        raise ParseError("Total amount is negative")

    return Record(
        id=new_record_id(),
        merchant_name=merchant,
        transaction_date=normalize_transaction_date(result.get("transactionDate")),
        currency=str(result.get("currency") or "").strip(),
        total_amount=total,
        category=str(result.get("category") or "").strip() or "Uncategorized",
        confidence_score=clamp_confidence(result.get("confidenceScore")),
        items=tuple(_parse_items(result.get("items"))),
        synced=False,
    )


def structure_receipt(ocr_text: str, provider: str = "openai",
                      model: Optional[str] = None) -> Record:
    """
    Turn raw OCR text into a structured record using an LLM.

    Args:
        ocr_text: Full OCR text from receipt
        provider: LLM provider to use ("openai", "anthropic", "azure-openai") - default: openai
        model: Model name (uses default for provider if not specified)

    Returns:
        A new Record with a fresh id and synced=False

    Raises:
        ParseError: if the provider call fails or the response is unusable
    """
    try:
        provider = LLMProvider(provider)
    except ValueError:
        raise ParseError(f"Unsupported LLM provider: {provider}") from None

    if model is None:
        model = DEFAULT_MODELS[provider]

    prompt = build_prompt(ocr_text)
    try:
        if provider == LLMProvider.ANTHROPIC:
            response_text = _call_anthropic(prompt, model)
        elif provider == LLMProvider.OPENAI:
            response_text = _call_openai(prompt, model)
        else:
            response_text = _call_azure_openai(prompt, model)
    except ImportError as e:
        raise ParseError(f"LLM client for {provider.value} is not installed: {e}") from e
    except Exception as e:
        raise ParseError(f"Structuring request to {provider.value} failed: {e}") from e

    if not response_text:
        raise ParseError(f"No response from {provider.value}")

    return parse_structured_response(response_text)


def result_summary(record: Record) -> Dict[str, Any]:
    """Short dict of the structured fields, for verbose output."""
    return {
        "merchant": record.merchant_name,
        "date": record.transaction_date,
        "total": record.total_amount,
        "items": len(record.items),
        "confidence": record.confidence_score,
    }
