# storechat/ai_intent.py
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence

from openai import AsyncOpenAI

from .config import settings

_client: Optional[AsyncOpenAI] = None

LANGUAGE_NAMES = {"en": "English", "hi": "Hindi", "te": "Telugu", "ta": "Tamil", "kn": "Kannada"}

SYSTEM = """You extract grocery orders for an Indian kirana store.
Return ONE JSON object that matches the provided JSON schema.
Rules:
- For a dish ("chicken curry for 4 people") list its ingredients with realistic quantities for the servings.
- For a grocery list ("2 kg rice, 1 litre milk") copy the items and quantities as given.
- Prefer names from the store's item list; never invent quantities the customer did not imply.
- Units: g, kg, ml, litre, piece, dozen. If no unit is given, leave unit null.
- Removal, confirmation or cancellation messages are intent "unclear" with no items.
"""

# JSON Schema for Structured Outputs
EXTRACTION_SCHEMA: Dict[str, Any] = {
    "name": "grocery_extraction",
    "schema": {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "intent": {
                "type": "string",
                "enum": ["dish_order", "grocery_order", "mixed_order", "unclear"],
            },
            "dish_name": {"type": ["string", "null"]},
            "servings": {"type": ["integer", "null"]},
            "items": {
                "type": "array",
                "items": {
                    "type": "object",
                    "additionalProperties": False,
                    "properties": {
                        "name": {"type": "string"},
                        "quantity": {"type": "number"},
                        "unit": {"type": ["string", "null"]},
                    },
                    "required": ["name", "quantity", "unit"],
                },
            },
        },
        "required": ["intent", "dish_name", "servings", "items"],
    },
    "strict": True,
}


def _get_client() -> AsyncOpenAI:
    global _client
    if _client is None:
        _client = AsyncOpenAI(api_key=settings.openai_api_key)
    return _client


async def extract_items_llm(message: str, catalog_names: Sequence[str], language: str = "en") -> Dict[str, Any]:
    payload = {
        "message": message,
        "language": LANGUAGE_NAMES.get((language or "en")[:2], "English"),
        "store_items": list(catalog_names)[:200],  # cap
    }

    resp = await _get_client().chat.completions.create(
        model=settings.openai_model,
        messages=[
            {"role": "system", "content": SYSTEM},
            {"role": "user", "content": json.dumps(payload, ensure_ascii=False)},
        ],
        response_format={"type": "json_schema", "json_schema": EXTRACTION_SCHEMA},
    )
    return json.loads(resp.choices[0].message.content or "{}")


def extraction_items(result: Dict[str, Any]) -> List[Dict[str, Any]]:
    """detected_items from an extraction result; empty for "unclear"."""
    if not isinstance(result, dict) or result.get("intent") == "unclear":
        return []
    items = result.get("items")
    return [x for x in items if isinstance(x, dict)] if isinstance(items, list) else []
