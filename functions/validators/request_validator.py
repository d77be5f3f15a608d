"""HTTP request body validation.

Checks the shape of incoming JSON before it reaches the agents. Range checks
on the pizza oven footprint stay in RequirementsAgent, which owns the limits.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog

from agents.pizzaoven_agents import QUALITY_OPTIONS

logger = structlog.get_logger(__name__)

# Longest chat message accepted by the chat endpoint
MAX_MESSAGE_LENGTH = 4000


@dataclass
class ValidationResult:
    """Result of request body validation."""
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    data: Dict[str, Any] = field(default_factory=dict)

    def add_error(self, message: str) -> None:
        self.is_valid = False
        self.errors.append(message)


def _optional_string(result: ValidationResult, body: Dict[str, Any], key: str) -> Optional[str]:
    value = body.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        result.add_error(f"{key} must be a string")
        return None
    return value.strip() or None


def validate_calculate_request(body: Any) -> ValidationResult:
    """Validate a ``POST /calculate`` body.

    Missing fields are allowed (defaults apply later); wrong types and unknown
    quality tiers are not.
    """
    result = ValidationResult()
    if body is None:
        body = {}
    if not isinstance(body, dict):
        result.add_error("Request body must be a JSON object")
        return result

    quality = body.get("quality_option")
    if quality is not None and quality not in QUALITY_OPTIONS:
        result.add_error(f"quality_option must be one of: {', '.join(QUALITY_OPTIONS)}")

    area = body.get("area_sqm")
    if area is not None and area != "":
        if isinstance(area, bool):
            result.add_error("area_sqm must be a number")
        else:
            try:
                area = float(area)
            except (TypeError, ValueError):
                result.add_error("area_sqm must be a number")
            else:
                if not math.isfinite(area):
                    result.add_error("area_sqm must be a finite number")

    preference = _optional_string(result, body, "material_preference")

    if result.is_valid:
        result.data = {
            "area_sqm": area if area != "" else None,
            "material_preference": preference,
            "quality_option": quality,
        }
    else:
        logger.warning("calculate_request_invalid", errors=result.errors)
    return result


def validate_chat_request(body: Any) -> ValidationResult:
    """Validate a ``POST /chat`` body: ``{sessionId?, message, apiKey?}``."""
    result = ValidationResult()
    if not isinstance(body, dict):
        result.add_error("Request body must be a JSON object")
        return result

    message = body.get("message")
    if not isinstance(message, str) or not message.strip():
        result.add_error("message is required")
    elif len(message) > MAX_MESSAGE_LENGTH:
        result.add_error(f"message must be at most {MAX_MESSAGE_LENGTH} characters")

    session_id = _optional_string(result, body, "sessionId")
    api_key = _optional_string(result, body, "apiKey")

    if result.is_valid:
        result.data = {
            "message": message.strip(),
            "session_id": session_id,
            "api_key": api_key,
            "has_api_key": "apiKey" in body,
        }
    else:
        logger.warning("chat_request_invalid", errors=result.errors)
    return result
