"""Cloud Function entry points for MultiBuild.

Provides HTTP endpoints for:
- The pizza oven configurator (calculate, tier options, demo, materials)
- The conversational build planner (chat, session info, reset)

Each endpoint is a thin wrapper: a ``handle_*`` function does the work and
returns ``(payload, status)`` so the same logic serves both Cloud Functions
and the local Flask server.
"""

import asyncio
import json
from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple

import structlog
from firebase_admin import initialize_app
from firebase_functions import https_fn, options

from agents.pizzaoven_agents import QUALITY_OPTIONS, run_demo
from agents.workflow_engine import WorkflowEngine
from config.errors import ErrorCode, MultiBuildError, ValidationError
from config.settings import settings
from services.catalog_service import CatalogService
from utils.agent_logger import configure_logging
from validators.request_validator import validate_calculate_request, validate_chat_request

# Initialize Firebase Admin SDK
try:
    initialize_app()
except ValueError:
    # Already initialized
    pass

configure_logging(settings.log_level)
logger = structlog.get_logger()

Result = Tuple[Dict[str, Any], int]

# ============================================================================
# Helper Functions
# ============================================================================


def _timestamp() -> str:
    return datetime.utcnow().isoformat()


def success_response(data: Any) -> Dict[str, Any]:
    """Build success response."""
    return {"success": True, "data": data, "timestamp": _timestamp()}


def error_response(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Build error response."""
    return {
        "success": False,
        "error": message,
        "code": code,
        "details": details or {},
        "timestamp": _timestamp(),
    }


def get_request_json(req) -> Dict[str, Any]:
    """Extract JSON from request body.

    Raises:
        ValidationError: If JSON is invalid.
    """
    try:
        return req.get_json(force=True, silent=False) or {}
    except Exception as e:
        raise ValidationError(message=f"Invalid JSON in request body: {str(e)}")


def _error_result(error: Exception, event: str) -> Result:
    """Map an exception to an error payload. Only validation errors are 4xx."""
    if isinstance(error, ValidationError):
        return error_response(error.code, error.message, error.details), 400
    if isinstance(error, MultiBuildError):
        logger.error(event, error=error.message, code=error.code)
        return error_response(error.code, error.message, error.details), 500
    logger.exception(event, error=str(error))
    return error_response(ErrorCode.WORKFLOW_ERROR, "Internal server error", {"reason": str(error)}), 500


# ============================================================================
# Pizza Oven Configurator
# ============================================================================


def handle_calculate(body: Any) -> Result:
    """Run the configurator pipeline for ``{area_sqm, material_preference?, quality_option}``."""
    validation = validate_calculate_request(body)
    if not validation.is_valid:
        return error_response(
            ErrorCode.VALIDATION_ERROR,
            "Invalid request",
            {"errors": validation.errors},
        ), 400

    try:
        shopping_list = run_demo(validation.data)
    except Exception as e:
        return _error_result(e, "calculate_error")
    return success_response(shopping_list.model_dump(mode="json")), 200


def handle_options(quality: str, area: Any = None) -> Result:
    """Shopping list for one tier; ``area`` defaults to the baseline footprint."""
    if quality not in QUALITY_OPTIONS:
        return error_response(
            ErrorCode.INVALID_FIELD,
            f"Unknown quality option: {quality}",
            {"allowed": list(QUALITY_OPTIONS)},
        ), 400
    return handle_calculate({"quality_option": quality, "area_sqm": area})


def handle_demo() -> Result:
    try:
        shopping_list = run_demo()
    except Exception as e:
        return _error_result(e, "demo_error")
    return success_response(shopping_list.model_dump(mode="json")), 200


def handle_materials() -> Result:
    """Planner catalog, calculation rules and configurator tiers."""
    return success_response(CatalogService().to_dict()), 200


# ============================================================================
# Conversational Planner
# ============================================================================


async def _chat_async(message: str, session_id: Optional[str], api_key: Optional[str]) -> Dict[str, Any]:
    engine = await WorkflowEngine.create(session_id=session_id, api_key=api_key)
    response = await engine.process_message(message)
    return {
        "response": response.model_dump(mode="json", by_alias=True),
        "session": engine.get_session_info().model_dump(by_alias=True),
    }


async def _session_async(session_id: Optional[str]) -> Dict[str, Any]:
    engine = await WorkflowEngine.create(session_id=session_id)
    return engine.get_session_info().model_dump(by_alias=True)


async def _reset_async(session_id: Optional[str]) -> Dict[str, Any]:
    engine = await WorkflowEngine.create(session_id=session_id)
    info = await engine.reset_session()
    return info.model_dump(by_alias=True)


def handle_chat(body: Any) -> Result:
    """Process one chat message: ``{sessionId?, message, apiKey?}``.

    The API key applies to this request only and is never persisted.
    """
    validation = validate_chat_request(body)
    if not validation.is_valid:
        return error_response(
            ErrorCode.VALIDATION_ERROR,
            "Invalid request",
            {"errors": validation.errors},
        ), 400

    data = validation.data
    logger.info(
        "chat_request_received",
        session_id=data["session_id"],
        has_api_key=data["api_key"] is not None,
        message_length=len(data["message"]),
    )
    try:
        result = asyncio.run(_chat_async(data["message"], data["session_id"], data["api_key"]))
    except Exception as e:
        return _error_result(e, "chat_error")
    return success_response(result), 200


def handle_chat_session(session_id: Optional[str] = None) -> Result:
    try:
        return success_response(asyncio.run(_session_async(session_id or None))), 200
    except Exception as e:
        return _error_result(e, "chat_session_error")


def handle_chat_reset(body: Any) -> Result:
    session_id = body.get("sessionId") if isinstance(body, dict) else None
    try:
        return success_response(asyncio.run(_reset_async(session_id or None))), 200
    except Exception as e:
        return _error_result(e, "chat_reset_error")


# ============================================================================
# CORS Helpers
# ============================================================================

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Max-Age": "3600"
}


def _cors_response() -> https_fn.Response:
    """Return CORS preflight response."""
    return https_fn.Response("", status=204, headers=CORS_HEADERS)


def _json_response(data: dict, status: int = 200) -> https_fn.Response:
    """Return JSON response with CORS headers."""

    def _json_default(o: Any):
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        return str(o)

    return https_fn.Response(
        json.dumps(data, default=_json_default, ensure_ascii=False),
        status=status,
        mimetype="application/json",
        headers=CORS_HEADERS
    )


def _body(req) -> Any:
    try:
        return get_request_json(req)
    except ValidationError:
        return None


# ============================================================================
# HTTP Entry Points
# ============================================================================

ENDPOINT_CONFIG = {
    "timeout_sec": 60,
    "memory": options.MemoryOption.MB_256,
    "region": "us-central1"
}

CHAT_ENDPOINT_CONFIG = {
    "timeout_sec": 120,
    "memory": options.MemoryOption.MB_512,
    "region": "us-central1"
}


@https_fn.on_request(**ENDPOINT_CONFIG)
def calculate(req: https_fn.Request) -> https_fn.Response:
    """Pizza oven shopping list.

    Request body:
    {
        "area_sqm": 1.8,
        "material_preference": "schamott",  // Optional
        "quality_option": "premium"
    }
    """
    if req.method == "OPTIONS":
        return _cors_response()
    try:
        body = get_request_json(req)
    except ValidationError as e:
        return _json_response(error_response(e.code, e.message, e.details), status=400)
    payload, status = handle_calculate(body)
    return _json_response(payload, status=status)


@https_fn.on_request(**ENDPOINT_CONFIG)
def quality_options(req: https_fn.Request) -> https_fn.Response:
    """``GET ?quality=<tier>&area=<m²>``"""
    if req.method == "OPTIONS":
        return _cors_response()
    payload, status = handle_options(req.args.get("quality", ""), req.args.get("area"))
    return _json_response(payload, status=status)


@https_fn.on_request(**ENDPOINT_CONFIG)
def demo(req: https_fn.Request) -> https_fn.Response:
    if req.method == "OPTIONS":
        return _cors_response()
    payload, status = handle_demo()
    return _json_response(payload, status=status)


@https_fn.on_request(**ENDPOINT_CONFIG)
def materials(req: https_fn.Request) -> https_fn.Response:
    if req.method == "OPTIONS":
        return _cors_response()
    payload, status = handle_materials()
    return _json_response(payload, status=status)


@https_fn.on_request(**CHAT_ENDPOINT_CONFIG)
def chat(req: https_fn.Request) -> https_fn.Response:
    """Send one message to the build planner.

    Request body:
    {
        "sessionId": "session-...",  // Optional: resumes the current session
        "message": "I want to build a pizza oven 1m x 1m",
        "apiKey": "gsk_..."  // Optional: enables AI advisory for this request
    }

    Response:
    {
        "success": true,
        "data": {"response": {...}, "session": {...}},
        "timestamp": "..."
    }
    """
    if req.method == "OPTIONS":
        return _cors_response()
    payload, status = handle_chat(_body(req))
    return _json_response(payload, status=status)


@https_fn.on_request(**ENDPOINT_CONFIG)
def chat_session(req: https_fn.Request) -> https_fn.Response:
    """``GET ?sessionId=<id>``"""
    if req.method == "OPTIONS":
        return _cors_response()
    payload, status = handle_chat_session(req.args.get("sessionId"))
    return _json_response(payload, status=status)


@https_fn.on_request(**ENDPOINT_CONFIG)
def chat_reset(req: https_fn.Request) -> https_fn.Response:
    if req.method == "OPTIONS":
        return _cors_response()
    payload, status = handle_chat_reset(_body(req))
    return _json_response(payload, status=status)
