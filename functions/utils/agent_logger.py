"""Workflow Logger for MultiBuild.

Configures structlog and provides highly visible, formatted banners for
session starts, phase transitions, agent output and workflow errors.
"""

import json
import logging
import structlog
from typing import Dict, Any, List, Optional
from datetime import datetime

logger = structlog.get_logger()

# Visual markers for different log types
BANNER_WIDTH = 80
SESSION_BANNER_CHAR = "█"
AGENT_BANNER_CHAR = "═"
PHASE_BANNER_CHAR = "─"


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure structlog processors and the stdlib root level."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=log_level, format="%(message)s")

    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=False,
    )


def _create_banner(char: str, text: str, width: int = BANNER_WIDTH) -> str:
    """Create a centered banner with given character."""
    text_with_spaces = f" {text} "
    padding = (width - len(text_with_spaces)) // 2
    return char * padding + text_with_spaces + char * (width - padding - len(text_with_spaces))


def _format_json(data: Dict[str, Any], indent: int = 2) -> str:
    try:
        return json.dumps(data, indent=indent, default=str, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(data)


def _truncate_large_values(data: Dict[str, Any], max_length: int = 300) -> Dict[str, Any]:
    """Shorten long strings and lists for display."""
    if not isinstance(data, dict):
        return data

    result = {}
    for key, value in data.items():
        if isinstance(value, str) and len(value) > max_length:
            result[key] = value[:max_length] + f"... [truncated {len(value) - max_length} chars]"
        elif isinstance(value, dict):
            result[key] = _truncate_large_values(value, max_length)
        elif isinstance(value, list) and len(value) > 5:
            result[key] = value[:5] + [f"... and {len(value) - 5} more items"]
        else:
            result[key] = value
    return result


def log_session_start(session_id: str, phase: str, restored: bool, has_api_key: bool) -> None:
    """Log engine creation with prominent banner."""
    print("\n")
    print(SESSION_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(SESSION_BANNER_CHAR, "MULTIBUILD SESSION RESTORED" if restored else "MULTIBUILD SESSION STARTED"))
    print(SESSION_BANNER_CHAR * BANNER_WIDTH)
    print(f"║ Session ID  : {session_id}")
    print(f"║ Timestamp   : {datetime.utcnow().isoformat()}")
    print(f"║ Phase       : {phase}")
    print(f"║ AI Advisory : {'enabled' if has_api_key else 'disabled'}")
    print(SESSION_BANNER_CHAR * BANNER_WIDTH)

    logger.info(
        "session_start_logged",
        session_id=session_id,
        phase=phase,
        restored=restored,
        has_api_key=has_api_key
    )


def log_phase_transition(session_id: str, from_phase: str, to_phase: str, reason: str = "") -> None:
    print(_create_banner(PHASE_BANNER_CHAR, f"PHASE: {from_phase.upper()} → {to_phase.upper()}"))
    if reason:
        print(f"│ {reason}")

    logger.info(
        "phase_transition_logged",
        session_id=session_id,
        from_phase=from_phase,
        to_phase=to_phase,
        reason=reason
    )


def log_agent_output(
    agent_name: str,
    session_id: str,
    output: Dict[str, Any],
    truncate: bool = True
) -> None:
    """Log agent output with formatted data."""
    display_output = _truncate_large_values(output) if truncate else output

    print(AGENT_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(AGENT_BANNER_CHAR, f"✓ AGENT OUTPUT: {agent_name.upper()}"))
    print(AGENT_BANNER_CHAR * BANNER_WIDTH)
    print(f"║ Session ID   : {session_id}")
    for line in _format_json(display_output).split("\n"):
        print(f"  {line}")
    print(AGENT_BANNER_CHAR * BANNER_WIDTH)

    logger.info(
        "agent_output_logged",
        agent=agent_name,
        session_id=session_id,
        output_keys=list(output.keys()) if isinstance(output, dict) else None
    )


def log_workflow_error(
    session_id: str,
    phase: str,
    error: str,
    category: str,
    transitions: Optional[List[str]] = None
) -> None:
    """Log an error caught at the top of message processing."""
    print("\n")
    print("!" * BANNER_WIDTH)
    print(_create_banner("!", "✗ WORKFLOW ERROR"))
    print("!" * BANNER_WIDTH)
    print(f"! Session ID   : {session_id}")
    print(f"! Phase        : {phase} (restored)")
    print(f"! Category     : {category}")
    print(f"! Error        : {error}")
    print(f"! Rolled Back  : {', '.join(transitions) if transitions else 'None'}")
    print("!" * BANNER_WIDTH)

    logger.error(
        "workflow_error_logged",
        session_id=session_id,
        phase=phase,
        category=category,
        error=error
    )
