"""Utility modules for MultiBuild functions."""

from utils.agent_logger import (
    configure_logging,
    log_session_start,
    log_phase_transition,
    log_agent_output,
    log_workflow_error,
)

__all__ = [
    "configure_logging",
    "log_session_start",
    "log_phase_transition",
    "log_agent_output",
    "log_workflow_error",
]
