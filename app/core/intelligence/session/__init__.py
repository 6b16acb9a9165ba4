"""
Session management module.

Dialogue sessions are held in memory by SessionStore and expire after a
period of inactivity.
"""

from .state import (
    DialogueStep,
    can_transition,
    get_valid_transitions,
    is_terminal_step,
    is_collecting_step,
)
from .models import DialogueSession
from .store import SessionStore, get_session_store

__all__ = [
    # State
    "DialogueStep",
    "can_transition",
    "get_valid_transitions",
    "is_terminal_step",
    "is_collecting_step",
    # Models
    "DialogueSession",
    # Store
    "SessionStore",
    "get_session_store",
]
