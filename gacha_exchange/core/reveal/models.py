"""
Reveal State Machine Models

Defines states, transitions and reveal tiers for the pull result sequence.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Sequence
from uuid import uuid4

from ..models import Item


class RevealState(str, Enum):
    """States of the pull result sequence."""

    IDLE = "idle"                         # Ready for the next intent
    SUBMITTING = "submitting"             # Transaction + metadata resolution in progress
    AWAITING_REVEAL = "awaiting_reveal"   # Items held while the reveal plays
    REVEALED = "revealed"                 # Reveal finished, items being committed


class TransitionTrigger(str, Enum):
    """What triggered a state transition."""

    USER_ACTION = "user_action"
    AUTOMATIC = "automatic"
    RESOLVED = "resolved"                 # Items resolved
    PRESENTATION = "presentation"         # Reveal end signal
    ERROR = "error"
    CANCELLED = "cancelled"


class RevealTier(str, Enum):
    """Reveal effect; the value names the animation asset."""

    TOP_TIER = "radiance-multi"
    HIGH_SINGLE = "5star-single"
    MID_SINGLE = "4star-single"
    BASE_SINGLE = "3star-single"
    HIGH_MULTI = "5star-multi"
    BASE_MULTI = "4star-multi"

    def animation(self, base_path: str) -> str:
        return f"{base_path.rstrip('/')}/{self.value}.mp4"


def select_tier(items: Sequence[Item], multi: bool = False) -> RevealTier:
    """
    Pick the reveal effect from the highest resolved rarity.

    Single pulls use four tiers; multi pulls only distinguish whether any
    item reached rarity 5.
    """
    if not items:
        raise ValueError("Cannot select a reveal tier without items")

    highest = max(item.rarity for item in items)
    if multi:
        return RevealTier.HIGH_MULTI if highest >= 5 else RevealTier.BASE_MULTI
    if highest >= 6:
        return RevealTier.TOP_TIER
    if highest == 5:
        return RevealTier.HIGH_SINGLE
    if highest == 4:
        return RevealTier.MID_SINGLE
    return RevealTier.BASE_SINGLE


@dataclass
class StateTransition:
    """Record of a state transition."""

    id: str = field(default_factory=lambda: str(uuid4()))
    from_state: RevealState = RevealState.IDLE
    to_state: RevealState = RevealState.IDLE
    trigger: TransitionTrigger = TransitionTrigger.AUTOMATIC
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    reason: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "fromState": self.from_state.value,
            "toState": self.to_state.value,
            "trigger": self.trigger.value,
            "timestamp": self.timestamp.isoformat(),
            "reason": self.reason,
            "context": self.context,
            "errorMessage": self.error_message,
        }
