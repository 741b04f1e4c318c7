"""
Pull result sequencing.

Holds resolved pull results until the reveal presentation has finished,
then releases them to the view state.

Usage:
    sequencer = ResultSequencer(orchestrator, reader, resolver, view, presenter)
    items = await sequencer.pull(account, multi=True)
    # presenter calls sequencer.on_reveal_end() when its animation ends
"""

from .models import RevealState, RevealTier, StateTransition, TransitionTrigger, select_tier
from .sequencer import ResultSequencer, RevealPresenter

__all__ = [
    "ResultSequencer",
    "RevealPresenter",
    "RevealState",
    "RevealTier",
    "StateTransition",
    "TransitionTrigger",
    "select_tier",
]
