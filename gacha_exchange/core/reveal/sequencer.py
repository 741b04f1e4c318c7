"""
Result Sequencer

Drives a pull from submission to display: submit, resolve every item,
play the reveal, and only then hand the items to the view state.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Coroutine, Dict, List, Optional, Protocol, Set

from ..collection.reader import CollectionReader
from ..collection.store import ViewState
from ..errors import InvalidTransitionError
from ..execution.orchestrator import TransactionOrchestrator
from ..metadata.resolver import MetadataResolver
from ..models import Item, MultiPull, Pull
from .models import RevealState, RevealTier, StateTransition, TransitionTrigger, select_tier


TransitionCallback = Callable[[StateTransition], Coroutine[Any, Any, None]]


class RevealPresenter(Protocol):
    """Presentation side of the reveal.

    The presenter must call ``ResultSequencer.on_reveal_end()`` exactly once
    after its visual sequence completes.
    """

    def on_reveal_start(self, tier: RevealTier, item_count: int) -> Optional[Awaitable[None]]:
        ...


class ResultSequencer:
    """
    Pull result state machine.

    IDLE -> SUBMITTING -> AWAITING_REVEAL -> REVEALED -> IDLE

    - Items are never committed before the reveal end signal
    - The reveal never starts before every item resolved
    - A failure before AWAITING_REVEAL returns to IDLE with nothing committed
    """

    TRANSITIONS: Dict[RevealState, Set[RevealState]] = {
        RevealState.IDLE: {
            RevealState.SUBMITTING,
        },
        RevealState.SUBMITTING: {
            RevealState.AWAITING_REVEAL,
            RevealState.IDLE,           # Orchestration or resolution failed
        },
        RevealState.AWAITING_REVEAL: {
            RevealState.REVEALED,
            RevealState.IDLE,           # Presenter failed or session reset
        },
        RevealState.REVEALED: {
            RevealState.IDLE,
        },
    }

    def __init__(
        self,
        orchestrator: TransactionOrchestrator,
        reader: CollectionReader,
        resolver: MetadataResolver,
        store: ViewState,
        presenter: Optional[RevealPresenter] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.orchestrator = orchestrator
        self.reader = reader
        self.resolver = resolver
        self.store = store
        self.presenter = presenter
        self.logger = logger or logging.getLogger(__name__)

        self._state = RevealState.IDLE
        self.history: List[StateTransition] = []
        self._transition_callbacks: List[TransitionCallback] = []

        self._held: List[Item] = []
        self._reveal_done: Optional[asyncio.Future] = None
        self.current_tier: Optional[RevealTier] = None
        self._run = 0

    @property
    def current_state(self) -> RevealState:
        return self._state

    @property
    def held_items(self) -> List[Item]:
        """Items resolved but not yet released to the view state."""
        return list(self._held)

    def can_transition_to(self, to_state: RevealState) -> bool:
        return to_state in self.TRANSITIONS.get(self._state, set())

    def register_transition_callback(self, callback: TransitionCallback) -> None:
        """Register a callback to be called on any transition."""
        self._transition_callbacks.append(callback)

    def _record(
        self,
        to_state: RevealState,
        trigger: TransitionTrigger,
        reason: Optional[str],
        context: Optional[Dict[str, Any]],
        error_message: Optional[str],
    ) -> StateTransition:
        if not self.can_transition_to(to_state):
            raise InvalidTransitionError(
                from_state=self._state,
                to_state=to_state,
                message=f"Invalid transition from {self._state.value} to {to_state.value}. "
                        f"Allowed: {sorted(s.value for s in self.TRANSITIONS.get(self._state, set()))}",
            )

        transition = StateTransition(
            from_state=self._state,
            to_state=to_state,
            trigger=trigger,
            reason=reason,
            context=context or {},
            error_message=error_message,
        )
        self._state = to_state
        self.history.append(transition)

        self.logger.info(
            f"Reveal: {transition.from_state.value} -> {to_state.value}"
            f"{f' ({reason})' if reason else ''}"
        )
        return transition

    async def transition_to(
        self,
        to_state: RevealState,
        trigger: TransitionTrigger = TransitionTrigger.AUTOMATIC,
        reason: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        error_message: Optional[str] = None,
    ) -> StateTransition:
        """
        Transition to a new state.

        Raises:
            InvalidTransitionError: If transition is not allowed
        """
        transition = self._record(to_state, trigger, reason, context, error_message)

        for callback in self._transition_callbacks:
            try:
                await callback(transition)
            except Exception as e:
                self.logger.error(f"Transition callback error: {e}")

        return transition

    def _abandon(self, reason: str) -> None:
        """Return to IDLE synchronously, dropping held items (cancellation path)."""
        self._held = []
        self._reveal_done = None
        self.current_tier = None
        if self._state != RevealState.IDLE:
            self._record(RevealState.IDLE, TransitionTrigger.CANCELLED, reason, None, None)

    def _ensure_current(self, run: int) -> None:
        """Stop a pull whose sequence was reset while it was suspended."""
        if run != self._run:
            raise asyncio.CancelledError("Pull abandoned by sequencer reset")

    async def pull(self, account: str, multi: bool = False) -> List[Item]:
        """
        Run one pull intent through the whole sequence.

        Returns the committed items once the reveal has ended. Failures
        before the reveal propagate after the machine is back in IDLE.
        A pull outlived by ``reset()`` raises ``CancelledError`` and leaves
        the machine, held items and view state alone.
        """
        if self._state != RevealState.IDLE:
            raise InvalidTransitionError(
                from_state=self._state,
                to_state=RevealState.SUBMITTING,
                message="A pull is already in progress",
            )

        operation = MultiPull() if multi else Pull()
        run = self._run
        await self.transition_to(
            RevealState.SUBMITTING,
            trigger=TransitionTrigger.USER_ACTION,
            reason=operation.describe(),
        )

        try:
            self._ensure_current(run)
            receipt = await self.orchestrator.execute(operation, account)
            self._ensure_current(run)
            raw_identifiers = await self.reader.identifiers(receipt.token_ids)
            self._ensure_current(run)
            items = await self.resolver.resolve(raw_identifiers)
            self._ensure_current(run)
        except asyncio.CancelledError:
            if run == self._run:
                self._abandon("Pull cancelled")
            raise
        except Exception as e:
            self._ensure_current(run)
            await self.transition_to(
                RevealState.IDLE,
                trigger=TransitionTrigger.ERROR,
                reason="Pull failed",
                error_message=str(e),
            )
            raise

        tier = select_tier(items, multi=multi)
        reveal_done = asyncio.get_running_loop().create_future()
        self._held = items
        self.current_tier = tier
        self._reveal_done = reveal_done

        try:
            await self.transition_to(
                RevealState.AWAITING_REVEAL,
                trigger=TransitionTrigger.RESOLVED,
                reason=f"Reveal {tier.value}",
                context={"tier": tier.value, "token_ids": [item.id for item in items]},
            )
            self._ensure_current(run)
            await self._start_presentation(tier, len(items))
            await reveal_done
            self._ensure_current(run)
        except asyncio.CancelledError:
            if run == self._run:
                self._abandon("Reveal cancelled")
            raise
        except Exception as e:
            self._ensure_current(run)
            self._held = []
            self._reveal_done = None
            await self.transition_to(
                RevealState.IDLE,
                trigger=TransitionTrigger.ERROR,
                reason="Reveal failed",
                error_message=str(e),
            )
            raise

        await self.transition_to(
            RevealState.REVEALED,
            trigger=TransitionTrigger.PRESENTATION,
            reason="Reveal finished",
        )
        self._ensure_current(run)
        self.store.commit(items)
        self._held = []
        self._reveal_done = None
        self.current_tier = None

        await self.transition_to(RevealState.IDLE, reason="Items committed")
        return items

    async def _start_presentation(self, tier: RevealTier, item_count: int) -> None:
        if self.presenter is None:
            # Headless: nothing to play.
            self.on_reveal_end()
            return

        result = self.presenter.on_reveal_start(tier, item_count)
        if inspect.isawaitable(result):
            await result

    def on_reveal_end(self) -> None:
        """
        Completion signal from the presenter.

        Valid exactly once per reveal, and only while AWAITING_REVEAL.
        """
        if (
            self._state != RevealState.AWAITING_REVEAL
            or self._reveal_done is None
            or self._reveal_done.done()
        ):
            raise InvalidTransitionError(
                from_state=self._state,
                to_state=RevealState.REVEALED,
                message=f"Reveal end signalled in {self._state.value} state",
            )
        self._reveal_done.set_result(None)

    def reset(self) -> None:
        """Abandon any sequence in progress (account switch)."""
        self._run += 1
        if self._reveal_done is not None and not self._reveal_done.done():
            self._reveal_done.cancel()
        self._abandon("Sequencer reset")
