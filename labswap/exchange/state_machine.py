"""Transition table and permission checks for exchange requests."""

from __future__ import annotations

from dataclasses import dataclass

from labswap.core.enums import TERMINAL_STATUSES, ExchangeAction, ExchangeRequestStatus, PartyRole
from labswap.core.exceptions import AlreadyFinalizedError, InvalidTransitionError, UnauthorizedActionError

S = ExchangeRequestStatus
A = ExchangeAction
R = PartyRole


@dataclass(frozen=True)
class Transition:
    source: ExchangeRequestStatus
    action: ExchangeAction
    target: ExchangeRequestStatus
    role: PartyRole


TRANSITIONS: tuple[Transition, ...] = (
    Transition(S.PENDING, A.VIEW, S.VIEWED, R.RESPONDER),
    Transition(S.PENDING, A.ACCEPT, S.ACCEPTED, R.RESPONDER),
    Transition(S.VIEWED, A.ACCEPT, S.ACCEPTED, R.RESPONDER),
    Transition(S.PENDING, A.REJECT, S.REJECTED, R.RESPONDER),
    Transition(S.VIEWED, A.REJECT, S.REJECTED, R.RESPONDER),
    Transition(S.PENDING, A.COUNTER_OFFER, S.COUNTER_OFFER, R.RESPONDER),
    Transition(S.VIEWED, A.COUNTER_OFFER, S.COUNTER_OFFER, R.RESPONDER),
    # The initiator answers a counter-offer.
    Transition(S.COUNTER_OFFER, A.ACCEPT, S.ACCEPTED, R.INITIATOR),
    Transition(S.COUNTER_OFFER, A.REJECT, S.REJECTED, R.INITIATOR),
    Transition(S.PENDING, A.WITHDRAW, S.WITHDRAWN, R.INITIATOR),
    Transition(S.VIEWED, A.WITHDRAW, S.WITHDRAWN, R.INITIATOR),
    Transition(S.COUNTER_OFFER, A.WITHDRAW, S.WITHDRAWN, R.INITIATOR),
    Transition(S.PENDING, A.EXPIRE, S.EXPIRED, R.SYSTEM),
    Transition(S.VIEWED, A.EXPIRE, S.EXPIRED, R.SYSTEM),
)


class NegotiationStateMachine:
    """Resolves ``(status, action, role)`` to a transition or raises.

    Checks run in a fixed order: terminal status first, then whether the
    action exists from the current status, then whether the caller holds the
    role that may perform it.
    """

    def __init__(self, transitions: tuple[Transition, ...] = TRANSITIONS) -> None:
        self._table: dict[tuple[ExchangeRequestStatus, ExchangeAction], Transition] = {
            (t.source, t.action): t for t in transitions
        }

    @staticmethod
    def is_terminal(status: ExchangeRequestStatus) -> bool:
        return status in TERMINAL_STATUSES

    def can_transition(self, current: ExchangeRequestStatus, action: ExchangeAction, role: PartyRole) -> bool:
        transition = self._table.get((current, action))
        return transition is not None and transition.role == role

    def assert_transition(
        self,
        current: ExchangeRequestStatus,
        action: ExchangeAction,
        role: PartyRole,
    ) -> Transition:
        if self.is_terminal(current):
            raise AlreadyFinalizedError(
                f"Request is already {current.value}; {action.value} is not possible.",
                constraint=f"{current.value}.terminal",
            )

        transition = self._table.get((current, action))
        if transition is None:
            raise InvalidTransitionError(
                f"Transition not allowed: {action.value} by {role.value} from {current.value}.",
                constraint=f"{current.value}:{action.value}:{role.value}",
            )
        if transition.role != role:
            raise UnauthorizedActionError(
                f"Only the {transition.role.value} may {action.value} a {current.value} request.",
                constraint=f"{current.value}:{action.value}:{transition.role.value}",
            )
        return transition

    def allowed_actions(self, current: ExchangeRequestStatus, role: PartyRole) -> list[ExchangeAction]:
        """Actions ``role`` may take from ``current``, in table order."""
        if self.is_terminal(current):
            return []
        return [t.action for t in self._table.values() if t.source == current and t.role == role]


default_state_machine = NegotiationStateMachine()
