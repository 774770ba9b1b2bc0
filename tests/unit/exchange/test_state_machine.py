from __future__ import annotations

import itertools

import pytest

from labswap.core.enums import ExchangeAction, ExchangeRequestStatus, PartyRole
from labswap.core.exceptions import (
    AlreadyFinalizedError,
    InvalidTransitionError,
    UnauthorizedActionError,
)
from labswap.exchange.state_machine import TRANSITIONS, NegotiationStateMachine

S = ExchangeRequestStatus
A = ExchangeAction
R = PartyRole

ALLOWED = {(t.source, t.action, t.role): t.target for t in TRANSITIONS}


@pytest.mark.parametrize("source,action,role", sorted(ALLOWED, key=lambda key: tuple(k.value for k in key)))
def test_every_table_row_resolves_to_its_target(source, action, role):
    sm = NegotiationStateMachine()
    assert sm.can_transition(source, action, role) is True
    assert sm.assert_transition(source, action, role).target == ALLOWED[(source, action, role)]


def test_every_other_combination_is_rejected():
    sm = NegotiationStateMachine()
    for source, action, role in itertools.product(S, A, R):
        if (source, action, role) in ALLOWED:
            continue
        assert sm.can_transition(source, action, role) is False
        with pytest.raises((InvalidTransitionError, UnauthorizedActionError)):
            sm.assert_transition(source, action, role)


def test_initiator_cannot_accept_own_pending_request():
    sm = NegotiationStateMachine()
    with pytest.raises(UnauthorizedActionError) as exc:
        sm.assert_transition(S.PENDING, A.ACCEPT, R.INITIATOR)
    assert exc.value.constraint == "pending:accept:responder"


def test_responder_cannot_answer_own_counter_offer():
    sm = NegotiationStateMachine()
    with pytest.raises(UnauthorizedActionError):
        sm.assert_transition(S.COUNTER_OFFER, A.ACCEPT, R.RESPONDER)


def test_counter_offer_cannot_be_countered_again():
    sm = NegotiationStateMachine()
    with pytest.raises(InvalidTransitionError) as exc:
        sm.assert_transition(S.COUNTER_OFFER, A.COUNTER_OFFER, R.RESPONDER)
    assert not isinstance(exc.value, AlreadyFinalizedError)
    assert "counter_offer" in str(exc.value)


@pytest.mark.parametrize("terminal", [S.ACCEPTED, S.REJECTED, S.WITHDRAWN, S.EXPIRED])
@pytest.mark.parametrize("action", [A.ACCEPT, A.REJECT, A.WITHDRAW])
def test_terminal_statuses_raise_already_finalized(terminal, action):
    sm = NegotiationStateMachine()
    with pytest.raises(AlreadyFinalizedError):
        sm.assert_transition(terminal, action, R.RESPONDER)
    with pytest.raises(AlreadyFinalizedError):
        sm.assert_transition(terminal, action, R.INITIATOR)


def test_counter_offer_does_not_expire():
    sm = NegotiationStateMachine()
    with pytest.raises(InvalidTransitionError):
        sm.assert_transition(S.COUNTER_OFFER, A.EXPIRE, R.SYSTEM)


def test_allowed_actions_per_role():
    sm = NegotiationStateMachine()
    assert sm.allowed_actions(S.PENDING, R.RESPONDER) == [A.VIEW, A.ACCEPT, A.REJECT, A.COUNTER_OFFER]
    assert sm.allowed_actions(S.VIEWED, R.INITIATOR) == [A.WITHDRAW]
    assert sm.allowed_actions(S.COUNTER_OFFER, R.INITIATOR) == [A.ACCEPT, A.REJECT, A.WITHDRAW]
    assert sm.allowed_actions(S.COUNTER_OFFER, R.RESPONDER) == []
    assert sm.allowed_actions(S.ACCEPTED, R.INITIATOR) == []
