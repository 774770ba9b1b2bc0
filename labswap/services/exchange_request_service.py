"""Exchange request service: create, read, and negotiate barter requests."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterator
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from labswap.core.config import get_config
from labswap.core.enums import (
    EXPIRABLE_STATUSES,
    STATUS_EVENTS,
    ExchangeAction,
    ExchangeRequestStatus,
    ItemStatus,
    ListingType,
    ListRole,
    OfferKind,
    PartyRole,
    RequestSource,
)
from labswap.core.exceptions import (
    AlreadyFinalizedError,
    ForbiddenError,
    InsufficientQuantityError,
    InvalidPayloadError,
    InvalidTransitionError,
    NotFoundError,
    SelfTargetError,
)
from labswap.core.logging import LogContext, build_log_event
from labswap.database.db import SessionLocal
from labswap.database.models import ExchangeRequest, ExchangeStatusEvent, Item
from labswap.exchange.ledger import InventoryLedger
from labswap.exchange.locks import item_locks
from labswap.exchange.offers import (
    ExistingItemOffer,
    offer_from_storage,
    parse_counter_offer,
    parse_offer,
    tagged_offer,
    validate_offer,
)
from labswap.exchange.state_machine import NegotiationStateMachine, Transition, default_state_machine
from labswap.services.notifications import Notifier, build_event_payload, build_notifier
from labswap.utils.ids import fallback_request_number, new_request_id, new_request_number

logger = logging.getLogger(__name__)

MESSAGE_MAX_LENGTH = 1000
REQUEST_NUMBER_ATTEMPTS = 10


def _utcnow_naive() -> datetime:
    """Return UTC now as naive datetime for the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _required_text(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InvalidPayloadError(f"{key} is required.", constraint=f"{key}.required")
    return value


class ExchangeRequestListing:
    """Restartable, lazily fetched listing of exchange requests.

    Every iteration re-runs the query, so the listing reflects the store at
    the time it is iterated, not when it was built.
    """

    def __init__(self, query: Query, batch_size: int = 100) -> None:
        self._query = query
        self._batch_size = batch_size

    def __iter__(self) -> Iterator[ExchangeRequest]:
        return iter(self._query.yield_per(self._batch_size))

    def count(self) -> int:
        return self._query.order_by(None).count()

    def page(self, limit: int, offset: int = 0) -> list[ExchangeRequest]:
        return self._query.offset(offset).limit(limit).all()


class ExchangeRequestService:
    """Service for exchange request creation and negotiation transitions."""

    def __init__(
        self,
        db: Session | None = None,
        notifier: Notifier | None = None,
        ledger: InventoryLedger | None = None,
        state_machine: NegotiationStateMachine | None = None,
        ttl_days: int | None = None,
    ) -> None:
        self.db = db or SessionLocal()
        self.notifier = notifier or build_notifier()
        self.ledger = ledger or InventoryLedger(self.db)
        self.state_machine = state_machine or default_state_machine
        self.ttl = timedelta(days=ttl_days or get_config().EXCHANGE_REQUEST_TTL_DAYS)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------
    def create(
        self,
        initiator_id: int,
        target_item_id: int,
        requested_quantity: int,
        offer: Any,
        message: str | None = None,
        source: str = RequestSource.API.value,
    ) -> ExchangeRequest:
        if isinstance(requested_quantity, bool) or not isinstance(requested_quantity, int) or requested_quantity < 1:
            raise InvalidPayloadError(
                "requested_quantity must be an integer >= 1.",
                constraint="requested_quantity.positive",
            )
        if message is not None and len(message) > MESSAGE_MAX_LENGTH:
            raise InvalidPayloadError(
                f"message must be at most {MESSAGE_MAX_LENGTH} characters.",
                constraint="message.max_length",
            )
        try:
            source = RequestSource(source).value
        except ValueError as exc:
            raise InvalidPayloadError(f"Unknown request source: {source}.", constraint="source.known") from exc
        parsed_offer = parse_offer(offer)

        target = self.db.get(Item, target_item_id)
        if target is None:
            raise NotFoundError(f"Item {target_item_id} not found.", constraint="target_item.exists")
        if target.owner_id == initiator_id:
            raise SelfTargetError(
                "A lab cannot request an exchange for its own item.",
                constraint="target_item.not_owned_by_initiator",
            )
        if target.listing_type != ListingType.EXCHANGE.value or target.status != ItemStatus.ACTIVE.value:
            raise NotFoundError(
                f"Item {target_item_id} is not an active exchange listing.",
                constraint="target_item.listed_for_exchange",
            )
        if not self.ledger.check_available(target.id, requested_quantity):
            raise InsufficientQuantityError(
                f"Only {target.quantity} of item {target.id} available, {requested_quantity} requested.",
                constraint="target_item.quantity_available",
            )
        validate_offer(parsed_offer, initiator_id=initiator_id, db=self.db, ledger=self.ledger)

        now = _utcnow_naive()
        for attempt in range(1, REQUEST_NUMBER_ATTEMPTS + 1):
            request = ExchangeRequest(
                id=new_request_id(),
                request_number=self._allocate_request_number(now),
                initiator_id=initiator_id,
                responder_id=target.owner_id,
                target_item_id=target.id,
                requested_quantity=requested_quantity,
                offer_kind=parsed_offer.kind,
                offered_item_id=parsed_offer.item_id if isinstance(parsed_offer, ExistingItemOffer) else None,
                offer=tagged_offer(offer),
                message=message,
                status=ExchangeRequestStatus.PENDING.value,
                source=source,
                version=1,
                created_at=now,
                last_status_change_at=now,
                expires_at=now + self.ttl,
            )
            self.db.add(request)
            self.db.add(
                ExchangeStatusEvent(
                    request_id=request.id,
                    from_status=None,
                    to_status=ExchangeRequestStatus.PENDING.value,
                    action="create",
                    actor_id=initiator_id,
                    created_at=now,
                )
            )
            try:
                self.db.commit()
                break
            except IntegrityError:
                # Request number taken by a concurrent create between check and insert.
                self.rollback()
                if attempt == REQUEST_NUMBER_ATTEMPTS:
                    raise
                logger.warning(
                    "exchange_request.number_collision",
                    extra={"event": "exchange_request.number_collision", "request_number": request.request_number},
                )
        self.db.refresh(request)

        self._log_transition(request, "create", None, actor_id=initiator_id)
        self._emit(ExchangeRequestStatus.PENDING, request, actor_id=initiator_id)
        return request

    def _allocate_request_number(self, now: datetime) -> str:
        for _ in range(REQUEST_NUMBER_ATTEMPTS):
            candidate = new_request_number(now)
            taken = (
                self.db.query(ExchangeRequest.id)
                .filter(ExchangeRequest.request_number == candidate)
                .first()
            )
            if taken is None:
                return candidate
        return fallback_request_number(now)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, viewer_id: int, request_id: str) -> ExchangeRequest:
        """Return a request visible to ``viewer_id``.

        The responder's first read of a ``pending`` request marks it
        ``viewed``.
        """
        request = self._load(request_id)
        role = self.role_of(request, viewer_id)
        self._expire_if_stale(request)

        if role == PartyRole.RESPONDER and request.status == ExchangeRequestStatus.PENDING.value:
            transition = self.state_machine.assert_transition(
                ExchangeRequestStatus.PENDING, ExchangeAction.VIEW, role
            )
            try:
                self._apply(request, transition, actor_id=viewer_id, changes={"viewed_at": _utcnow_naive()})
            except InvalidTransitionError:
                # A concurrent transition won; the refreshed record is still readable.
                self.db.refresh(request)
        return request

    def list_requests(
        self,
        viewer_id: int,
        role: ListRole | str = ListRole.ALL,
        status: ExchangeRequestStatus | str | None = None,
    ) -> ExchangeRequestListing:
        role = ListRole(role)
        self.expire_stale(party_id=viewer_id)

        query = self.db.query(ExchangeRequest)
        if role == ListRole.SENT:
            query = query.filter(ExchangeRequest.initiator_id == viewer_id)
        elif role == ListRole.RECEIVED:
            query = query.filter(ExchangeRequest.responder_id == viewer_id)
        else:
            query = query.filter(
                or_(ExchangeRequest.initiator_id == viewer_id, ExchangeRequest.responder_id == viewer_id)
            )
        if status is not None:
            query = query.filter(ExchangeRequest.status == ExchangeRequestStatus(status).value)

        query = query.order_by(ExchangeRequest.created_at.desc(), ExchangeRequest.request_number.desc())
        return ExchangeRequestListing(query)

    def stats(self, viewer_id: int) -> dict[str, int]:
        self.expire_stale(party_id=viewer_id)
        rows = (
            self.db.query(ExchangeRequest.initiator_id, ExchangeRequest.status)
            .filter(or_(ExchangeRequest.initiator_id == viewer_id, ExchangeRequest.responder_id == viewer_id))
            .all()
        )
        by_status = Counter(status for _, status in rows)
        sent = sum(1 for initiator_id, _ in rows if initiator_id == viewer_id)
        return {
            "total": len(rows),
            "sent": sent,
            "received": len(rows) - sent,
            "accepted": by_status[ExchangeRequestStatus.ACCEPTED.value],
            "pending": by_status[ExchangeRequestStatus.PENDING.value] + by_status[ExchangeRequestStatus.VIEWED.value],
        }

    def role_of(self, request: ExchangeRequest, viewer_id: int) -> PartyRole:
        if viewer_id == request.initiator_id:
            return PartyRole.INITIATOR
        if viewer_id == request.responder_id:
            return PartyRole.RESPONDER
        raise ForbiddenError(
            f"Lab {viewer_id} is not a party to request {request.request_number}.",
            constraint="viewer.is_party",
        )

    def allowed_actions(self, request: ExchangeRequest, viewer_id: int) -> list[str]:
        role = self.role_of(request, viewer_id)
        status = ExchangeRequestStatus(request.status)
        return [action.value for action in self.state_machine.allowed_actions(status, role)]

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def respond(
        self,
        viewer_id: int,
        request_id: str,
        action: ExchangeAction | str,
        payload: dict[str, Any] | None = None,
    ) -> ExchangeRequest:
        try:
            action = ExchangeAction(action)
        except ValueError as exc:
            raise InvalidTransitionError(f"Unknown action: {action}.", constraint="action.known") from exc
        payload = payload or {}

        request = self._load(request_id)
        role = self.role_of(request, viewer_id)
        self._expire_if_stale(request)

        current = ExchangeRequestStatus(request.status)
        transition = self.state_machine.assert_transition(current, action, role)
        now = _utcnow_naive()

        changes: dict[str, Any] = {}
        reason: str | None = None
        commits: list[tuple[int, int]] = []
        if action == ExchangeAction.VIEW:
            changes["viewed_at"] = now
        elif action == ExchangeAction.REJECT:
            reason = _required_text(payload, "rejection_reason")
            changes.update(rejection_reason=reason, responded_at=now)
        elif action == ExchangeAction.WITHDRAW:
            reason = _required_text(payload, "withdrawal_reason")
            changes.update(withdrawal_reason=reason, withdrawn_at=now)
        elif action == ExchangeAction.COUNTER_OFFER:
            terms = parse_counter_offer(payload.get("counter_offer"))
            counter = terms.model_dump(mode="json", exclude_none=True)
            counter["created_at"] = now.isoformat()
            changes.update(counter_offer=counter, responded_at=now)
        elif action == ExchangeAction.ACCEPT:
            commits = self._acceptance_commits(request)
            changes["responded_at"] = now

        self._apply(request, transition, actor_id=viewer_id, changes=changes, reason=reason, commits=commits)
        return request

    def withdraw(self, viewer_id: int, request_id: str, reason: str) -> ExchangeRequest:
        return self.respond(viewer_id, request_id, ExchangeAction.WITHDRAW, {"withdrawal_reason": reason})

    def expire_stale(self, now: datetime | None = None, party_id: int | None = None) -> int:
        """Move overdue ``pending``/``viewed`` requests to ``expired``."""
        cutoff = now or _utcnow_naive()
        query = self.db.query(ExchangeRequest).filter(
            ExchangeRequest.status.in_([status.value for status in EXPIRABLE_STATUSES]),
            ExchangeRequest.expires_at <= cutoff,
        )
        if party_id is not None:
            query = query.filter(
                or_(ExchangeRequest.initiator_id == party_id, ExchangeRequest.responder_id == party_id)
            )

        expired = 0
        for request in query.all():
            if self._expire(request):
                expired += 1
        return expired

    def _acceptance_commits(self, request: ExchangeRequest) -> list[tuple[int, int]]:
        # A counter's proposed_quantity is never committed.
        commits = [(request.target_item_id, request.requested_quantity)]
        if request.offer_kind == OfferKind.EXISTING_ITEM.value:
            offer = offer_from_storage(request.offer)
            commits.append((offer.item_id, offer.quantity))
        return commits

    def _expire_if_stale(self, request: ExchangeRequest) -> None:
        if (
            ExchangeRequestStatus(request.status) in EXPIRABLE_STATUSES
            and request.expires_at <= _utcnow_naive()
        ):
            self._expire(request)

    def _expire(self, request: ExchangeRequest) -> bool:
        transition = self.state_machine.assert_transition(
            ExchangeRequestStatus(request.status), ExchangeAction.EXPIRE, PartyRole.SYSTEM
        )
        try:
            self._apply(request, transition, actor_id=None)
        except InvalidTransitionError:
            logger.debug("exchange_request.expire.lost_race", extra={"event": "exchange_request.expire.lost_race"})
            self.db.refresh(request)
            return False
        return True

    def _apply(
        self,
        request: ExchangeRequest,
        transition: Transition,
        actor_id: int | None,
        changes: dict[str, Any] | None = None,
        reason: str | None = None,
        commits: list[tuple[int, int]] | None = None,
    ) -> None:
        """Compare-and-swap the status, run inventory commits, append history.

        All of it happens in one transaction; any failure rolls everything
        back and leaves the record as it was.
        """
        commits = commits or []
        request_id = request.id
        expected_version = request.version
        now = _utcnow_naive()
        values = {
            "status": transition.target.value,
            "version": expected_version + 1,
            "last_status_change_at": now,
            **(changes or {}),
        }

        with item_locks(*(item_id for item_id, _ in commits)):
            try:
                result = self.db.execute(
                    update(ExchangeRequest)
                    .where(
                        ExchangeRequest.id == request_id,
                        ExchangeRequest.status == transition.source.value,
                        ExchangeRequest.version == expected_version,
                    )
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    self.rollback()
                    raise self._lost_race_error(request_id, transition)

                for item_id, quantity in commits:
                    self.ledger.commit(item_id, quantity)

                self.db.add(
                    ExchangeStatusEvent(
                        request_id=request_id,
                        from_status=transition.source.value,
                        to_status=transition.target.value,
                        action=transition.action.value,
                        actor_id=actor_id,
                        reason=reason,
                    created_at=now,
                    )
                )
                self.commit()
            except Exception:
                self.rollback()
                raise

        self.db.refresh(request)
        self._log_transition(request, transition.action.value, transition.source.value, actor_id=actor_id)
        self._emit(transition.target, request, actor_id=actor_id)

    def _lost_race_error(self, request_id: str, transition: Transition) -> InvalidTransitionError:
        current = self.db.query(ExchangeRequest.status).filter(ExchangeRequest.id == request_id).scalar()
        if current is not None and self.state_machine.is_terminal(ExchangeRequestStatus(current)):
            return AlreadyFinalizedError(
                f"Request was finalized as {current} by a concurrent update.",
                constraint=f"{current}.terminal",
            )
        return InvalidTransitionError(
            f"Request moved to {current} before {transition.action.value} could apply.",
            constraint=f"{transition.source.value}:{transition.action.value}:stale",
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def commit(self) -> None:
        """Commit current transaction and rollback on failure."""
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def rollback(self) -> None:
        self.db.rollback()

    def _load(self, request_id: str) -> ExchangeRequest:
        request = self.db.get(ExchangeRequest, request_id)
        if request is None:
            raise NotFoundError(f"Exchange request {request_id} not found.", constraint="request.exists")
        return request

    def _log_transition(
        self,
        request: ExchangeRequest,
        action: str,
        from_status: str | None,
        actor_id: int | None,
    ) -> None:
        event = f"exchange_request.{STATUS_EVENTS[ExchangeRequestStatus(request.status)]}"
        logger.info(
            event,
            extra=build_log_event(
                event,
                LogContext(
                    request_id=request.id,
                    request_number=request.request_number,
                    viewer_id=actor_id,
                    item_id=request.target_item_id,
                ),
                action=action,
                from_status=from_status,
                to_status=request.status,
            ),
        )

    def _emit(self, status: ExchangeRequestStatus, request: ExchangeRequest, actor_id: int | None) -> None:
        event = STATUS_EVENTS[status]
        try:
            self.notifier.notify(event, build_event_payload(request, actor_id))
        except Exception as exc:
            logger.warning(
                "notification.failed: %s",
                exc,
                extra={"event": "notification.failed", "request_id": request.id},
            )
