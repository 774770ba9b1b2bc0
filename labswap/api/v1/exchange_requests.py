"""Exchange request endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from labswap.core.dependencies import get_exchange_service, get_viewer_id
from labswap.core.enums import ExchangeRequestStatus, ListRole
from labswap.database.models import ExchangeRequest
from labswap.schemas.exchange_requests import (
    ExchangeRequestCreate,
    ExchangeRequestDetail,
    ExchangeRequestListResponse,
    ExchangeRequestRespond,
    ExchangeRequestStats,
    ExchangeRequestSummary,
    ExchangeRequestWithdraw,
    ExchangeStatusEventResponse,
)
from labswap.services.exchange_request_service import ExchangeRequestService

router = APIRouter(prefix="/exchange-requests", tags=["exchange-requests"])


def _detail(service: ExchangeRequestService, request: ExchangeRequest, viewer_id: int) -> ExchangeRequestDetail:
    detail = ExchangeRequestDetail.model_validate(request)
    return detail.model_copy(
        update={
            "history": [ExchangeStatusEventResponse.model_validate(event) for event in request.events],
            "is_receiver": request.responder_id == viewer_id,
            "allowed_actions": service.allowed_actions(request, viewer_id),
        }
    )


@router.post("", response_model=ExchangeRequestDetail, status_code=status.HTTP_201_CREATED)
def create_exchange_request(
    payload: ExchangeRequestCreate,
    viewer_id: int = Depends(get_viewer_id),
    service: ExchangeRequestService = Depends(get_exchange_service),
) -> ExchangeRequestDetail:
    request = service.create(
        initiator_id=viewer_id,
        target_item_id=payload.target_item_id,
        requested_quantity=payload.requested_quantity,
        offer=payload.offer,
        message=payload.message,
        source=payload.source.value,
    )
    return _detail(service, request, viewer_id)


@router.get("", response_model=ExchangeRequestListResponse)
def list_exchange_requests(
    role: ListRole = Query(default=ListRole.ALL),
    status_filter: ExchangeRequestStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    viewer_id: int = Depends(get_viewer_id),
    service: ExchangeRequestService = Depends(get_exchange_service),
) -> ExchangeRequestListResponse:
    listing = service.list_requests(viewer_id, role=role, status=status_filter)
    return ExchangeRequestListResponse(
        items=[ExchangeRequestSummary.model_validate(item) for item in listing.page(limit=limit, offset=offset)],
        total=listing.count(),
        limit=limit,
        offset=offset,
    )


@router.get("/stats", response_model=ExchangeRequestStats)
def exchange_request_stats(
    viewer_id: int = Depends(get_viewer_id),
    service: ExchangeRequestService = Depends(get_exchange_service),
) -> ExchangeRequestStats:
    return ExchangeRequestStats(**service.stats(viewer_id))


@router.get("/{request_id}", response_model=ExchangeRequestDetail)
def get_exchange_request(
    request_id: str,
    viewer_id: int = Depends(get_viewer_id),
    service: ExchangeRequestService = Depends(get_exchange_service),
) -> ExchangeRequestDetail:
    request = service.get(viewer_id, request_id)
    return _detail(service, request, viewer_id)


@router.post("/{request_id}/respond", response_model=ExchangeRequestDetail)
def respond_to_exchange_request(
    request_id: str,
    payload: ExchangeRequestRespond,
    viewer_id: int = Depends(get_viewer_id),
    service: ExchangeRequestService = Depends(get_exchange_service),
) -> ExchangeRequestDetail:
    request = service.respond(
        viewer_id,
        request_id,
        payload.action,
        payload.model_dump(exclude={"action"}, exclude_none=True),
    )
    return _detail(service, request, viewer_id)


@router.post("/{request_id}/withdraw", response_model=ExchangeRequestDetail)
def withdraw_exchange_request(
    request_id: str,
    payload: ExchangeRequestWithdraw,
    viewer_id: int = Depends(get_viewer_id),
    service: ExchangeRequestService = Depends(get_exchange_service),
) -> ExchangeRequestDetail:
    request = service.withdraw(viewer_id, request_id, payload.reason)
    return _detail(service, request, viewer_id)
