"""
Request lifecycle for borrowed inventory.

A request starts PENDING. An administrator approves it (one unit leaves
stock) or rejects it. An approved request is a loan until it is returned
(the unit goes back into stock). REJECTED and RETURNED are terminal.

Item quantity and request status are only ever changed together, in one
transaction, by the functions in this module. Both rows are locked with
SELECT ... FOR UPDATE and carry an optimistic version counter, so two
administrators approving the last unit at the same time cannot both win:
the loser gets ConcurrencyConflictError and nothing of its change is kept.

Every function takes the acting user explicitly and checks its role here,
independent of how the caller authenticated it.
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from . import auth, cache, crud, models, validators
from .database import atomic
from .exceptions import (
    IdentityUnresolvedError,
    InsufficientQuantityError,
    InvalidTransitionError,
    ItemNotFoundError,
    PermissionDeniedError,
    RequestNotFoundError,
)
from .models import RequestStatus

logger = logging.getLogger(__name__)


def _require_identity(actor: Optional[models.User], action: str) -> models.User:
    if actor is None or not actor.is_active:
        logger.warning(f"{action} refused: no authenticated user")
        raise IdentityUnresolvedError()
    return actor


def _require_admin(actor: Optional[models.User], action: str) -> models.User:
    actor = _require_identity(actor, action)
    if not auth.has_role(actor, auth.ADMIN_ROLE):
        logger.warning(f"{action} refused: user '{actor.username}' is not an administrator")
        raise PermissionDeniedError(actor.username, auth.ADMIN_ROLE)
    return actor


def _load_request(db: Session, request_id: int, action: str) -> models.ItemRequest:
    request = crud.get_item_request(db, request_id, for_update=True)
    if request is None:
        logger.warning(f"{action} failed: request ID {request_id} not found")
        raise RequestNotFoundError(request_id)
    return request


def _check_transition(request: models.ItemRequest, target: RequestStatus, action: str) -> None:
    is_valid, error_message = validators.validate_status_transition(request.status, target)
    if not is_valid:
        logger.warning(f"{action} failed for request ID {request.id}: {error_message}")
        raise InvalidTransitionError(request.id, request.status.value, target.value)


def _load_item(db: Session, request: models.ItemRequest, action: str) -> models.InventoryItem:
    item = None
    if request.item_id is not None:
        item = crud.get_inventory_item(db, request.item_id, for_update=True)
    if item is None:
        logger.warning(f"{action} failed: item of request ID {request.id} no longer exists")
        raise ItemNotFoundError(request.item_id)
    return item


def create_request(db: Session, item_id: int, actor: Optional[models.User]) -> models.ItemRequest:
    """
    Ask to borrow one unit of an item.

    Any authenticated user may create a request. No audit entry is written.

    Args:
        db: Database session
        item_id: ID of the requested item
        actor: Requesting user, None if no identity could be resolved

    Returns:
        The new PENDING request

    Raises:
        IdentityUnresolvedError: no active user
        ItemNotFoundError: the item does not exist
    """
    actor = _require_identity(actor, f"Request for item ID {item_id}")
    item = crud.get_inventory_item(db, item_id)
    if item is None:
        logger.error(f"Request for non-existent item ID: {item_id}")
        raise ItemNotFoundError(item_id)

    request = crud.create_item_request(db, item, actor)
    logger.info(f"New request ID {request.id}: user [{actor.username}] -> item [{item.title}]")
    return request


def approve_request(db: Session, request_id: int, actor: Optional[models.User]) -> models.ItemRequest:
    """
    Approve a pending request and issue one unit of the item.

    Decrements the item quantity, marks the request APPROVED and appends
    "Issued: {title} -> {full name}" to the audit log, all in one commit.

    Raises:
        IdentityUnresolvedError, PermissionDeniedError: actor is not an administrator
        RequestNotFoundError: no such request
        InvalidTransitionError: request is not PENDING
        ItemNotFoundError: the requested item was deleted
        InsufficientQuantityError: the item is out of stock
        ConcurrencyConflictError: request or item changed underneath
    """
    action = "Approve"
    _require_admin(actor, action)
    with atomic(db, "Request", request_id):
        request = _load_request(db, request_id, action)
        _check_transition(request, RequestStatus.APPROVED, action)
        item = _load_item(db, request, action)
        if item.quantity <= 0:
            logger.warning(f"Approval of request ID {request_id} refused: '{item.title}' is out of stock")
            raise InsufficientQuantityError(item.id, item.title)

        item.quantity -= 1
        request.status = RequestStatus.APPROVED
        message = f"Issued: {item.title} -> {request.requester.full_name}"
        crud.create_audit_entry(db, message)

    cache.invalidate_catalog()
    logger.info(f"Request ID {request_id} approved by '{actor.username}'. {message}")
    return request


def reject_request(db: Session, request_id: int, actor: Optional[models.User]) -> models.ItemRequest:
    """
    Reject a pending request. Stock is not touched.

    Raises:
        IdentityUnresolvedError, PermissionDeniedError: actor is not an administrator
        RequestNotFoundError: no such request
        InvalidTransitionError: request is not PENDING
        ConcurrencyConflictError: request changed underneath
    """
    action = "Reject"
    _require_admin(actor, action)
    with atomic(db, "Request", request_id):
        request = _load_request(db, request_id, action)
        _check_transition(request, RequestStatus.REJECTED, action)
        request.status = RequestStatus.REJECTED

    logger.info(f"Request ID {request_id} rejected by '{actor.username}'")
    return request


def return_request(db: Session, request_id: int, actor: Optional[models.User]) -> models.ItemRequest:
    """
    Record the return of a loan and put the unit back into stock.

    Increments the item quantity, marks the request RETURNED and appends
    "Returned: {full name} -> {title}" to the audit log, all in one commit.

    Raises:
        IdentityUnresolvedError, PermissionDeniedError: actor is not an administrator
        RequestNotFoundError: no such request
        InvalidTransitionError: request is not APPROVED
        ItemNotFoundError: the requested item was deleted
        ConcurrencyConflictError: request or item changed underneath
    """
    action = "Return"
    _require_admin(actor, action)
    with atomic(db, "Request", request_id):
        request = _load_request(db, request_id, action)
        _check_transition(request, RequestStatus.RETURNED, action)
        item = _load_item(db, request, action)

        item.quantity += 1
        request.status = RequestStatus.RETURNED
        message = f"Returned: {request.requester.full_name} -> {item.title}"
        crud.create_audit_entry(db, message)

    cache.invalidate_catalog()
    logger.info(f"Request ID {request_id} returned. {message}")
    return request


def list_pending_requests(db: Session, actor: Optional[models.User]) -> List[models.ItemRequest]:
    """Requests waiting for an administrator's decision."""
    _require_admin(actor, "Pending request listing")
    return crud.get_item_requests_by_status(db, RequestStatus.PENDING)


def list_approved_requests(db: Session, actor: Optional[models.User]) -> List[models.ItemRequest]:
    """Active loans."""
    _require_admin(actor, "Loan listing")
    return crud.get_item_requests_by_status(db, RequestStatus.APPROVED)


def list_audit_log(db: Session, actor: Optional[models.User]) -> List[models.AuditLogEntry]:
    """The audit history, newest first."""
    _require_admin(actor, "Audit log listing")
    return crud.get_audit_entries(db)
