"""
CRUD (Create, Read, Update, Delete) operations for the School Inventory service.

This module contains the database operations for the item catalog, item
requests, the audit log and user accounts. Lifecycle transitions of requests
live in ``lifecycle``; the functions here never change a request's status.
"""
import logging
from datetime import date, datetime
from typing import List, Optional
from sqlalchemy.orm import Session
from . import models, schemas
from .database import atomic
from .exceptions import ItemOnLoanError

logger = logging.getLogger(__name__)


# Item catalog

def get_inventory_item(db: Session, item_id: int, for_update: bool = False) -> Optional[models.InventoryItem]:
    """
    Retrieve a single inventory item by ID.

    Args:
        db: Database session
        item_id: ID of the inventory item to retrieve
        for_update: Lock the row until the transaction ends

    Returns:
        InventoryItem object or None if not found
    """
    query = db.query(models.InventoryItem).filter(models.InventoryItem.id == item_id)
    if for_update:
        query = query.with_for_update()
    return query.first()

def get_inventory_items(db: Session, skip: int = 0, limit: int = 100) -> List[models.InventoryItem]:
    """
    Retrieve a list of inventory items with pagination.

    Args:
        db: Database session
        skip: Number of records to skip (offset)
        limit: Maximum number of records to return

    Returns:
        List of InventoryItem objects
    """
    return db.query(models.InventoryItem).order_by(models.InventoryItem.id).offset(skip).limit(limit).all()

def search_inventory_items(db: Session, keyword: str, skip: int = 0, limit: int = 100) -> List[models.InventoryItem]:
    """
    Find items whose title contains ``keyword``, ignoring case.

    Wildcard characters in the keyword are matched literally.

    Args:
        db: Database session
        keyword: Substring to look for anywhere in the title
        skip: Number of records to skip (offset)
        limit: Maximum number of records to return

    Returns:
        List of matching InventoryItem objects
    """
    return (
        db.query(models.InventoryItem)
        .filter(models.InventoryItem.title.icontains(keyword, autoescape=True))
        .order_by(models.InventoryItem.id)
        .offset(skip)
        .limit(limit)
        .all()
    )

def create_inventory_item(db: Session, item: schemas.InventoryItemCreate) -> models.InventoryItem:
    """
    Create a new inventory item in the database and record it in the audit log.

    Args:
        db: Database session
        item: Inventory item data to create

    Returns:
        Created InventoryItem object
    """
    db_item = models.InventoryItem(title=item.title, quantity=item.quantity, date_added=date.today())
    db.add(db_item)
    create_audit_entry(db, f"Added to catalog: {item.title}")
    db.commit()
    db.refresh(db_item)
    logger.info(f"Added to catalog: {db_item.title} (ID: {db_item.id})")
    return db_item

def update_inventory_item(db: Session, item_id: int, item: schemas.InventoryItemUpdate) -> Optional[models.InventoryItem]:
    """
    Update an existing inventory item.

    The item's ``date_added`` is always preserved.

    Args:
        db: Database session
        item_id: ID of the inventory item to update
        item: Updated item data (only provided fields will be updated)

    Returns:
        Updated InventoryItem object or None if not found

    Raises:
        ConcurrencyConflictError: the item was changed by another transaction
            (for example an approval) since it was read
    """
    with atomic(db, "Inventory item", item_id):
        db_item = get_inventory_item(db, item_id, for_update=True)
        if db_item is None:
            return None

        update_data = item.model_dump(exclude_unset=True, exclude_none=True)
        for key, value in update_data.items():
            setattr(db_item, key, value)

    db.refresh(db_item)
    logger.info(f"Updated inventory item ID: {item_id}")
    return db_item

def delete_inventory_item(db: Session, item_id: int) -> bool:
    """
    Delete an inventory item from the database.

    An item with units on loan (APPROVED requests) cannot be deleted: its
    loans could never be returned. Other requests that reference the item
    are kept for history but detached (``item_id`` set to NULL), which
    makes them non-actionable.

    Args:
        db: Database session
        item_id: ID of the inventory item to delete

    Returns:
        True if item was deleted, False if not found

    Raises:
        ItemOnLoanError: units of the item are still on loan
        ConcurrencyConflictError: the item or one of its requests was changed
            by another transaction since it was read
    """
    with atomic(db, "Inventory item", item_id):
        # Requests before the item, the same lock order as the request lifecycle
        requests = (
            db.query(models.ItemRequest)
            .filter(models.ItemRequest.item_id == item_id)
            .with_for_update()
            .all()
        )
        db_item = get_inventory_item(db, item_id, for_update=True)
        if db_item is None:
            return False

        title = db_item.title
        loans = sum(1 for request in requests if request.status == models.RequestStatus.APPROVED)
        if loans:
            logger.warning(f"Refused to delete '{title}' (ID: {item_id}): {loans} unit(s) on loan")
            raise ItemOnLoanError(item_id, title, loans)

        for request in requests:
            request.item_id = None
        db.flush()

        create_audit_entry(db, f"Removed from catalog: {title}")
        db.delete(db_item)

    logger.warning(f"Deleted inventory item '{title}' (ID: {item_id})")
    return True


# Audit log

def create_audit_entry(db: Session, message: str, timestamp: Optional[datetime] = None) -> models.AuditLogEntry:
    """
    Append an entry to the audit log.

    The entry is added to the caller's transaction; committing is left to
    the caller so the entry lands together with the change it describes.

    Args:
        db: Database session
        message: Human-readable description of the action
        timestamp: When the action happened (defaults to now)

    Returns:
        The pending AuditLogEntry object
    """
    entry = models.AuditLogEntry(message=message, timestamp=timestamp or datetime.utcnow())
    db.add(entry)
    return entry

def get_audit_entries(db: Session) -> List[models.AuditLogEntry]:
    """
    Retrieve the whole audit log, newest first.

    Args:
        db: Database session

    Returns:
        List of AuditLogEntry objects ordered by timestamp descending
    """
    return (
        db.query(models.AuditLogEntry)
        .order_by(models.AuditLogEntry.timestamp.desc(), models.AuditLogEntry.id.desc())
        .all()
    )


# Item requests

def get_item_request(db: Session, request_id: int, for_update: bool = False) -> Optional[models.ItemRequest]:
    """
    Retrieve a single item request by ID.

    Args:
        db: Database session
        request_id: ID of the request to retrieve
        for_update: Lock the row until the transaction ends

    Returns:
        ItemRequest object or None if not found
    """
    query = db.query(models.ItemRequest).filter(models.ItemRequest.id == request_id)
    if for_update:
        query = query.with_for_update()
    return query.first()

def get_item_requests_by_status(db: Session, status: models.RequestStatus) -> List[models.ItemRequest]:
    """
    Retrieve all requests currently in ``status``, oldest first.

    Args:
        db: Database session
        status: Lifecycle state to filter on

    Returns:
        List of ItemRequest objects
    """
    return (
        db.query(models.ItemRequest)
        .filter(models.ItemRequest.status == status)
        .order_by(models.ItemRequest.created_at, models.ItemRequest.id)
        .all()
    )

def create_item_request(db: Session, item: models.InventoryItem, requester: models.User) -> models.ItemRequest:
    """
    Create a new PENDING request for one unit of ``item``.

    Args:
        db: Database session
        item: Requested inventory item
        requester: User making the request

    Returns:
        Created ItemRequest object
    """
    db_request = models.ItemRequest(
        item=item,
        requester=requester,
        status=models.RequestStatus.PENDING,
        created_at=datetime.utcnow(),
    )
    db.add(db_request)
    db.commit()
    db.refresh(db_request)
    return db_request


# Users

def get_user(db: Session, user_id: int) -> Optional[models.User]:
    """Retrieve a single user by ID."""
    return db.query(models.User).filter(models.User.id == user_id).first()

def get_user_by_username(db: Session, username: str) -> Optional[models.User]:
    """
    Retrieve a user by login name.

    Args:
        db: Database session
        username: Login name to search for

    Returns:
        User object or None if not found
    """
    return db.query(models.User).filter(models.User.username == username).first()

def create_user(db: Session, username: str, full_name: str, password_hash: str, role: str = "user") -> models.User:
    """
    Create a new user account.

    Args:
        db: Database session
        username: Login name (must be unique)
        full_name: Display name
        password_hash: Already hashed password
        role: Role to grant (admin, user)

    Returns:
        Created User object
    """
    db_user = models.User(
        username=username,
        full_name=full_name,
        password_hash=password_hash,
        role=role,
        is_active=True,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user
