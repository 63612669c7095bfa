"""
    School Inventory Service API

    This module implements a FastAPI-based service for a school's inventory: an item
    catalog, borrow requests with an approval lifecycle, and an audit history.

    The service exposes:
    - Authentication endpoints (register, login, me)
    - Catalog endpoints: browse and search for any user, create/update/delete for admins
    - Request endpoints: any user may request an item; admins approve, reject and
      record returns, and see the pending queue, active loans and the audit log
    - Health endpoint: Provides service health status for monitoring and orchestration
"""
from typing import List, Optional
import logging
from fastapi import FastAPI, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import auth, cache, crud, lifecycle, models, schemas
from .config import LOG_LEVEL
from .database import engine, get_db
from .exceptions import (
    ConcurrencyConflictError,
    IdentityUnresolvedError,
    InsufficientQuantityError,
    InvalidTransitionError,
    InventoryServiceError,
    ItemOnLoanError,
    NotFoundError,
    PermissionDeniedError,
)
from .logging_config import configure_logging

configure_logging(LOG_LEVEL)
logger = logging.getLogger(__name__)

# Create database tables
models.Base.metadata.create_all(bind=engine)

app = FastAPI(title="school-inventory-service")

ERROR_STATUS_CODES = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    InsufficientQuantityError: status.HTTP_409_CONFLICT,
    ItemOnLoanError: status.HTTP_409_CONFLICT,
    ConcurrencyConflictError: status.HTTP_409_CONFLICT,
    IdentityUnresolvedError: status.HTTP_401_UNAUTHORIZED,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
}


@app.exception_handler(InventoryServiceError)
def handle_service_error(request: Request, exc: InventoryServiceError):
    """
    Turn a service error into a JSON response the client can show.

    The body carries the message and the machine-readable error code.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    for error_type, code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            status_code = code
            break
    headers = None
    if status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "code": exc.code},
        headers=headers,
    )


@app.get("/healthz", response_model=dict)
def health():
    """
    Health check endpoint for the inventory service.

    Returns:
        dict: A dictionary containing the health status of the service.
            - status (str): "healthy" if the service is operational.

    Example:
        GET /healthz
        Response: {"status": "healthy"}
    """
    return {"status": "healthy"}


@app.post("/register", response_model=schemas.Token, status_code=status.HTTP_201_CREATED)
def register(user: schemas.UserRegister, db: Session = Depends(get_db)):
    """
    Register a new user account.

    Args:
        user: User registration data (username, full name, password)
        db: Database session (injected)

    Returns:
        JWT access token

    Raises:
        HTTPException: 400 if the username is already taken
    """
    db_user = auth.register_user(db, user)
    if db_user is None:
        raise HTTPException(status_code=400, detail="Username already registered")
    return schemas.Token(access_token=auth.create_token_for_user(db_user))


@app.post("/login", response_model=schemas.Token)
def login(credentials: schemas.UserLogin, db: Session = Depends(get_db)):
    """
    Authenticate and login a user.

    Raises:
        HTTPException: 401 if credentials are invalid
    """
    user = auth.authenticate_user(db, credentials.username, credentials.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return schemas.Token(access_token=auth.create_token_for_user(user))


@app.get("/me", response_model=schemas.User)
def get_current_user_info(current_user: models.User = Depends(auth.get_current_user)):
    """Get current authenticated user information."""
    return current_user


@cache.cache_result(cache.CATALOG_PREFIX)
def _catalog_page(*, db: Session, keyword: Optional[str], skip: int, limit: int) -> List[dict]:
    if keyword:
        items = crud.search_inventory_items(db, keyword, skip=skip, limit=limit)
    else:
        items = crud.get_inventory_items(db, skip=skip, limit=limit)
    return [schemas.InventoryItem.model_validate(item).model_dump(mode="json") for item in items]


@app.get("/items", response_model=List[schemas.InventoryItem])
def list_inventory_items(
    keyword: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    """
    List or search the catalog (authenticated users only).

    Args:
        keyword: Case-insensitive substring of the title to search for (optional)
        skip: Number of records to skip (default: 0)
        limit: Maximum number of records to return (default: 100)
        db: Database session (injected)
        current_user: Current authenticated user (injected)

    Returns:
        List of inventory item objects
    """
    if keyword:
        logger.info(f"User '{current_user.username}' searched the catalog for: {keyword}")
    return _catalog_page(db=db, keyword=keyword or None, skip=skip, limit=limit)


@app.get("/items/{item_id}", response_model=schemas.InventoryItem)
def get_inventory_item(
    item_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    """
    Get a single inventory item by ID (authenticated users only).

    Raises:
        HTTPException: 404 if item not found
    """
    db_item = crud.get_inventory_item(db, item_id=item_id)
    if db_item is None:
        raise HTTPException(status_code=404, detail="Inventory item not found")
    return db_item


@app.post("/items", response_model=schemas.InventoryItem, status_code=status.HTTP_201_CREATED)
def create_inventory_item(
    item: schemas.InventoryItemCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.require_admin)
):
    """
    Add a new item to the catalog (admin only).

    Args:
        item: Inventory item data to create
        db: Database session (injected)
        current_user: Current authenticated admin user (injected)

    Returns:
        Created inventory item object
    """
    db_item = crud.create_inventory_item(db=db, item=item)
    cache.invalidate_catalog()
    return db_item


@app.put("/items/{item_id}", response_model=schemas.InventoryItem)
def update_inventory_item(
    item_id: int,
    item: schemas.InventoryItemUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.require_admin)
):
    """
    Update an existing inventory item (admin only). The date added is kept.

    Raises:
        HTTPException: 404 if item not found
        409 if the item changed concurrently
    """
    db_item = crud.update_inventory_item(db, item_id=item_id, item=item)
    if db_item is None:
        raise HTTPException(status_code=404, detail="Inventory item not found")
    cache.invalidate_catalog()
    return db_item


@app.delete("/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_inventory_item(
    item_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.require_admin)
):
    """
    Delete an inventory item (admin only).

    Returns:
        None (204 No Content)

    Raises:
        HTTPException: 404 if item not found
        409 if units of the item are on loan, or the item changed concurrently
    """
    success = crud.delete_inventory_item(db, item_id=item_id)
    if not success:
        raise HTTPException(status_code=404, detail="Inventory item not found")
    cache.invalidate_catalog()


@app.post("/items/{item_id}/requests", response_model=schemas.ItemRequest, status_code=status.HTTP_201_CREATED)
def request_item(
    item_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    """
    Ask to borrow one unit of an item (authenticated users).

    Returns:
        The new request, status PENDING
    """
    return lifecycle.create_request(db, item_id, current_user)


@app.get("/requests/pending", response_model=List[schemas.ItemRequest])
def list_pending_requests(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.require_admin)
):
    """Queue of requests waiting for a decision (admin only)."""
    return lifecycle.list_pending_requests(db, current_user)


@app.get("/requests/approved", response_model=List[schemas.ItemRequest])
def list_approved_requests(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.require_admin)
):
    """Items currently on loan (admin only)."""
    return lifecycle.list_approved_requests(db, current_user)


@app.post("/requests/{request_id}/approve", response_model=schemas.ItemRequest)
def approve_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.require_admin)
):
    """
    Approve a pending request and issue the item (admin only).

    Raises:
        404 if the request or its item does not exist
        409 if the item is out of stock, the request is not pending,
            or another administrator changed it at the same time
    """
    return lifecycle.approve_request(db, request_id, current_user)


@app.post("/requests/{request_id}/reject", response_model=schemas.ItemRequest)
def reject_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.require_admin)
):
    """Reject a pending request (admin only)."""
    return lifecycle.reject_request(db, request_id, current_user)


@app.post("/requests/{request_id}/return", response_model=schemas.ItemRequest)
def return_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.require_admin)
):
    """Record that a loaned item came back (admin only)."""
    return lifecycle.return_request(db, request_id, current_user)


@app.get("/history", response_model=List[schemas.AuditLogEntry])
def history(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.require_admin)
):
    """Audit log, newest entry first (admin only)."""
    return lifecycle.list_audit_log(db, current_user)
