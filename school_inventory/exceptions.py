"""
Typed exceptions for the School Inventory service.

Every error carries a machine-readable ``code`` so callers catch by type and
the web layer can report the code without parsing messages.

    InventoryServiceError (base)
    |
    +-- NotFoundError
    |   +-- ItemNotFoundError
    |   +-- RequestNotFoundError
    |
    +-- InvalidTransitionError
    +-- InsufficientQuantityError
    +-- ItemOnLoanError
    +-- IdentityUnresolvedError
    +-- PermissionDeniedError
    +-- ConcurrencyConflictError
"""


class InventoryServiceError(Exception):
    """Base exception for all service errors."""

    code: str = "INVENTORY_SERVICE_ERROR"


class NotFoundError(InventoryServiceError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class ItemNotFoundError(NotFoundError):
    """Inventory item with given ID does not exist."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id):
        self.item_id = item_id
        if item_id is None:
            # Request whose item was deleted from the catalog
            super().__init__("The requested item has been removed from the catalog")
        else:
            super().__init__(f"Inventory item not found: {item_id}")


class RequestNotFoundError(NotFoundError):
    """Item request with given ID does not exist."""

    code: str = "REQUEST_NOT_FOUND"

    def __init__(self, request_id: int):
        self.request_id = request_id
        super().__init__(f"Request not found: {request_id}")


class InvalidTransitionError(InventoryServiceError):
    """Request is not in a state that allows the operation."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, request_id: int, current_status: str, target_status: str):
        self.request_id = request_id
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Request {request_id} cannot move from {current_status} to {target_status}"
        )


class InsufficientQuantityError(InventoryServiceError):
    """Approval attempted while the item is out of stock."""

    code: str = "INSUFFICIENT_QUANTITY"

    def __init__(self, item_id: int, title: str):
        self.item_id = item_id
        self.title = title
        super().__init__(f"'{title}' is out of stock")


class ItemOnLoanError(InventoryServiceError):
    """Item cannot leave the catalog while units of it are on loan."""

    code: str = "ITEM_ON_LOAN"

    def __init__(self, item_id: int, title: str, loans: int):
        self.item_id = item_id
        self.title = title
        self.loans = loans
        super().__init__(f"'{title}' has {loans} unit(s) on loan, record the returns first")


class IdentityUnresolvedError(InventoryServiceError):
    """No authenticated user could be resolved for the operation."""

    code: str = "IDENTITY_UNRESOLVED"

    def __init__(self, detail: str = "Could not resolve the current user"):
        super().__init__(detail)


class PermissionDeniedError(InventoryServiceError):
    """Acting user lacks the role the operation requires."""

    code: str = "PERMISSION_DENIED"

    def __init__(self, username: str, required_role: str):
        self.username = username
        self.required_role = required_role
        super().__init__(f"User '{username}' requires role '{required_role}'")


class ConcurrencyConflictError(InventoryServiceError):
    """A record was modified by another transaction in the meantime."""

    code: str = "CONCURRENCY_CONFLICT"

    def __init__(self, record: str, record_id: int):
        self.record = record
        self.record_id = record_id
        super().__init__(
            f"{record} {record_id} was modified concurrently, retry the operation"
        )
