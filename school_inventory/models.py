"""
SQLAlchemy ORM models for the School Inventory service.

Defines the database schema for the catalog, borrow requests, the audit log
and user accounts.
"""
import enum
from datetime import date, datetime
from sqlalchemy import (
    Boolean, CheckConstraint, Column, Date, DateTime, Enum, ForeignKey, Integer, String, Text,
)
from sqlalchemy.orm import relationship
from .database import Base


class RequestStatus(str, enum.Enum):
    """Lifecycle states of an item request."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    RETURNED = "RETURNED"


class User(Base):
    """
    User model representing an account in the system.
    
    Attributes:
        id (int): Primary key, auto-incremented user ID
        username (str): Login name (unique)
        full_name (str): Display name used in audit messages
        password_hash (str): Hashed password
        role (str): User role (admin, user)
        is_active (bool): Whether the user account is active
        created_at (datetime): Timestamp when the user was created
    """
    __tablename__ = "users"
    
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String, default="user", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class InventoryItem(Base):
    """
    Inventory item model representing a unit of school property in stock.
    
    Attributes:
        id (int): Primary key, auto-incremented inventory item ID
        title (str): Item title shown in the catalog
        quantity (int): Units currently available (never negative)
        date_added (date): Day the item was added to the catalog
        version (int): Optimistic lock counter, bumped on every UPDATE
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_inventory_items_quantity_non_negative"),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, index=True, nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    date_added = Column(Date, default=date.today, nullable=False)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class ItemRequest(Base):
    """
    A user's request to borrow one unit of an inventory item.
    
    Attributes:
        id (int): Primary key
        item_id (int): Requested item; NULL once the item has been deleted
        requester_id (int): User who made the request
        status (RequestStatus): Current lifecycle state
        created_at (datetime): When the request was made
        version (int): Optimistic lock counter
    """
    __tablename__ = "item_requests"
    
    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(Integer, ForeignKey("inventory_items.id", ondelete="SET NULL"), nullable=True, index=True)
    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(Enum(RequestStatus, name="request_status"), nullable=False, default=RequestStatus.PENDING, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    version = Column(Integer, nullable=False)

    item = relationship("InventoryItem")
    requester = relationship("User")

    __mapper_args__ = {"version_id_col": version}


class AuditLogEntry(Base):
    """
    Immutable record of a significant action, shown on the history page.
    
    Attributes:
        id (int): Primary key, auto-incrementing entry ID
        message (str): Human-readable description of the action
        timestamp (datetime): When the action happened
    """
    __tablename__ = "audit_log"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    message = Column(Text, nullable=False)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
