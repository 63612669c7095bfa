"""
Pydantic schemas for request/response validation in the School Inventory service.

These schemas define the structure of data for API requests and responses.
"""
from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, Field

from .models import RequestStatus


class InventoryItemBase(BaseModel):
    """Base schema with common inventory item attributes."""
    title: str = Field(..., min_length=1)
    quantity: int = Field(0, ge=0)

class InventoryItemCreate(InventoryItemBase):
    """Schema for creating a new inventory item."""
    pass

class InventoryItemUpdate(BaseModel):
    """Schema for updating an existing inventory item. All fields are optional."""
    title: Optional[str] = Field(default=None, min_length=1)
    quantity: Optional[int] = Field(default=None, ge=0)

class InventoryItem(InventoryItemBase):
    """
    Schema for inventory item responses, includes all database fields.
    
    Attributes:
        id (int): Inventory item's unique identifier
        title (str): Item title
        quantity (int): Units available
        date_added (date): When the item was added to the catalog
    """
    id: int
    date_added: date
    
    class Config:
        from_attributes = True


class UserRegister(BaseModel):
    """Schema for user registration with password."""
    username: str = Field(..., min_length=3, max_length=64)
    full_name: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8, description="Password must be at least 8 characters")

class UserLogin(BaseModel):
    """Schema for user login."""
    username: str
    password: str

class Token(BaseModel):
    """Schema for JWT token response."""
    access_token: str
    token_type: str = "bearer"

class TokenData(BaseModel):
    """Schema for data stored in JWT token."""
    user_id: Optional[int] = None
    username: Optional[str] = None
    role: Optional[str] = None

class User(BaseModel):
    """Schema for user responses, excludes the password hash."""
    id: int
    username: str
    full_name: str
    role: str
    is_active: bool
    created_at: datetime
    
    class Config:
        from_attributes = True


class Requester(BaseModel):
    """Short user reference embedded in request responses."""
    id: int
    username: str
    full_name: str

    class Config:
        from_attributes = True

class ItemRequest(BaseModel):
    """
    Schema for item request responses.
    
    Attributes:
        id (int): Request identifier
        status (RequestStatus): Lifecycle state
        created_at (datetime): When the request was made
        item (InventoryItem): Requested item, None if it was deleted
        requester (Requester): User who made the request
    """
    id: int
    status: RequestStatus
    created_at: datetime
    item: Optional[InventoryItem] = None
    requester: Requester
    
    class Config:
        from_attributes = True


class AuditLogEntry(BaseModel):
    """Schema for audit history entries."""
    id: int
    message: str
    timestamp: datetime
    
    class Config:
        from_attributes = True
