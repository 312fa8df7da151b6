"""SQLModel data models.

This module defines the application's database tables using SQLModel.
List-valued columns (amenities, image URLs, delivery and payment options)
and the free-form `payment_details` object are stored as JSON columns.
"""

from typing import Optional, List
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Column, JSON, UniqueConstraint
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


APP_ROLES = ("admin", "moderator", "landlord", "student")
ITEM_STATUSES = ("active", "sold", "removed")


class User(SQLModel, table=True):
    """A registered user.

    Fields:
    - `username`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    created_at: datetime = Field(default_factory=utcnow)


class UserRole(SQLModel, table=True):
    """A role granted to a user. One row per (user, role)."""
    __table_args__ = (UniqueConstraint("user_id", "role"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    role: str
    created_at: datetime = Field(default_factory=utcnow)


class Profile(SQLModel, table=True):
    """Public and private profile details, one per user."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True, unique=True)
    display_name: Optional[str] = None
    university: Optional[str] = None
    student_id: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    year_of_study: Optional[int] = None
    role: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Accommodation(SQLModel, table=True):
    """A property listed by a landlord."""
    id: Optional[int] = Field(default=None, primary_key=True)
    landlord_id: int = Field(foreign_key="user.id", index=True)
    name: str
    location: str = Field(index=True)
    price: float
    room_type: str
    capacity: int
    amenities: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    description: str
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    available: bool = True
    rating: Optional[float] = None
    image_urls: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    payment_details: dict = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    chats: List["AccommodationChat"] = Relationship(back_populates="accommodation")


class AccommodationChat(SQLModel, table=True):
    """A conversation between a prospective tenant and a listing's landlord."""
    __table_args__ = (UniqueConstraint("accommodation_id", "tenant_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    accommodation_id: int = Field(foreign_key="accommodation.id", index=True)
    tenant_id: int = Field(foreign_key="user.id", index=True)
    landlord_id: int = Field(foreign_key="user.id", index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    accommodation: Optional[Accommodation] = Relationship(back_populates="chats")
    messages: List["ChatMessage"] = Relationship(back_populates="chat")


class ChatMessage(SQLModel, table=True):
    """A single message inside an `AccommodationChat`."""
    id: Optional[int] = Field(default=None, primary_key=True)
    chat_id: int = Field(foreign_key="accommodationchat.id", index=True)
    sender_id: int = Field(foreign_key="user.id")
    message: str
    created_at: datetime = Field(default_factory=utcnow)
    chat: Optional[AccommodationChat] = Relationship(back_populates="messages")


class MarketplaceItem(SQLModel, table=True):
    """An item offered for sale by a student."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    title: str
    description: str
    price: float
    original_price: Optional[float] = None
    category: str = Field(index=True)
    condition: str
    location: str = "Not specified"
    seller_name: str
    seller_contact: str
    image_urls: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    delivery_options: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    delivery_notes: Optional[str] = None
    payment_methods: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    likes: int = 0
    status: str = Field(default="active", index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ItemLike(SQLModel, table=True):
    """A user's like on a marketplace item."""
    __table_args__ = (UniqueConstraint("item_id", "user_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    item_id: int = Field(foreign_key="marketplaceitem.id", index=True)
    user_id: int = Field(foreign_key="user.id")
    created_at: datetime = Field(default_factory=utcnow)


class ContactMessage(SQLModel, table=True):
    """A message submitted through the contact form."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str
    university: Optional[str] = None
    subject: str
    message: str
    created_at: datetime = Field(default_factory=utcnow)
