"""Pydantic request/response schemas used by the API.

Schemas keep API input shapes stable and provide validation for
controller handlers and tests. Required-field checks that produce the
user-facing "missing information" messages live in the services so the
wording stays in one place.
"""

from datetime import date
from pydantic import BaseModel, Field
from typing import List, Optional


class RegisterIn(BaseModel):
    """Payload for user registration."""
    username: str
    password: str
    role: str = "student"


class LoginIn(BaseModel):
    """Payload for the login endpoint."""
    username: str
    password: str


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str
    token_type: str = "bearer"


class ProfileIn(BaseModel):
    """Editable profile fields."""
    display_name: Optional[str] = None
    university: Optional[str] = None
    student_id: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    year_of_study: Optional[int] = None
    role: Optional[str] = None


class AccommodationIn(BaseModel):
    """Listing fields submitted by the accommodation editor."""
    name: str
    location: str
    price: float
    room_type: str
    capacity: int
    amenities: List[str] = Field(default_factory=list)
    description: str
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    available: bool = True
    image_urls: Optional[List[str]] = None
    payment_details: dict = Field(default_factory=dict)


class BookingIn(BaseModel):
    """Booking request sent to a landlord."""
    move_in_date: Optional[date] = None
    duration_months: Optional[int] = None
    note: Optional[str] = None


class MarketplaceItemIn(BaseModel):
    """Fields for posting or editing a marketplace item."""
    title: str = ""
    description: str = ""
    price: Optional[float] = None
    original_price: Optional[float] = None
    category: str = ""
    condition: str = ""
    location: Optional[str] = None
    seller_name: str = ""
    seller_contact: str = ""
    image_urls: Optional[List[str]] = None
    delivery_options: List[str] = Field(default_factory=list)
    delivery_notes: Optional[str] = None
    payment_methods: List[str] = Field(default_factory=list)


class ItemStatusIn(BaseModel):
    """New status for a marketplace item."""
    status: str


class MessageIn(BaseModel):
    """A chat message body."""
    message: str


class ContactIn(BaseModel):
    """Contact form submission."""
    name: str = ""
    email: str = ""
    university: Optional[str] = None
    subject: str = ""
    message: str = ""
