"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories,
object storage and the realtime hub. Services are intentionally thin:
they validate input, enforce row ownership and persist rows via
repositories.

Errors are plain exceptions: `ValueError` for bad input, `LookupError`
for missing rows and `PermissionError` for ownership/role violations.
"""

from datetime import datetime, timedelta, timezone
from passlib.context import CryptContext
import jwt
import logging
from typing import List, Optional
from sqlmodel import Session
from . import models, repositories, storage
from .config import settings
from .realtime import ChannelHub, hub as default_hub, chat_channel, insert_event, row_to_dict
from .utils.filters import filter_accommodations, filter_marketplace_items
from .utils.timefmt import time_ago

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
SELF_ASSIGNABLE_ROLES = ("student", "landlord")

AMENITIES = ["WiFi", "Parking", "Kitchen", "Laundry", "Study Room", "Gym", "Security", "Common Room"]
ROOM_TYPES = ["Single", "Double", "Shared", "Studio"]
LOCATIONS = ["Campus North", "Campus East", "Campus South", "Campus West", "City Center"]
ITEM_CATEGORIES = ["Books", "Electronics", "Furniture", "Appliances", "Sports", "Lab Equipment"]
ITEM_CONDITIONS = ["Excellent", "Good", "Fair"]

logger = logging.getLogger("campus_hub.services")


def _require_text(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise ValueError(f"{field} is required")
    return str(value).strip()


def _with_images(data: dict) -> dict:
    data = dict(data)
    if data.get("image_urls") is None:
        data["image_urls"] = []
    return data


def _keep_images(data: dict, row) -> dict:
    """Fill an omitted `image_urls` with the row's current images."""
    data = dict(data)
    if data.get("image_urls") is None:
        data["image_urls"] = list(row.image_urls or [])
    return data


class AuthService:
    """Authentication related operations (register + authenticate)."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.role_repo = repositories.RoleRepository(session)

    def register(self, username: str, password: str, role: str = "student") -> models.User:
        """Create a new user with a hashed password and an initial role.

        Registering an existing username returns the existing user
        unchanged, which keeps automation and tests idempotent.
        """
        username = _require_text(username, "username")
        if not password:
            raise ValueError("password is required")
        if role not in SELF_ASSIGNABLE_ROLES:
            raise ValueError(f"role must be one of: {', '.join(SELF_ASSIGNABLE_ROLES)}")
        existing = self.user_repo.get_by_username(username)
        if existing:
            return existing
        user = self.user_repo.create(models.User(username=username, password_hash=PWD_CTX.hash(password)))
        self.role_repo.grant(user.id, role)
        return user

    def authenticate(self, username: str, password: str) -> Optional[str]:
        """Verify credentials and return a signed JWT token on success.

        Returns `None` if authentication fails.
        """
        user = self.user_repo.get_by_username(username)
        if not user:
            return None
        if not PWD_CTX.verify(password, user.password_hash):
            return None
        expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
        payload = {"user_id": user.id, "username": user.username, "exp": int(expire.timestamp())}
        return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

    def describe(self, user: models.User) -> dict:
        """Return the user's identity with role list and role flags."""
        roles = self.role_repo.list_for_user(user.id)
        return {
            "id": user.id,
            "username": user.username,
            "roles": roles,
            "is_admin": "admin" in roles,
            "is_moderator": "moderator" in roles,
            "is_landlord": "landlord" in roles,
            "is_student": "student" in roles,
        }

class ProfileService:
    """Read and upsert the caller's profile."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.ProfileRepository(session)
        self.role_repo = repositories.RoleRepository(session)

    def get(self, user_id: int) -> models.Profile:
        profile = self.repo.get_by_user(user_id)
        if not profile:
            raise LookupError("profile not found")
        return profile

    def upsert(self, user_id: int, data: dict) -> models.Profile:
        """Insert the profile when missing, otherwise update it in place."""
        if data.get("year_of_study") is not None and not 1 <= data["year_of_study"] <= 10:
            raise ValueError("year_of_study must be between 1 and 10")
        if data.get("role") is not None and data["role"] not in models.APP_ROLES:
            raise ValueError(f"unknown role: {data['role']}")
        if data.get("avatar_url"):
            storage.check_owned_urls([data["avatar_url"]], user_id)
        profile = self.repo.get_by_user(user_id)
        if profile is None:
            profile = models.Profile(user_id=user_id)
        if profile.role is None and data.get("role") is None and "landlord" in self.role_repo.list_for_user(user_id):
            data = {**data, "role": "landlord"}
        for field, value in data.items():
            setattr(profile, field, value)
        profile.updated_at = models.utcnow()
        return self.repo.save(profile)

    def set_avatar(self, user_id: int, payload: bytes) -> models.Profile:
        """Store an avatar image and point the profile at it."""
        url = storage.store_images(storage.AVATAR_BUCKET, user_id, [payload])[0]
        profile = self.repo.get_by_user(user_id) or models.Profile(user_id=user_id)
        old = profile.avatar_url
        profile.avatar_url = url
        profile.updated_at = models.utcnow()
        saved = self.repo.save(profile)
        if old:
            storage.remove_urls([old], user_id)
        return saved

    def public_profile(self, user_id: int) -> dict:
        """Expose only the fields other users may see."""
        profile = self.repo.get_by_user(user_id)
        if not profile:
            raise LookupError("profile not found")
        return {"user_id": profile.user_id, "display_name": profile.display_name, "avatar_url": profile.avatar_url}


class AccommodationService:
    """Listing editor operations for landlords plus public browsing."""
    def __init__(self, session: Session, hub: Optional[ChannelHub] = None):
        self.session = session
        self.repo = repositories.AccommodationRepository(session)
        self.hub = hub

    @staticmethod
    def options() -> dict:
        return {
            "amenities": AMENITIES,
            "room_types": ROOM_TYPES,
            "locations": LOCATIONS,
            "price_ranges": ["budget", "mid", "premium"],
            "max_images": settings.MAX_LISTING_IMAGES,
        }

    def search(self, search=None, price_range=None, room_type=None, location=None, available_only=False):
        return filter_accommodations(self.repo.list_all(), search, price_range, room_type, location, available_only)

    def get(self, accommodation_id: int) -> models.Accommodation:
        acc = self.repo.get(accommodation_id)
        if not acc:
            raise LookupError("accommodation not found")
        return acc

    def get_owned(self, user_id: int, accommodation_id: int) -> models.Accommodation:
        acc = self.get(accommodation_id)
        if acc.landlord_id != user_id:
            raise PermissionError("only the landlord can change this property")
        return acc

    def _validate(self, data: dict) -> dict:
        data["name"] = _require_text(data.get("name"), "name")
        data["location"] = _require_text(data.get("location"), "location")
        data["description"] = _require_text(data.get("description"), "description")
        if data.get("price") is None or data["price"] <= 0:
            raise ValueError("price must be greater than 0")
        if data.get("capacity") is None or data["capacity"] < 1:
            raise ValueError("capacity must be at least 1")
        if data.get("room_type") not in ROOM_TYPES:
            raise ValueError(f"room_type must be one of: {', '.join(ROOM_TYPES)}")
        unknown = [a for a in data.get("amenities") or [] if a not in AMENITIES]
        if unknown:
            raise ValueError(f"unknown amenities: {', '.join(unknown)}")
        if len(data.get("image_urls") or []) > settings.MAX_LISTING_IMAGES:
            raise ValueError(f"Maximum {settings.MAX_LISTING_IMAGES} images allowed")
        return data

    def create(self, landlord_id: int, data: dict) -> models.Accommodation:
        data = self._validate(_with_images(data))
        storage.check_owned_urls(data["image_urls"], landlord_id)
        acc = models.Accommodation(landlord_id=landlord_id, **data)
        saved = self.repo.save(acc)
        logger.info("accommodation %s created by %s", saved.id, landlord_id)
        return saved

    def update(self, landlord_id: int, accommodation_id: int, data: dict) -> models.Accommodation:
        acc = self.get_owned(landlord_id, accommodation_id)
        data = self._validate(_keep_images(data, acc))
        storage.check_owned_urls([u for u in data["image_urls"] if u not in (acc.image_urls or [])], landlord_id)
        dropped = [u for u in acc.image_urls or [] if u not in data["image_urls"]]
        for field, value in data.items():
            setattr(acc, field, value)
        acc.updated_at = models.utcnow()
        saved = self.repo.save(acc)
        storage.remove_urls(dropped, landlord_id)
        return saved

    def delete(self, landlord_id: int, accommodation_id: int) -> None:
        acc = self.get_owned(landlord_id, accommodation_id)
        urls = list(acc.image_urls or [])
        self.repo.delete(acc)
        storage.remove_urls(urls, landlord_id)
        logger.info("accommodation %s deleted by %s", accommodation_id, landlord_id)

    def add_images(self, landlord_id: int, accommodation_id: int, payloads: List[bytes]) -> models.Accommodation:
        acc = self.get_owned(landlord_id, accommodation_id)
        current = list(acc.image_urls or [])
        if not payloads:
            raise ValueError("no files")
        if len(current) + len(payloads) > settings.MAX_LISTING_IMAGES:
            raise ValueError(f"Maximum {settings.MAX_LISTING_IMAGES} images allowed")
        urls = storage.store_images(storage.ACCOMMODATION_BUCKET, landlord_id, payloads)
        acc.image_urls = current + urls
        acc.updated_at = models.utcnow()
        return self.repo.save(acc)

    def remove_image(self, landlord_id: int, accommodation_id: int, index: int) -> models.Accommodation:
        acc = self.get_owned(landlord_id, accommodation_id)
        current = list(acc.image_urls or [])
        if not 0 <= index < len(current):
            raise LookupError("image not found")
        removed = current.pop(index)
        acc.image_urls = current
        acc.updated_at = models.utcnow()
        saved = self.repo.save(acc)
        storage.remove_urls([removed], landlord_id)
        return saved

    def book(self, tenant_id: int, accommodation_id: int, move_in_date=None, duration_months=None, note=None) -> dict:
        """Send a booking request to the landlord through the listing's chat.

        The request opens (or reuses) the tenant's conversation and posts
        a message describing the booking.
        """
        acc = self.get(accommodation_id)
        if acc.landlord_id == tenant_id:
            raise ValueError("you cannot book your own property")
        if not acc.available:
            raise ValueError("this property is not available")
        if duration_months is not None and duration_months < 1:
            raise ValueError("duration_months must be at least 1")
        parts = [f"Booking request for {acc.name}"]
        if move_in_date:
            parts.append(f"move-in {move_in_date.isoformat()}")
        if duration_months:
            parts.append(f"{duration_months} month{'s' if duration_months > 1 else ''}")
        text = ", ".join(parts)
        if note and note.strip():
            text += f". Note: {note.strip()}"
        chats = ChatService(self.session, hub=self.hub)
        chat = chats.open_chat(tenant_id, accommodation_id)
        message = chats.send_message(tenant_id, chat.id, text)
        return {
            "status": "sent",
            "detail": "Your booking request has been sent to the owner. They will contact you shortly.",
            "chat_id": chat.id,
            "message": row_to_dict(message),
        }


class ChatService:
    """Landlord/tenant conversations and their realtime fan-out."""
    def __init__(self, session: Session, hub: Optional[ChannelHub] = None):
        self.session = session
        self.hub = hub or default_hub
        self.chat_repo = repositories.ChatRepository(session)
        self.msg_repo = repositories.MessageRepository(session)
        self.acc_repo = repositories.AccommodationRepository(session)
        self.profile_repo = repositories.ProfileRepository(session)

    def open_chat(self, tenant_id: int, accommodation_id: int) -> models.AccommodationChat:
        """Return the tenant's chat for a listing, creating it if needed."""
        acc = self.acc_repo.get(accommodation_id)
        if not acc:
            raise LookupError("accommodation not found")
        if acc.landlord_id == tenant_id:
            raise ValueError("landlords cannot open a chat on their own property")
        chat = self.chat_repo.find(accommodation_id, tenant_id)
        if chat:
            return chat
        return self.chat_repo.create(
            models.AccommodationChat(accommodation_id=accommodation_id, tenant_id=tenant_id, landlord_id=acc.landlord_id)
        )

    def get_for_participant(self, user_id: int, chat_id: int) -> models.AccommodationChat:
        chat = self.chat_repo.get(chat_id)
        if not chat:
            raise LookupError("chat not found")
        if user_id not in (chat.tenant_id, chat.landlord_id):
            raise PermissionError("not a participant of this chat")
        return chat

    def describe(self, chats: List[models.AccommodationChat]) -> List[dict]:
        """Attach the listing name and tenant display name to each chat."""
        names = self.profile_repo.display_names([c.tenant_id for c in chats])
        out = []
        for c in chats:
            acc = self.acc_repo.get(c.accommodation_id)
            out.append({
                "id": c.id,
                "accommodation_id": c.accommodation_id,
                "tenant_id": c.tenant_id,
                "landlord_id": c.landlord_id,
                "created_at": c.created_at,
                "updated_at": c.updated_at,
                "accommodation_name": acc.name if acc else None,
                "tenant_display_name": names.get(c.tenant_id),
            })
        return out

    def list_chats(self, user_id: int) -> List[dict]:
        return self.describe(self.chat_repo.list_for_user(user_id))

    def list_messages(self, user_id: int, chat_id: int) -> List[models.ChatMessage]:
        self.get_for_participant(user_id, chat_id)
        return self.msg_repo.list_for_chat(chat_id)

    def send_message(self, user_id: int, chat_id: int, text: str) -> models.ChatMessage:
        """Insert a message and push it to the chat's live subscribers."""
        chat = self.get_for_participant(user_id, chat_id)
        body = (text or "").strip()
        if not body:
            raise ValueError("message must not be empty")
        if len(body) > 4000:
            raise ValueError("message too long")
        msg = self.msg_repo.create(models.ChatMessage(chat_id=chat.id, sender_id=user_id, message=body))
        self.chat_repo.touch(chat)
        self.session.refresh(msg)
        self.hub.publish(chat_channel(chat.id), insert_event("chat_messages", row_to_dict(msg)))
        return msg


class MarketplaceService:
    """Post, edit and browse marketplace items."""
    REQUIRED = ("title", "price", "category", "condition", "description", "seller_name", "seller_contact")

    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.MarketplaceRepository(session)

    @staticmethod
    def options() -> dict:
        return {
            "categories": ITEM_CATEGORIES,
            "conditions": ITEM_CONDITIONS,
            "price_ranges": ["under50", "50to100", "over100"],
            "max_images": settings.MAX_LISTING_IMAGES,
        }

    def _validate(self, data: dict) -> dict:
        missing = [f for f in self.REQUIRED if data.get(f) is None or (isinstance(data[f], str) and not data[f].strip())]
        if missing:
            raise ValueError("Please fill in all required fields")
        if data["price"] < 0:
            raise ValueError("price must not be negative")
        if data.get("original_price") is not None and data["original_price"] < 0:
            raise ValueError("original_price must not be negative")
        if data["category"] not in ITEM_CATEGORIES:
            raise ValueError(f"category must be one of: {', '.join(ITEM_CATEGORIES)}")
        if data["condition"] not in ITEM_CONDITIONS:
            raise ValueError(f"condition must be one of: {', '.join(ITEM_CONDITIONS)}")
        if len(data.get("image_urls") or []) > settings.MAX_LISTING_IMAGES:
            raise ValueError(f"Maximum {settings.MAX_LISTING_IMAGES} images allowed")
        if not (data.get("location") or "").strip():
            data["location"] = "Not specified"
        return data

    def search(self, search=None, category=None, price_range=None, condition=None):
        return filter_marketplace_items(self.repo.list_active(), search, category, price_range, condition)

    def mine(self, user_id: int):
        return self.repo.list_by_user(user_id)

    def detail(self, item_id: int) -> dict:
        item = self.repo.get_active(item_id)
        if not item:
            raise LookupError("item not found")
        out = item.model_dump()
        out["time_ago"] = time_ago(item.created_at)
        return out

    def get_owned(self, user_id: int, item_id: int) -> models.MarketplaceItem:
        """Select by id AND owner, so other users see a missing row."""
        item = self.repo.get_owned(item_id, user_id)
        if not item:
            raise LookupError("item not found")
        return item

    def create(self, user_id: int, data: dict) -> models.MarketplaceItem:
        data = self._validate(_with_images(data))
        storage.check_owned_urls(data["image_urls"], user_id)
        item = self.repo.save(models.MarketplaceItem(user_id=user_id, status="active", **data))
        logger.info("marketplace item %s posted by %s", item.id, user_id)
        return item

    def update(self, user_id: int, item_id: int, data: dict) -> models.MarketplaceItem:
        item = self.get_owned(user_id, item_id)
        data = self._validate(_keep_images(data, item))
        storage.check_owned_urls([u for u in data["image_urls"] if u not in (item.image_urls or [])], user_id)
        dropped = [u for u in item.image_urls or [] if u not in data["image_urls"]]
        for field, value in data.items():
            setattr(item, field, value)
        item.updated_at = models.utcnow()
        saved = self.repo.save(item)
        storage.remove_urls(dropped, user_id)
        return saved

    def set_status(self, user_id: int, item_id: int, status: str) -> models.MarketplaceItem:
        if status not in models.ITEM_STATUSES:
            raise ValueError(f"status must be one of: {', '.join(models.ITEM_STATUSES)}")
        item = self.get_owned(user_id, item_id)
        item.status = status
        item.updated_at = models.utcnow()
        return self.repo.save(item)

    def delete(self, user_id: int, item_id: int) -> None:
        item = self.get_owned(user_id, item_id)
        urls = list(item.image_urls or [])
        self.repo.delete(item)
        storage.remove_urls(urls, user_id)

    def add_images(self, user_id: int, item_id: int, payloads: List[bytes]) -> models.MarketplaceItem:
        item = self.get_owned(user_id, item_id)
        current = list(item.image_urls or [])
        if not payloads:
            raise ValueError("no files")
        if len(current) + len(payloads) > settings.MAX_LISTING_IMAGES:
            raise ValueError(f"Maximum {settings.MAX_LISTING_IMAGES} images allowed")
        item.image_urls = current + storage.store_images(storage.MARKETPLACE_BUCKET, user_id, payloads)
        item.updated_at = models.utcnow()
        return self.repo.save(item)

    def toggle_like(self, user_id: int, item_id: int) -> dict:
        item = self.repo.get_active(item_id)
        if not item:
            raise LookupError("item not found")
        liked = self.repo.toggle_like(item, user_id)
        return {"item_id": item.id, "liked": liked, "likes": item.likes}

    def contact(self, item_id: int) -> dict:
        """Describe how to reach the seller of an active item."""
        item = self.repo.get_active(item_id)
        if not item:
            raise LookupError("item not found")
        if "@" in item.seller_contact:
            return {
                "method": "email",
                "contact": item.seller_contact,
                "mailto": f"mailto:{item.seller_contact}?subject=Interested in {item.title}",
            }
        return {"method": "other", "contact": item.seller_contact, "detail": f"Contact seller at: {item.seller_contact}"}


class DashboardService:
    """Aggregate a landlord's properties and conversations."""
    def __init__(self, session: Session):
        self.session = session
        self.acc_repo = repositories.AccommodationRepository(session)
        self.chat_repo = repositories.ChatRepository(session)

    def summary(self, landlord_id: int) -> dict:
        accommodations = self.acc_repo.list_by_landlord(landlord_id)
        chats = ChatService(self.session).describe(self.chat_repo.list_for_landlord(landlord_id))
        occupied = [a for a in accommodations if not a.available]
        return {
            "accommodations": accommodations,
            "chats": chats,
            "stats": {
                "total_properties": len(accommodations),
                "occupied_properties": len(occupied),
                "active_chats": len(chats),
                "total_revenue": sum(a.price for a in occupied),
            },
        }


class ContactService:
    """Store contact form submissions."""
    def __init__(self, session: Session):
        self.repo = repositories.ContactRepository(session)

    def submit(self, data: dict) -> models.ContactMessage:
        for field in ("name", "email", "subject", "message"):
            _require_text(data.get(field), field)
        if "@" not in data["email"]:
            raise ValueError("email must be a valid address")
        cleaned = {k: (v.strip() if isinstance(v, str) else v) for k, v in data.items()}
        msg = self.repo.create(models.ContactMessage(**cleaned))
        logger.info("contact message %s received (%s)", msg.id, msg.subject)
        return msg
