"""Repository classes encapsulating database operations.

Each repository is small and focused on a single table (users, roles,
profiles, accommodations, chats, messages, marketplace items, contact
messages). Repositories return SQLModel objects and perform
commits/refreshes where appropriate.
"""

from typing import List, Optional
from sqlmodel import Session, select
from sqlalchemy import or_
from . import models


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_by_username(self, username: str) -> Optional[models.User]:
        """Return a `User` by username or `None` if not found."""
        stmt = select(models.User).where(models.User.username == username)
        return self.session.exec(stmt).first()

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)


class RoleRepository:
    """Grant and list `UserRole` rows."""
    def __init__(self, session: Session):
        self.session = session

    def list_for_user(self, user_id: int) -> List[str]:
        stmt = select(models.UserRole.role).where(models.UserRole.user_id == user_id)
        return list(self.session.exec(stmt).all())

    def grant(self, user_id: int, role: str) -> models.UserRole:
        """Add `role` to the user unless it is already granted."""
        existing = self.session.exec(
            select(models.UserRole).where(models.UserRole.user_id == user_id, models.UserRole.role == role)
        ).first()
        if existing:
            return existing
        row = models.UserRole(user_id=user_id, role=role)
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row


class ProfileRepository:
    """Profile lookups and upserts keyed by `user_id`."""
    def __init__(self, session: Session):
        self.session = session

    def get_by_user(self, user_id: int) -> Optional[models.Profile]:
        stmt = select(models.Profile).where(models.Profile.user_id == user_id)
        return self.session.exec(stmt).first()

    def save(self, profile: models.Profile) -> models.Profile:
        """Insert or update the given profile row."""
        self.session.add(profile)
        self.session.commit()
        self.session.refresh(profile)
        return profile

    def display_names(self, user_ids: List[int]) -> dict:
        """Return `{user_id: display_name}` for the users that have a profile."""
        if not user_ids:
            return {}
        stmt = select(models.Profile).where(models.Profile.user_id.in_(user_ids))
        return {p.user_id: p.display_name for p in self.session.exec(stmt).all()}


class AccommodationRepository:
    """CRUD operations for `Accommodation` listings."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, accommodation_id: int) -> Optional[models.Accommodation]:
        return self.session.get(models.Accommodation, accommodation_id)

    def list_all(self) -> List[models.Accommodation]:
        stmt = select(models.Accommodation).order_by(models.Accommodation.created_at.desc())
        return list(self.session.exec(stmt).all())

    def list_by_landlord(self, landlord_id: int) -> List[models.Accommodation]:
        stmt = select(models.Accommodation).where(models.Accommodation.landlord_id == landlord_id)
        return list(self.session.exec(stmt).all())

    def save(self, accommodation: models.Accommodation) -> models.Accommodation:
        """Insert or update a listing and return the refreshed row."""
        self.session.add(accommodation)
        self.session.commit()
        self.session.refresh(accommodation)
        return accommodation

    def delete(self, accommodation: models.Accommodation) -> None:
        """Delete a listing together with its chats and their messages."""
        chats = self.session.exec(
            select(models.AccommodationChat).where(models.AccommodationChat.accommodation_id == accommodation.id)
        ).all()
        for chat in chats:
            for msg in self.session.exec(select(models.ChatMessage).where(models.ChatMessage.chat_id == chat.id)).all():
                self.session.delete(msg)
            self.session.delete(chat)
        self.session.delete(accommodation)
        self.session.commit()


class ChatRepository:
    """Queries for `AccommodationChat` conversations."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, chat_id: int) -> Optional[models.AccommodationChat]:
        return self.session.get(models.AccommodationChat, chat_id)

    def find(self, accommodation_id: int, tenant_id: int) -> Optional[models.AccommodationChat]:
        stmt = select(models.AccommodationChat).where(
            models.AccommodationChat.accommodation_id == accommodation_id,
            models.AccommodationChat.tenant_id == tenant_id,
        )
        return self.session.exec(stmt).first()

    def create(self, chat: models.AccommodationChat) -> models.AccommodationChat:
        self.session.add(chat)
        self.session.commit()
        self.session.refresh(chat)
        return chat

    def touch(self, chat: models.AccommodationChat) -> None:
        """Bump `updated_at` so recently active chats sort first."""
        chat.updated_at = models.utcnow()
        self.session.add(chat)
        self.session.commit()

    def list_for_user(self, user_id: int) -> List[models.AccommodationChat]:
        """Chats in which the user is either tenant or landlord."""
        stmt = (
            select(models.AccommodationChat)
            .where(or_(models.AccommodationChat.tenant_id == user_id, models.AccommodationChat.landlord_id == user_id))
            .order_by(models.AccommodationChat.updated_at.desc())
        )
        return list(self.session.exec(stmt).all())

    def list_for_landlord(self, landlord_id: int) -> List[models.AccommodationChat]:
        stmt = select(models.AccommodationChat).where(models.AccommodationChat.landlord_id == landlord_id)
        return list(self.session.exec(stmt).all())


class MessageRepository:
    """Insert and list `ChatMessage` rows."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, message: models.ChatMessage) -> models.ChatMessage:
        self.session.add(message)
        self.session.commit()
        self.session.refresh(message)
        return message

    def list_for_chat(self, chat_id: int) -> List[models.ChatMessage]:
        """Messages of a chat, oldest first."""
        stmt = (
            select(models.ChatMessage)
            .where(models.ChatMessage.chat_id == chat_id)
            .order_by(models.ChatMessage.created_at.asc(), models.ChatMessage.id.asc())
        )
        return list(self.session.exec(stmt).all())


class MarketplaceRepository:
    """CRUD operations for `MarketplaceItem` and likes."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, item_id: int) -> Optional[models.MarketplaceItem]:
        return self.session.get(models.MarketplaceItem, item_id)

    def get_active(self, item_id: int) -> Optional[models.MarketplaceItem]:
        stmt = select(models.MarketplaceItem).where(
            models.MarketplaceItem.id == item_id,
            models.MarketplaceItem.status == "active",
        )
        return self.session.exec(stmt).first()

    def get_owned(self, item_id: int, user_id: int) -> Optional[models.MarketplaceItem]:
        """Return the item only when it belongs to `user_id`."""
        stmt = select(models.MarketplaceItem).where(
            models.MarketplaceItem.id == item_id,
            models.MarketplaceItem.user_id == user_id,
        )
        return self.session.exec(stmt).first()

    def list_active(self) -> List[models.MarketplaceItem]:
        stmt = (
            select(models.MarketplaceItem)
            .where(models.MarketplaceItem.status == "active")
            .order_by(models.MarketplaceItem.created_at.desc())
        )
        return list(self.session.exec(stmt).all())

    def list_by_user(self, user_id: int) -> List[models.MarketplaceItem]:
        stmt = (
            select(models.MarketplaceItem)
            .where(models.MarketplaceItem.user_id == user_id)
            .order_by(models.MarketplaceItem.created_at.desc())
        )
        return list(self.session.exec(stmt).all())

    def save(self, item: models.MarketplaceItem) -> models.MarketplaceItem:
        self.session.add(item)
        self.session.commit()
        self.session.refresh(item)
        return item

    def delete(self, item: models.MarketplaceItem) -> None:
        """Delete an item and the likes pointing at it."""
        for like in self.session.exec(select(models.ItemLike).where(models.ItemLike.item_id == item.id)).all():
            self.session.delete(like)
        self.session.delete(item)
        self.session.commit()

    def get_like(self, item_id: int, user_id: int) -> Optional[models.ItemLike]:
        stmt = select(models.ItemLike).where(models.ItemLike.item_id == item_id, models.ItemLike.user_id == user_id)
        return self.session.exec(stmt).first()

    def toggle_like(self, item: models.MarketplaceItem, user_id: int) -> bool:
        """Flip the user's like on `item`; return True when now liked."""
        existing = self.get_like(item.id, user_id)
        if existing:
            self.session.delete(existing)
            item.likes = max(0, (item.likes or 0) - 1)
            liked = False
        else:
            self.session.add(models.ItemLike(item_id=item.id, user_id=user_id))
            item.likes = (item.likes or 0) + 1
            liked = True
        self.session.add(item)
        self.session.commit()
        self.session.refresh(item)
        return liked


class ContactRepository:
    """Persist contact form submissions."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, msg: models.ContactMessage) -> models.ContactMessage:
        self.session.add(msg)
        self.session.commit()
        self.session.refresh(msg)
        return msg
