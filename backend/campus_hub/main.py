"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP and websocket endpoints of the Campus Hub
backend. Controllers are intentionally thin: they accept requests,
delegate to services, and return JSON responses.

Endpoints implemented:
- POST /auth/register, POST /auth/login, GET /auth/me
- GET/PUT /profile/me, POST /profile/me/avatar, GET /profiles/{user_id}/public
- GET /accommodations/options, GET/POST /accommodations,
  GET/PUT/DELETE /accommodations/{id}, POST /accommodations/{id}/images,
  DELETE /accommodations/{id}/images/{index}, POST /accommodations/{id}/book,
  POST /accommodations/{id}/chats
- GET /chats, GET/POST /chats/{id}/messages, WS /chats/{id}/ws
- GET /marketplace/options, GET/POST /marketplace/items, GET /marketplace/items/mine,
  GET/PUT/DELETE /marketplace/items/{id}, POST /marketplace/items/{id}/status,
  POST /marketplace/items/{id}/images, POST /marketplace/items/{id}/like,
  GET /marketplace/items/{id}/contact
- GET /landlord/dashboard
- GET /faqs, GET /contact/info, POST /contact
- GET /, GET /health
"""

from fastapi import FastAPI, Depends, UploadFile, File, HTTPException, Request, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse, HTMLResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool
from sqlmodel import Session
from typing import List, Optional
import asyncio
import json
import logging
import os
import time
import uuid
from .database import engine, create_db_and_tables, get_session
from . import services, models, storage, content
from .auth import get_current_user, require_role, user_from_token
from .schemas import (
    RegisterIn, LoginIn, TokenOut, ProfileIn, AccommodationIn, BookingIn,
    MarketplaceItemIn, ItemStatusIn, MessageIn, ContactIn,
)
from .realtime import hub, chat_channel
from .utils.rate_limit import SlidingWindowLimiter
from .config import settings

app = FastAPI(title="Campus Hub API")
logger = logging.getLogger("campus_hub.api")
if not logger.handlers:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
_contact_limiter = SlidingWindowLimiter(settings.CONTACT_RATE_LIMIT_PER_MIN, 60)
_message_limiter = SlidingWindowLimiter(settings.MESSAGE_RATE_LIMIT_PER_MIN, 60)

# Wide-open CORS for locally served frontends in dev.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Public object URLs resolve here.
storage_root = storage.get_storage_root()
storage_root.mkdir(parents=True, exist_ok=True)
app.mount("/storage", StaticFiles(directory=storage_root), name="storage")

create_db_and_tables()


@app.exception_handler(LookupError)
async def not_found_handler(request: Request, exc: LookupError):
    return JSONResponse(status_code=404, content={"detail": str(exc.args[0]) if exc.args else "not found"})


@app.exception_handler(PermissionError)
async def forbidden_handler(request: Request, exc: PermissionError):
    return JSONResponse(status_code=403, content={"detail": str(exc.args[0]) if exc.args else "forbidden"})


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    context = {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        "client": request.client.host if request.client else "unknown",
    }
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        context["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception("request_failed %s", json.dumps(context, ensure_ascii=True))
        raise
    response.headers["X-Request-ID"] = req_id
    context["status_code"] = response.status_code
    context["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info("request_done %s", json.dumps(context, ensure_ascii=True))
    return response


def _enforce_rate_limit(limiter: SlidingWindowLimiter, key: str) -> None:
    retry_after = limiter.hit(key)
    if retry_after:
        raise HTTPException(
            status_code=429,
            detail=f"rate limit exceeded; retry after {retry_after}s",
            headers={"Retry-After": str(retry_after)},
        )


def _read_images(files: List[UploadFile]) -> List[bytes]:
    """Read uploaded files, enforcing name and size limits."""
    payloads = []
    for f in files:
        if not f.filename or len(f.filename) > 200 or "/" in f.filename or "\\" in f.filename:
            raise HTTPException(status_code=400, detail="invalid filename")
        data = f.file.read(settings.MAX_UPLOAD_BYTES + 1)
        if len(data) > settings.MAX_UPLOAD_BYTES:
            raise HTTPException(status_code=400, detail=f"{f.filename}: file too large")
        payloads.append(data)
    return payloads


# --- auth -----------------------------------------------------------------

@app.post('/auth/register')
def register(payload: RegisterIn, db: Session = Depends(get_session)):
    """Register a new user (idempotent).

    Returns the existing user if the username is already taken so the
    operation can be repeated safely by automation and tests.
    """
    auth = services.AuthService(db)
    try:
        user = auth.register(payload.username, payload.password, payload.role)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return auth.describe(user)


@app.post('/auth/login', response_model=TokenOut)
def login(payload: LoginIn, db: Session = Depends(get_session)):
    """Authenticate a user and return a short-lived JWT token."""
    token = services.AuthService(db).authenticate(payload.username, payload.password)
    if not token:
        raise HTTPException(status_code=401, detail='invalid credentials')
    return {'access_token': token, 'token_type': 'bearer'}


@app.get('/auth/me')
def me(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Return the caller's identity and role flags."""
    return services.AuthService(db).describe(user)


# --- profiles ---------------------------------------------------------------

@app.get('/profile/me')
def get_my_profile(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.ProfileService(db).get(user.id)


@app.put('/profile/me')
def save_my_profile(payload: ProfileIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Create the caller's profile on first save, update it afterwards."""
    try:
        return services.ProfileService(db).upsert(user.id, payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post('/profile/me/avatar')
def upload_avatar(file: UploadFile = File(...), db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    payload = _read_images([file])[0]
    try:
        return services.ProfileService(db).set_avatar(user.id, payload)
    except storage.UnsupportedMediaError as e:
        raise HTTPException(status_code=415, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get('/profiles/{user_id}/public')
def public_profile(user_id: int, db: Session = Depends(get_session)):
    """Public subset of a profile: display name and avatar."""
    return services.ProfileService(db).public_profile(user_id)


# --- accommodations ----------------------------------------------------------

@app.get('/accommodations/options')
def accommodation_options():
    return services.AccommodationService.options()


@app.get('/accommodations')
def list_accommodations(
    search: Optional[str] = None,
    price_range: Optional[str] = None,
    room_type: Optional[str] = None,
    location: Optional[str] = None,
    available_only: bool = False,
    db: Session = Depends(get_session),
):
    """List properties filtered like the accommodation search page.

    `price_range` is one of `budget`, `mid`, `premium` or `all`.
    """
    try:
        return services.AccommodationService(db).search(search, price_range, room_type, location, available_only)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get('/accommodations/{accommodation_id}')
def get_accommodation(accommodation_id: int, db: Session = Depends(get_session)):
    return services.AccommodationService(db).get(accommodation_id)


@app.post('/accommodations', status_code=201)
def create_accommodation(
    payload: AccommodationIn,
    db: Session = Depends(get_session),
    user: models.User = Depends(require_role("landlord", "admin")),
):
    """Add a property owned by the calling landlord."""
    try:
        return services.AccommodationService(db).create(user.id, payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.put('/accommodations/{accommodation_id}')
def update_accommodation(
    accommodation_id: int,
    payload: AccommodationIn,
    db: Session = Depends(get_session),
    user: models.User = Depends(get_current_user),
):
    """Replace a property's fields. Only its landlord may do this."""
    try:
        return services.AccommodationService(db).update(user.id, accommodation_id, payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.delete('/accommodations/{accommodation_id}')
def delete_accommodation(accommodation_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    services.AccommodationService(db).delete(user.id, accommodation_id)
    return {'status': 'deleted', 'id': accommodation_id}


@app.post('/accommodations/{accommodation_id}/images')
def upload_accommodation_images(
    accommodation_id: int,
    files: List[UploadFile] = File(...),
    db: Session = Depends(get_session),
    user: models.User = Depends(get_current_user),
):
    """Upload photos for a property (at most MAX_LISTING_IMAGES in total)."""
    payloads = _read_images(files)
    try:
        return services.AccommodationService(db).add_images(user.id, accommodation_id, payloads)
    except storage.UnsupportedMediaError as e:
        raise HTTPException(status_code=415, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.delete('/accommodations/{accommodation_id}/images/{index}')
def delete_accommodation_image(accommodation_id: int, index: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.AccommodationService(db).remove_image(user.id, accommodation_id, index)


@app.post('/accommodations/{accommodation_id}/book')
def book_accommodation(
    accommodation_id: int,
    payload: BookingIn,
    db: Session = Depends(get_session),
    user: models.User = Depends(get_current_user),
):
    """Send a booking request to the landlord via the listing chat."""
    _enforce_rate_limit(_message_limiter, f"user:{user.id}")
    try:
        return services.AccommodationService(db, hub=hub).book(
            user.id, accommodation_id, payload.move_in_date, payload.duration_months, payload.note
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post('/accommodations/{accommodation_id}/chats')
def open_chat(accommodation_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Open (or return the existing) conversation with the landlord."""
    svc = services.ChatService(db, hub=hub)
    try:
        chat = svc.open_chat(user.id, accommodation_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return svc.describe([chat])[0]


# --- chats --------------------------------------------------------------------

@app.get('/chats')
def list_chats(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Chats where the caller is tenant or landlord, most recent first."""
    return services.ChatService(db, hub=hub).list_chats(user.id)


@app.get('/chats/{chat_id}/messages')
def list_messages(chat_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.ChatService(db, hub=hub).list_messages(user.id, chat_id)


@app.post('/chats/{chat_id}/messages', status_code=201)
def send_message(chat_id: int, payload: MessageIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Insert a message; live subscribers of the chat receive it immediately."""
    _enforce_rate_limit(_message_limiter, f"user:{user.id}")
    try:
        return services.ChatService(db, hub=hub).send_message(user.id, chat_id, payload.message)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _authorize_chat_feed(token: str, chat_id: int) -> models.User:
    user = user_from_token(token)
    with Session(engine) as session:
        services.ChatService(session, hub=hub).get_for_participant(user.id, chat_id)
    return user


@app.websocket('/chats/{chat_id}/ws')
async def chat_feed(websocket: WebSocket, chat_id: int, token: str = ""):
    """Push every message inserted into the chat while the socket is open.

    The subscription is opened before the handshake completes and removed
    when the client disconnects. A `ping` text frame is answered with `pong`;
    other client frames are ignored.
    """
    try:
        user = await run_in_threadpool(_authorize_chat_feed, token, chat_id)
    except HTTPException as exc:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=str(exc.detail))
        return
    except (LookupError, PermissionError) as exc:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=str(exc))
        return

    subscription = hub.subscribe(chat_channel(chat_id))
    await websocket.accept()
    logger.info("chat_feed_open %s", json.dumps({"chat_id": chat_id, "user_id": user.id}))

    async def _forward():
        while True:
            event = await subscription.get()
            await websocket.send_json(event)

    forward = asyncio.create_task(_forward())
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            text = message.get("text")
            if text is not None and text.strip().lower() == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    finally:
        forward.cancel()
        try:
            await forward
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("chat_feed_send_failed %s", json.dumps({"chat_id": chat_id, "user_id": user.id}))
        hub.unsubscribe(subscription)
        logger.info("chat_feed_closed %s", json.dumps({"chat_id": chat_id, "user_id": user.id}))


# --- marketplace ----------------------------------------------------------------

@app.get('/marketplace/options')
def marketplace_options():
    return services.MarketplaceService.options()


@app.get('/marketplace/items')
def list_items(
    search: Optional[str] = None,
    category: Optional[str] = None,
    price_range: Optional[str] = None,
    condition: Optional[str] = None,
    db: Session = Depends(get_session),
):
    """Active items, newest first, filtered like the marketplace page.

    `price_range` is one of `under50`, `50to100`, `over100` or `all`.
    """
    try:
        return services.MarketplaceService(db).search(search, category, price_range, condition)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get('/marketplace/items/mine')
def my_items(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.MarketplaceService(db).mine(user.id)


@app.get('/marketplace/items/{item_id}')
def get_item(item_id: int, db: Session = Depends(get_session)):
    return services.MarketplaceService(db).detail(item_id)


@app.post('/marketplace/items', status_code=201)
def post_item(payload: MarketplaceItemIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Publish a new item; it is live in the marketplace immediately."""
    try:
        return services.MarketplaceService(db).create(user.id, payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.put('/marketplace/items/{item_id}')
def edit_item(item_id: int, payload: MarketplaceItemIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Update one of the caller's items. Other users' items look missing."""
    try:
        return services.MarketplaceService(db).update(user.id, item_id, payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post('/marketplace/items/{item_id}/status')
def set_item_status(item_id: int, payload: ItemStatusIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        return services.MarketplaceService(db).set_status(user.id, item_id, payload.status)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.delete('/marketplace/items/{item_id}')
def delete_item(item_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    services.MarketplaceService(db).delete(user.id, item_id)
    return {'status': 'deleted', 'id': item_id}


@app.post('/marketplace/items/{item_id}/images')
def upload_item_images(
    item_id: int,
    files: List[UploadFile] = File(...),
    db: Session = Depends(get_session),
    user: models.User = Depends(get_current_user),
):
    payloads = _read_images(files)
    try:
        return services.MarketplaceService(db).add_images(user.id, item_id, payloads)
    except storage.UnsupportedMediaError as e:
        raise HTTPException(status_code=415, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post('/marketplace/items/{item_id}/like')
def toggle_like(item_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.MarketplaceService(db).toggle_like(user.id, item_id)


@app.get('/marketplace/items/{item_id}/contact')
def contact_seller(item_id: int, db: Session = Depends(get_session)):
    return services.MarketplaceService(db).contact(item_id)


# --- landlord dashboard -----------------------------------------------------------

@app.get('/landlord/dashboard')
def landlord_dashboard(db: Session = Depends(get_session), user: models.User = Depends(require_role("landlord", "admin"))):
    """Properties, conversations and occupancy/revenue stats for the caller."""
    return services.DashboardService(db).summary(user.id)


# --- static content -----------------------------------------------------------------

@app.get('/faqs')
def list_faqs(q: Optional[str] = None, category: Optional[str] = None):
    try:
        return content.search_faqs(q, category)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get('/contact/info')
def get_contact_info():
    return content.contact_info()


@app.post('/contact', status_code=201)
def submit_contact(request: Request, payload: ContactIn, db: Session = Depends(get_session)):
    """Store a contact form message and acknowledge it."""
    _enforce_rate_limit(_contact_limiter, f"contact:{request.client.host if request.client else 'unknown'}")
    try:
        msg = services.ContactService(db).submit(payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {'id': msg.id, 'detail': content.CONTACT_ACK}


@app.get("/", response_class=HTMLResponse)
def home():
    """Minimal homepage for quick manual testing."""
    return """
    <!DOCTYPE html>
    <html>
    <head>
      <meta charset="UTF-8" />
      <title>Campus Hub API</title>
      <style>
        body { font-family: Arial, sans-serif; margin: 32px; }
        a { color: #2563eb; }
        .card { max-width: 640px; padding: 16px; border: 1px solid #ddd; border-radius: 8px; }
      </style>
    </head>
    <body>
      <div class="card">
        <h1>Campus Hub API</h1>
        <p>Accommodation, marketplace and messaging for students.</p>
        <ul>
          <li><a href="/docs">Swagger UI</a></li>
          <li><a href="/accommodations">Accommodation listings</a></li>
          <li><a href="/marketplace/items">Marketplace items</a></li>
          <li><a href="/faqs">FAQs</a></li>
        </ul>
        <p>Use <code>/auth/register</code> + <code>/auth/login</code> to get a token for the protected endpoints.</p>
      </div>
    </body>
    </html>
    """


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
