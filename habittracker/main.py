# habittracker/main.py
import time
import uvicorn
from datetime import datetime, timezone
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from habittracker import models, schemas, services
from habittracker.config import settings
from habittracker.core.exceptions import (
    AuthenticationError, ConflictException, EmailTakenError, RecordDecodeError,
    StoreError, StoreUnavailableException, UnauthorizedException, ValidationException,
)
from habittracker.core.logging import logger, setup_logging
from habittracker.database import get_db, init_db
from habittracker.identity import IdentityProvider, UserSession
from habittracker.security import create_access_token, decode_access_token
from habittracker.store import HabitStore

setup_logging()
init_db()

limiter = Limiter(key_func=get_remote_address)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/v1/login")


# ════════════════════════════════════════
# DEPENDENCIES
# ════════════════════════════════════════

def get_store(db: Session = Depends(get_db)) -> HabitStore:
    return HabitStore(db)


def get_identity(db: Session = Depends(get_db)) -> IdentityProvider:
    return IdentityProvider(db)


def get_current_session(
    token: str = Depends(oauth2_scheme),
    identity: IdentityProvider = Depends(get_identity),
) -> UserSession:
    user_id = decode_access_token(token)
    if user_id is None:
        raise UnauthorizedException("Could not validate credentials")
    session = identity.restore(user_id)
    if session is None:
        raise UnauthorizedException("Could not validate credentials")
    return session


# ════════════════════════════════════════
# APP + MIDDLEWARE
# ════════════════════════════════════════

app = FastAPI(
    title="HabitTracker API",
    version="1.0.0",
    description="Daily habits and streaks",
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start    = time.time()
    response = await call_next(request)
    ms       = (time.time() - start) * 1000
    logger.info(f"{request.method} {request.url.path} → {response.status_code} ({ms:.0f}ms)")
    return response


@app.exception_handler(Exception)
async def global_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Something went wrong. Please try again."})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors())})


@app.exception_handler(RecordDecodeError)
async def decode_error_handler(request: Request, exc: RecordDecodeError):
    logger.error(f"Corrupt habit record: {exc}")
    return JSONResponse(status_code=500, content={"detail": "A stored habit could not be read."})


# ════════════════════════════════════════
# ROUTES: all under /api/v1/
# ════════════════════════════════════════

# ── Health Check ────────────────────────
@app.get("/")
def health_check():
    return {"status": "online", "version": "1.0.0", "message": "HabitTracker API is running"}


# ── Auth ────────────────────────────────
@app.post("/api/v1/users/", response_model=schemas.UserResponse, tags=["Auth"])
@limiter.limit("3/minute")
def register(
    request: Request,
    user: schemas.UserCreate,
    identity: IdentityProvider = Depends(get_identity),
    db: Session = Depends(get_db),
):
    try:
        session = identity.sign_up(user.email, user.password)
    except EmailTakenError as e:
        raise ConflictException(str(e))
    except AuthenticationError as e:
        raise ValidationException(str(e))
    except StoreError as e:
        logger.error(f"Sign-up failed for {user.email}: {e}")
        raise StoreUnavailableException("Could not create account. Please try again.")
    return db.get(models.User, session.user_id)


@app.post("/api/v1/login", response_model=schemas.TokenPair, tags=["Auth"])
@limiter.limit("5/minute")
def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    identity: IdentityProvider = Depends(get_identity),
    db: Session = Depends(get_db),
):
    try:
        session = identity.sign_in(form_data.username, form_data.password)
    except AuthenticationError as e:
        raise UnauthorizedException(str(e))
    except StoreError as e:
        logger.error(f"Sign-in failed for {form_data.username}: {e}")
        raise StoreUnavailableException()

    return {
        "access_token":  create_access_token(session.user_id),
        "refresh_token": services.create_refresh_token(db, session.user_id),
        "token_type":    "bearer",
    }


@app.post("/api/v1/refresh", response_model=schemas.TokenPair, tags=["Auth"])
def refresh_token(
    payload: schemas.RefreshTokenRequest,
    identity: IdentityProvider = Depends(get_identity),
    db: Session = Depends(get_db),
):
    db_token = services.get_refresh_token(db, payload.refresh_token)
    if not db_token:
        raise UnauthorizedException("Invalid or expired refresh token")

    if datetime.now(timezone.utc) > db_token.expires_at.replace(tzinfo=timezone.utc):
        services.revoke_refresh_token(db, payload.refresh_token)
        raise UnauthorizedException("Refresh token expired. Please log in again.")

    session = identity.restore(db_token.user_id)
    if session is None:
        raise UnauthorizedException("User not found")

    # Rotate tokens: revoke old, issue new pair
    services.revoke_refresh_token(db, payload.refresh_token)
    logger.info(f"Tokens rotated for: {session.email}")
    return {
        "access_token":  create_access_token(session.user_id),
        "refresh_token": services.create_refresh_token(db, session.user_id),
        "token_type":    "bearer",
    }


@app.post("/api/v1/logout", tags=["Auth"])
def logout(
    payload: schemas.RefreshTokenRequest,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    services.revoke_refresh_token(db, payload.refresh_token)
    logger.info(f"User logged out: {session.email}")
    return {"message": "Logged out successfully"}


# ── Habits ───────────────────────────────
@app.get("/api/v1/habits/", response_model=list[schemas.HabitResponse], tags=["Habits"])
def get_habits(
    store: HabitStore = Depends(get_store),
    session: UserSession = Depends(get_current_session),
):
    try:
        habits = services.list_habits(store, session)
    except RecordDecodeError:
        raise
    except StoreError as e:
        logger.error(f"{session.email} — could not fetch habits: {e}")
        raise StoreUnavailableException()
    return [services.habit_view(habit) for habit in habits]


@app.post("/api/v1/habits/", response_model=schemas.HabitResponse, tags=["Habits"])
def create_habit(
    habit: schemas.HabitCreate,
    store: HabitStore = Depends(get_store),
    session: UserSession = Depends(get_current_session),
):
    try:
        created = services.create_habit(
            store, session, habit.name, habit.missed_days_allowed, habit.notes
        )
    except StoreError as e:
        logger.error(f"{session.email} — could not create habit: {e}")
        raise StoreUnavailableException("Could not create habit.")
    return services.habit_view(created)


@app.get("/api/v1/habits/{habit_id}", response_model=schemas.HabitResponse, tags=["Habits"])
def get_habit(
    habit_id: int,
    store: HabitStore = Depends(get_store),
    session: UserSession = Depends(get_current_session),
):
    try:
        habit = services.get_habit(store, session, habit_id)
    except RecordDecodeError:
        raise
    except StoreError as e:
        logger.error(f"{session.email} — could not fetch habit {habit_id}: {e}")
        raise StoreUnavailableException()
    return services.habit_view(habit)


@app.post("/api/v1/habits/{habit_id}/done", response_model=schemas.CompletionResponse, tags=["Habits"])
def mark_done(
    habit_id: int,
    store: HabitStore = Depends(get_store),
    session: UserSession = Depends(get_current_session),
):
    try:
        habit, accepted, reset = services.mark_done(store, session, habit_id)
    except RecordDecodeError:
        raise
    except StoreError as e:
        logger.error(f"{session.email} — could not mark habit {habit_id} done: {e}")
        raise StoreUnavailableException("Could not mark done.")
    return {"accepted": accepted, "reset": reset, "habit": services.habit_view(habit)}


def serve():
    """Console entry point: run the API with uvicorn."""
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
