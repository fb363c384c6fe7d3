import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from config import Settings, settings
from database import get_db_connection, initialize_database
from errors import ApiError, UnauthorizedError
from friends import FriendService
from responses import created, error_response, from_api_error, ok
from tokens import INVALID_TOKEN_MESSAGE, InvalidTokenError, TokenService
from users import UserService

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)


# --- Modeller ---
# Alanlar isteğe bağlıdır; eksik alanlar 422 yerine 400 ile reddedilir
class RegisterModel(BaseModel):
    fullName: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginModel(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class VerifyModel(BaseModel):
    token: Optional[str] = None


class InvitationCreateModel(BaseModel):
    email: Optional[str] = Field(default=None, description="Davet edilecek kişinin e-posta adresi")


# --- Bağımlılıklar ---
def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


def get_user_service(request: Request) -> UserService:
    return request.app.state.users


def get_friend_service(request: Request) -> FriendService:
    return request.app.state.friends


def get_current_user_id(
    authorization: Optional[str] = Header(default=None),
    tokens: TokenService = Depends(get_token_service),
) -> int:
    """Korumalı uç noktalar için Bearer belirtecinden kullanıcı kimliğini çıkar."""
    user_id = tokens.subject_from_authorization(authorization)
    if user_id is None:
        raise UnauthorizedError("Unauthorized", "You must be logged in")
    return user_id


router = APIRouter()


# --- Sağlık Kontrolü ---
@router.get("/health")
def health(request: Request):
    db_ok = True
    try:
        conn = get_db_connection(request.app.state.settings.database_file)
        try:
            conn.execute("SELECT 1")
        finally:
            conn.close()
    except Exception:
        logger.exception("Health check database probe failed")
        db_ok = False
    return {
        "status": "healthy" if db_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "db": db_ok,
    }


# --- Kimlik Doğrulama ---
@router.post("/api/auth/register")
def register(
    payload: Optional[RegisterModel] = None,
    users: UserService = Depends(get_user_service),
    tokens: TokenService = Depends(get_token_service),
):
    payload = payload or RegisterModel()
    user = users.register(payload.fullName, payload.email, payload.password)
    return created({"user": user, **tokens.issue_pair(user)}, "User registered successfully")


@router.post("/api/auth/login")
def login(
    payload: Optional[LoginModel] = None,
    users: UserService = Depends(get_user_service),
    tokens: TokenService = Depends(get_token_service),
):
    payload = payload or LoginModel()
    user = users.login(payload.email, payload.password)
    return ok({"user": user, **tokens.issue_pair(user)}, "Login successful")


@router.post("/api/auth/verify")
def verify(payload: Optional[VerifyModel] = None, tokens: TokenService = Depends(get_token_service)):
    token = payload.token if payload else None
    if not token:
        raise UnauthorizedError("Token is required", "Please provide a valid token")
    try:
        tokens.decode(token)
    except InvalidTokenError:
        raise UnauthorizedError("Invalid token", INVALID_TOKEN_MESSAGE) from None
    return ok({"verified": True}, "Token verified successfully")


# --- Arkadaşlar ---
@router.post("/api/friends/invitations")
def create_invitation(
    payload: Optional[InvitationCreateModel] = None,
    user_id: int = Depends(get_current_user_id),
    friends: FriendService = Depends(get_friend_service),
):
    email = payload.email if payload else None
    invitation = friends.create_invitation(user_id, email)
    return created(invitation, "Invitation created successfully")


@router.get("/api/friends/invitations/{token}")
def get_invitation(token: str, friends: FriendService = Depends(get_friend_service)):
    return ok(friends.get_invitation_by_token(token))


@router.post("/api/friends/invitations/{invitation_id}/accept")
def accept_invitation(
    invitation_id: int,
    user_id: int = Depends(get_current_user_id),
    friends: FriendService = Depends(get_friend_service),
):
    return ok(friends.accept_invitation(invitation_id, user_id))


@router.get("/api/friends")
def list_friends(
    user_id: int = Depends(get_current_user_id),
    friends: FriendService = Depends(get_friend_service),
):
    return ok({"friends": friends.list_friends(user_id)})


@router.get("/api/friends/{friend_id}")
def get_friend_profile(
    friend_id: int,
    user_id: int = Depends(get_current_user_id),
    friends: FriendService = Depends(get_friend_service),
):
    return ok(friends.get_friend_profile(user_id, friend_id))


def create_app(
    app_settings: Optional[Settings] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    """Uygulama fabrikası.

    JWT imzalama anahtarı yoksa TokenService burada ConfigurationError
    fırlatır; uygulama başlatılmaz.
    """
    cfg = app_settings or settings
    clock_kwargs = {"clock": clock} if clock else {}

    tokens = TokenService(
        cfg.jwt_secret_key,
        algorithm=cfg.jwt_algorithm,
        access_ttl=cfg.access_token_ttl_seconds,
        refresh_ttl=cfg.refresh_token_ttl_seconds,
        **clock_kwargs,
    )
    initialize_database(cfg.database_file)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"{cfg.app_name} {cfg.app_version} starting ({cfg.environment})")
        yield
        logger.info(f"{cfg.app_name} shutting down")

    app = FastAPI(title=cfg.app_name, version=cfg.app_version, debug=cfg.debug, lifespan=lifespan)
    app.state.settings = cfg
    app.state.tokens = tokens
    app.state.users = UserService(cfg.database_file, min_password_length=cfg.min_password_length)
    app.state.friends = FriendService(cfg.database_file, invitation_ttl_days=cfg.invitation_ttl_days, **clock_kwargs)

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError):
        return from_api_error(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return error_response("Bad Request", "Request body or parameters are invalid", 400)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        # İç hata ayrıntıları istemciye gönderilmez
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return error_response("Internal server error", "An unexpected error occurred", 500)

    app.include_router(router)
    return app


app = create_app()
