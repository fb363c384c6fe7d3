import os
import subprocess
import sys
from typing import Optional

import typer
from rich.console import Console

import database
from config import settings
from errors import ApiError, ConfigurationError
from friends import FriendService
from tokens import TokenService
from users import UserService
from utils.ui_helpers import set_output_mode, print_friends_result, print_invitation_result

APP_NAME = "Reading Tracker CLI"

console = Console()

app = typer.Typer(help=APP_NAME)

# Komutlar arasında paylaşılan veritabanı dosyası (--db-file ile geçersiz kılınabilir)
_state = {"db_file": None}


def _db_file() -> str:
    return _state["db_file"] or settings.database_file


def _users() -> UserService:
    return UserService(_db_file(), min_password_length=settings.min_password_length)


def _friends() -> FriendService:
    return FriendService(_db_file(), invitation_ttl_days=settings.invitation_ttl_days)


def _require_user(email: str) -> dict:
    database.initialize_database(_db_file())
    user = _users().find_by_email(email)
    if not user:
        print(f"No user with email {email}.")
        raise typer.Exit(code=1)
    return user


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Çıktı formatı: plain | json | rich (varsayılan: plain)",
    ),
    db_file: Optional[str] = typer.Option(None, "--db-file", help="Kullanılacak SQLite dosyası"),
):
    """CLI için genel seçenekler."""
    if output:
        set_output_mode(output)
    _state["db_file"] = db_file


@app.command("init-db")
def cli_init_db():
    """Veritabanı tablolarını oluştur."""
    database.initialize_database(_db_file())
    print(f"Database ready: {_db_file()}")


@app.command("register")
def cli_register(
    full_name: str,
    email: str,
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
):
    """Yeni bir kullanıcı hesabı oluştur."""
    database.initialize_database(_db_file())
    try:
        user = _users().register(full_name, email, password)
    except ApiError as e:
        print(f"Error: {e.error}")
        raise typer.Exit(code=1)
    print(f"Registered user {user['id']}: {user['fullName']} <{user['email']}>")


@app.command("invite")
def cli_invite(inviter_email: str, recipient_email: str):
    """Bir kullanıcı adına arkadaşlık daveti oluştur."""
    inviter = _require_user(inviter_email)
    try:
        invitation = _friends().create_invitation(inviter["id"], recipient_email)
    except ApiError as e:
        print(f"Error: {e.error}")
        raise typer.Exit(code=1)
    print_invitation_result(invitation)


@app.command("accept")
def cli_accept(invitation_id: int, email: str):
    """Bir daveti, e-posta adresiyle belirtilen kullanıcı olarak kabul et."""
    user = _require_user(email)
    try:
        result = _friends().accept_invitation(invitation_id, user["id"])
    except ApiError as e:
        print(f"Error: {e.error}")
        raise typer.Exit(code=1)
    if result.get("alreadyAccepted"):
        print(f"Invitation {invitation_id} was already accepted.")
    else:
        print(f"Invitation {invitation_id} accepted.")


@app.command("friends")
def cli_friends(email: str):
    """Bir kullanıcının arkadaşlarını listele."""
    user = _require_user(email)
    print_friends_result(_friends().list_friends(user["id"]))


@app.command("verify-token")
def cli_verify_token(token: str):
    """Bir erişim/yenileme belirtecini doğrula."""
    try:
        tokens = TokenService(settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    except ConfigurationError as e:
        console.print(f"[bold red]{e}[/]")
        raise typer.Exit(code=2)
    if tokens.verify(token):
        claims = tokens.decode(token)
        print(f"Token valid for user {claims.get('sub')} <{claims.get('email')}>")
    else:
        print("Token is invalid or expired.")
        raise typer.Exit(code=1)


@app.command("serve")
def cli_serve(reload: bool = typer.Option(False, "--reload", help="Kod değişikliklerinde yeniden yükle")):
    """Uvicorn kullanarak API sunucusunu başlat."""
    host = settings.api_host
    port = int(settings.api_port)
    print(f"Starting API on http://{host}:{port}/")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "api:app",
        "--host", host,
        "--port", str(port),
    ]
    if reload:
        args.append("--reload")
    env = dict(os.environ)
    if _state["db_file"]:
        env["LIBRARY_DB_FILE"] = _state["db_file"]
    try:
        subprocess.run(args, env=env)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    app()
