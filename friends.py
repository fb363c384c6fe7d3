import logging
import secrets
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from database import get_db_connection, is_row_id, transaction
from errors import ApiError, BadRequestError, ForbiddenError, InternalError, NotFoundError
from utils.validators import EmailValidator

logger = logging.getLogger(__name__)

INVITATION_TTL_DAYS = 7
INVITE_LINK_PREFIX = "/friends/invite/"

# Varlık kontrollü ekleme: eşzamanlı kabullerde bile her yönde tek satır
_INSERT_EDGE_IF_ABSENT = """
    INSERT INTO friends (user_id, friend_user_id)
    SELECT ?, ?
    WHERE NOT EXISTS (
        SELECT 1 FROM friends WHERE user_id = ? AND friend_user_id = ?
    )
"""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class FriendService:
    """Arkadaşlık davetleri ve karşılıklı arkadaşlık ilişkileri."""

    def __init__(
        self,
        db_file: Optional[str] = None,
        invitation_ttl_days: int = INVITATION_TTL_DAYS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.db_file = db_file
        self.invitation_ttl = timedelta(days=invitation_ttl_days)
        self._clock = clock

    # ------------------------- Davetler ------------------------- #
    def create_invitation(self, inviter_id: int, email: Optional[str]) -> Dict[str, Any]:
        """E-posta adresine bir arkadaşlık daveti oluştur."""
        if not email:
            raise BadRequestError("Email is required")
        if not EmailValidator.is_valid_email(email):
            raise BadRequestError("Invalid email", "Please provide a valid email address")

        recipient = EmailValidator.normalize_email(email)
        token = secrets.token_urlsafe(24)
        now = self._clock()
        expires_at = now + self.invitation_ttl

        conn = get_db_connection(self.db_file)
        try:
            cursor = conn.execute(
                """
                INSERT INTO friend_invitations (inviter_id, recipient_email, token, created_at, expires_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (inviter_id, recipient, token, now.isoformat(), expires_at.isoformat()),
            )
            invitation_id = cursor.lastrowid
        except sqlite3.IntegrityError as e:
            # inviter_id yabancı anahtarı: davet eden kullanıcı artık yok
            raise NotFoundError("User not found") from e
        except sqlite3.Error as e:
            logger.exception("Create invitation failed")
            raise InternalError("Failed to create invitation") from e
        finally:
            conn.close()

        logger.info(f"Invitation {invitation_id} created by user {inviter_id}")
        return {"id": invitation_id, "token": token, "link": f"{INVITE_LINK_PREFIX}{token}"}

    def get_invitation_by_token(self, token: str) -> Dict[str, Any]:
        conn = get_db_connection(self.db_file)
        try:
            row = conn.execute(
                """
                SELECT fi.*, u.full_name AS inviter_name, u.email AS inviter_email
                FROM friend_invitations fi
                JOIN users u ON u.id = fi.inviter_id
                WHERE fi.token = ?
                """,
                (token,),
            ).fetchone()
        finally:
            conn.close()

        if row is None:
            raise NotFoundError("Invitation not found")

        return {
            "invite": {
                "id": row["id"],
                "inviter_name": row["inviter_name"],
                "inviter_email": row["inviter_email"],
                "recipient_email": row["recipient_email"],
                "expires_at": row["expires_at"],
                "accepted_at": row["accepted_at"],
            },
            "expired": _parse_timestamp(row["expires_at"]) < self._clock(),
        }

    def accept_invitation(self, invitation_id: int, user_id: int) -> Dict[str, Any]:
        """Daveti kabul et ve iki yönlü arkadaşlık satırlarını oluştur.

        Tüm adımlar tek bir işlem içinde çalışır; herhangi bir hata durumunda
        hiçbir değişiklik kalıcı olmaz. Zaten kabul edilmiş bir davet tekrar
        kabul edilirse eksik satırlar tamamlanır ve ``alreadyAccepted`` döner.
        """
        if not is_row_id(invitation_id):
            raise NotFoundError("Invitation not found")

        conn = get_db_connection(self.db_file)
        try:
            with transaction(conn):
                invite = conn.execute(
                    """
                    SELECT fi.id, fi.inviter_id, fi.recipient_email, fi.expires_at, fi.accepted_at
                    FROM friend_invitations fi
                    JOIN users u ON u.id = fi.inviter_id
                    WHERE fi.id = ?
                    """,
                    (invitation_id,),
                ).fetchone()
                if invite is None:
                    raise NotFoundError("Invitation not found")

                me = conn.execute("SELECT email FROM users WHERE id = ?", (user_id,)).fetchone()
                if me is None:
                    raise NotFoundError("User not found")

                if invite["recipient_email"] != me["email"]:
                    logger.warning(f"User {user_id} tried to accept invitation {invitation_id} addressed to someone else")
                    raise ForbiddenError("This invitation is not addressed to you")

                now = self._clock()
                # Süre kontrolü kabul durumundan önce: süresi dolan davet her zaman reddedilir
                if _parse_timestamp(invite["expires_at"]) < now:
                    raise ForbiddenError("Invitation has expired")

                inviter_id = invite["inviter_id"]
                if invite["accepted_at"]:
                    self._ensure_friendship(conn, inviter_id, user_id)
                    result = {"accepted": True, "alreadyAccepted": True}
                else:
                    if inviter_id == user_id:
                        raise ForbiddenError("Inviter cannot accept their own invitation")
                    self._ensure_friendship(conn, inviter_id, user_id)
                    conn.execute(
                        "UPDATE friend_invitations SET accepted_at = ? WHERE id = ?",
                        (now.isoformat(), invite["id"]),
                    )
                    result = {"accepted": True}
        except ApiError:
            raise
        except sqlite3.Error as e:
            logger.exception(f"Accept invitation {invitation_id} failed")
            raise InternalError("Failed to accept invitation") from e
        finally:
            conn.close()

        if result.get("alreadyAccepted"):
            logger.info(f"Invitation {invitation_id} already accepted; friendship ensured for user {user_id}")
        else:
            logger.info(f"Invitation {invitation_id} accepted by user {user_id}")
        return result

    @staticmethod
    def _ensure_friendship(conn: sqlite3.Connection, user_a: int, user_b: int) -> None:
        conn.execute(_INSERT_EDGE_IF_ABSENT, (user_a, user_b, user_a, user_b))
        conn.execute(_INSERT_EDGE_IF_ABSENT, (user_b, user_a, user_b, user_a))

    # ------------------------- Arkadaşlar ------------------------- #
    def list_friends(self, user_id: int) -> List[Dict[str, Any]]:
        conn = get_db_connection(self.db_file)
        try:
            rows = conn.execute(
                """
                SELECT u.id, u.full_name, u.avatar_url
                FROM friends f
                JOIN users u ON u.id = f.friend_user_id
                WHERE f.user_id = ?
                ORDER BY u.full_name ASC
                """,
                (user_id,),
            ).fetchall()
            return [dict(row) for row in rows]
        finally:
            conn.close()

    def are_friends(self, user_id: int, friend_id: int) -> bool:
        if not (is_row_id(user_id) and is_row_id(friend_id)):
            return False
        conn = get_db_connection(self.db_file)
        try:
            row = conn.execute(
                "SELECT 1 FROM friends WHERE user_id = ? AND friend_user_id = ?",
                (user_id, friend_id),
            ).fetchone()
            return row is not None
        finally:
            conn.close()

    def get_friend_profile(self, user_id: int, friend_id: int) -> Dict[str, Any]:
        """Bir arkadaşın profilini ve okuma listesini döndür."""
        if not self.are_friends(user_id, friend_id):
            raise ForbiddenError("You can only view profiles of your friends")

        conn = get_db_connection(self.db_file)
        try:
            profile = conn.execute(
                """
                SELECT id, full_name, age, avatar_url, created_at AS member_since
                FROM users WHERE id = ?
                """,
                (friend_id,),
            ).fetchone()
            if profile is None:
                raise NotFoundError("Friend not found")

            rows = conn.execute(
                """
                SELECT ub.id, ub.book_id, ub.rating, ub.status, ub.started_at, ub.finished_at,
                       b.title, b.pages, b.cover_url, a.full_name AS author_name
                FROM user_books ub
                JOIN books b ON ub.book_id = b.id
                LEFT JOIN authors a ON b.author_id = a.id
                WHERE ub.user_id = ?
                ORDER BY ub.created_at DESC, ub.id DESC
                """,
                (friend_id,),
            ).fetchall()
        finally:
            conn.close()

        books = [
            {
                "id": row["id"],
                "book_id": row["book_id"],
                "rating": row["rating"],
                "status": row["status"],
                "started_at": row["started_at"],
                "finished_at": row["finished_at"],
                "book": {
                    "id": row["book_id"],
                    "title": row["title"],
                    "pages": row["pages"],
                    "cover_url": row["cover_url"],
                    "author": row["author_name"],
                },
            }
            for row in rows
        ]
        return {"profile": dict(profile), "books": books}
