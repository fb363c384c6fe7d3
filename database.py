import logging
import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional

from config import settings

logger = logging.getLogger(__name__)

# Varsayılan veritabanı dosyası; servisler açık bir db_file ile bunu geçersiz kılabilir.
DATABASE_FILE = settings.database_file

# SQLite INTEGER aralığı; bunun dışındaki kimlikler sürücüde OverflowError verir
MAX_ROW_ID = 2**63 - 1


def is_row_id(value: object) -> bool:
    """Değer, var olabilecek bir satır kimliği mi (1..MAX_ROW_ID)?"""
    return isinstance(value, int) and not isinstance(value, bool) and 0 < value <= MAX_ROW_ID


def get_db_connection(db_file: Optional[str] = None, timeout: Optional[float] = None) -> sqlite3.Connection:
    """SQLite veritabanına yeni bir bağlantı açar.

    Bağlantı otomatik işlem modundadır (isolation_level=None); çok adımlı
    yazmalar ``transaction()`` ile açıkça başlatılıp bitirilir.
    """
    conn = sqlite3.connect(
        db_file or DATABASE_FILE,
        timeout=settings.database_timeout if timeout is None else timeout,
        isolation_level=None,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON;")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Tek bir yazma işlemi içinde çalış; her çıkış yolunda commit ya da rollback.

    BEGIN IMMEDIATE, ilk okumadan önce yazma kilidini alır; böylece aynı
    davet üzerindeki eşzamanlı işlemler sırayla çalışır.
    """
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    else:
        conn.execute("COMMIT")


def create_tables(db_file: Optional[str] = None) -> None:
    """Veritabanında mevcut değilse gerekli tabloları oluşturur."""
    conn = get_db_connection(db_file)
    try:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                full_name TEXT NOT NULL,
                email TEXT NOT NULL UNIQUE,
                hashed_password TEXT NOT NULL,
                age INTEGER,
                avatar_url TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Alıcı bir kullanıcı referansı değil, düz bir e-posta dizesidir
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS friend_invitations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                inviter_id INTEGER NOT NULL,
                recipient_email TEXT NOT NULL,
                token TEXT NOT NULL UNIQUE,
                created_at TEXT NOT NULL,
                expires_at TEXT NOT NULL,
                accepted_at TEXT,
                FOREIGN KEY (inviter_id) REFERENCES users(id) ON DELETE CASCADE
            )
        """)

        # Karşılıklı arkadaşlık iki yönlü iki satırdır; benzersizlik kısıtı yok,
        # tekrarları kabul işlemindeki varlık kontrolü engeller
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS friends (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                friend_user_id INTEGER NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
                FOREIGN KEY (friend_user_id) REFERENCES users(id) ON DELETE CASCADE
            )
        """)

        # Arkadaş profili için salt okunur kitap tabloları
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS authors (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                full_name TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS books (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                pages INTEGER,
                author_id INTEGER,
                publish_date TEXT,
                cover_url TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (author_id) REFERENCES authors(id) ON DELETE SET NULL
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS user_books (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                book_id INTEGER NOT NULL,
                rating INTEGER CHECK(rating IS NULL OR (rating >= 1 AND rating <= 5)),
                status TEXT,
                started_at TEXT,
                finished_at TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
                FOREIGN KEY (book_id) REFERENCES books(id) ON DELETE CASCADE
            )
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_friends_user_friend ON friends(user_id, friend_user_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_friend_invitations_inviter ON friend_invitations(inviter_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_user_books_user ON user_books(user_id)")
    finally:
        conn.close()


def initialize_database(db_file: Optional[str] = None) -> None:
    """Veritabanını başlatır ve gerekirse tabloları oluşturur."""
    create_tables(db_file)
    logger.info(f"Database initialized: {db_file or DATABASE_FILE}")
