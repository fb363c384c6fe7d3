import re
from typing import Optional

# Deliberately loose: one "@", no whitespace, a dot somewhere in the domain.
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class EmailValidator:
    """Simple e-mail checks used by registration and invitations."""

    @staticmethod
    def normalize_email(raw: Optional[str]) -> str:
        if raw is None:
            return ""
        return raw.strip().lower()

    @staticmethod
    def is_valid_email(email: Optional[str]) -> bool:
        if not email:
            return False
        s = EmailValidator.normalize_email(email)
        if len(s) > 254:
            return False
        return bool(_EMAIL_RE.match(s))


class TextValidator:
    """Very basic text validations and sanitization."""

    @staticmethod
    def validate_full_name(name: Optional[str]) -> bool:
        if name is None:
            return False
        t = name.strip()
        if not t:
            return False
        # en az bir harf olmalı; yalnızca rakamlardan oluşan isimleri reddet
        return any(c.isalpha() for c in t)

    @staticmethod
    def sanitize_text(text: Optional[str]) -> str:
        if text is None:
            return ""
        # HTML etiketlerini kaldır
        return re.sub(r"<[^>]*>", "", text).strip()


class PasswordValidator:

    @staticmethod
    def is_strong_enough(password: Optional[str], min_length: int = 8) -> bool:
        if not password:
            return False
        return len(password) >= min_length
