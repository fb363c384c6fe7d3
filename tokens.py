"""JWT erişim/yenileme belirteçlerinin üretimi ve doğrulanması."""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from jose import JWTError, jwt

from database import is_row_id
from errors import ConfigurationError

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TTL_SECONDS = 15 * 60  # 15 dakika
REFRESH_TOKEN_TTL_SECONDS = 7 * 24 * 60 * 60  # 7 gün

# Hangi kontrolün başarısız olduğu çağırana sızdırılmaz
INVALID_TOKEN_MESSAGE = "The provided token is invalid or expired"


class InvalidTokenError(Exception):
    """Biçimsiz, yanlış imzalı veya süresi dolmuş belirteç."""

    def __init__(self) -> None:
        super().__init__(INVALID_TOKEN_MESSAGE)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Kimlik iddialarını HS256 ile imzalar ve doğrular.

    İmzalama anahtarı kuruluşta verilir; global bir ortam okuması yapılmaz.
    """

    def __init__(
        self,
        secret: Optional[str],
        algorithm: str = "HS256",
        access_ttl: int = ACCESS_TOKEN_TTL_SECONDS,
        refresh_ttl: int = REFRESH_TOKEN_TTL_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret:
            raise ConfigurationError("JWT_SECRET is not set")
        self._secret = secret
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self._clock = clock

    def _now_seconds(self) -> int:
        return int(self._clock().timestamp())

    def encode(self, claims: Dict[str, Any], expires_in_seconds: int) -> str:
        """İddiaları iat ve exp ekleyerek imzalı bir dizeye dönüştür."""
        if not isinstance(expires_in_seconds, int) or expires_in_seconds <= 0:
            raise ValueError("expires_in_seconds must be a positive integer")
        now = self._now_seconds()
        payload = dict(claims)
        # JWT 'sub' alanı bir dize olmalıdır
        if "sub" in payload:
            payload["sub"] = str(payload["sub"])
        payload["iat"] = now
        payload["exp"] = now + expires_in_seconds
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def generate_access_token(self, claims: Dict[str, Any]) -> str:
        return self.encode(claims, self.access_ttl)

    def generate_refresh_token(self, claims: Dict[str, Any]) -> str:
        return self.encode(claims, self.refresh_ttl)

    def issue_pair(self, user: Dict[str, Any]) -> Dict[str, str]:
        """Bir kullanıcı için erişim ve yenileme belirteçlerini birlikte üret."""
        claims = {"sub": user["id"], "email": user["email"], "fullName": user["fullName"]}
        return {
            "accessToken": self.generate_access_token(claims),
            "refreshToken": self.generate_refresh_token(claims),
        }

    def decode(self, token: str) -> Dict[str, Any]:
        """Belirteci doğrula ve iddiaları döndür.

        Biçim, imza ve son kullanma hatalarının hepsi aynı InvalidTokenError'a
        dönüşür.
        """
        if not token or not isinstance(token, str):
            raise InvalidTokenError()
        try:
            # Son kullanma kontrolü enjekte edilen saate göre aşağıda yapılır
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError as e:
            logger.debug(f"Token rejected: {type(e).__name__}")
            raise InvalidTokenError() from None

        exp = claims.get("exp")
        if not isinstance(exp, int) or isinstance(exp, bool) or exp < self._now_seconds():
            logger.debug("Token rejected: expired or bad exp claim")
            raise InvalidTokenError()
        return claims

    def verify(self, token: str) -> bool:
        try:
            self.decode(token)
            return True
        except InvalidTokenError:
            return False

    def subject_from_authorization(self, authorization: Optional[str]) -> Optional[int]:
        """'Authorization: Bearer <token>' başlığından kullanıcı kimliğini çıkar.

        Başlık yoksa, biçimsizse ya da belirteç geçersizse None döner.
        """
        if not authorization or not authorization.lower().startswith("bearer "):
            return None
        token = authorization[7:].strip()
        try:
            claims = self.decode(token)
        except InvalidTokenError:
            return None
        sub = claims.get("sub")
        # Yalnızca ASCII rakamlar; "²" gibi Unicode rakamları int() ile çözülemez
        if not isinstance(sub, str) or not (sub.isascii() and sub.isdigit()):
            return None
        user_id = int(sub)
        return user_id if is_row_id(user_id) else None
