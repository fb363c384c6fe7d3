"""Uygulama genelinde kullanılan hata sınıfları.

Servis katmanı bu hataları fırlatır; API katmanı bunları standart hata
zarfına dönüştürür (bkz. responses.py).
"""
from typing import Optional


class ConfigurationError(Exception):
    """Başlangıçta yakalanan ölümcül yapılandırma hatası (ör. JWT anahtarı yok)."""


class ApiError(Exception):
    status_code: int = 500
    default_error: str = "Internal Server Error"

    def __init__(self, error: Optional[str] = None, message: Optional[str] = None) -> None:
        self.error = error or self.default_error
        self.message = message
        super().__init__(self.error)


class BadRequestError(ApiError):
    status_code = 400
    default_error = "Bad Request"


class UnauthorizedError(ApiError):
    status_code = 401
    default_error = "Unauthorized"


class ForbiddenError(ApiError):
    status_code = 403
    default_error = "Forbidden"


class NotFoundError(ApiError):
    status_code = 404
    default_error = "Not Found"


class ConflictError(ApiError):
    status_code = 409
    default_error = "Conflict"


class InternalError(ApiError):
    status_code = 500
    default_error = "Internal Server Error"
