from __future__ import annotations


class DomainError(Exception):
    """Base class for business-rule failures raised by the service layer.

    The HTTP layer turns these into ``{"ok": false, "error": code, ...}``
    responses; services raise them after rolling back their session.
    """

    code = "DOMAIN_ERROR"
    status = 400

    def __init__(self, message: str = "", **details):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details

    def to_dict(self) -> dict:
        payload = {
            "ok": False,
            "error": self.code,
            "message": self.message,
            "status": int(self.status),
        }
        if self.details:
            payload["details"] = dict(self.details)
        return payload


class ValidationError(DomainError):
    code = "VALIDATION_ERROR"
    status = 400


class EmptyCart(ValidationError):
    code = "EMPTY_CART"

    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message)


class InvalidPaymentDetails(ValidationError):
    code = "INVALID_PAYMENT_DETAILS"


class NotFound(DomainError):
    code = "NOT_FOUND"
    status = 404


class Forbidden(DomainError):
    code = "FORBIDDEN"
    status = 403


class Conflict(DomainError):
    code = "CONFLICT"
    status = 409


class InsufficientStock(Conflict):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int, requested: int, available: int, message: str = ""):
        super().__init__(
            message or f"Product {int(product_id)} only has {int(available)} available",
            product_id=int(product_id),
            requested=int(requested),
            available=int(available),
        )
        self.product_id = int(product_id)
        self.requested = int(requested)
        self.available = int(available)


class ProductUnavailable(Conflict):
    code = "PRODUCT_UNAVAILABLE"


class SellerInactive(Conflict):
    code = "SELLER_INACTIVE"


class AlreadyConfirmed(Conflict):
    code = "ALREADY_CONFIRMED"


class Frozen(DomainError):
    code = "FROZEN"
    status = 423


class InvalidTransition(DomainError):
    code = "INVALID_TRANSITION"
    status = 409


class InvalidState(InvalidTransition):
    code = "INVALID_STATE"


class Unauthorized(DomainError):
    code = "UNAUTHORIZED"
    status = 401
