"""
Taxonomie des erreurs du pipeline checkout -> commande -> expédition.

Chaque erreur est une HTTPException (status + detail) pour rester compatible
avec la gestion FastAPI; le handler (storefront.app_setup.exceptions) la rend
au format {success: false, error, details?}.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException

logger = logging.getLogger(__name__)


class StorefrontError(HTTPException):
    status_code = 500
    default_message = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(status_code=status_code or type(self).status_code, detail=message or self.default_message)
        self.details = details
        self.extra = extra or {}

    @property
    def error(self) -> str:
        return str(self.detail)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": False, "error": self.error}
        if self.details:
            payload["details"] = self.details
        payload.update(self.extra)
        return payload


class BadRequest(StorefrontError):
    status_code = 400
    default_message = "Invalid request body"


class InvalidRequest(BadRequest):
    default_message = "Missing required fields"


class PickupPointRequired(BadRequest):
    default_message = "A pickup point is required for Packeta delivery"


class PaymentNotCompleted(BadRequest):
    default_message = "Payment not completed"


class AuthenticationRequired(StorefrontError):
    status_code = 401
    default_message = "Authentication required"


class MissingUserContext(AuthenticationRequired):
    default_message = "Unable to determine the user for this payment"


class Forbidden(StorefrontError):
    status_code = 403
    default_message = "This resource belongs to another user"


class NotFound(StorefrontError):
    status_code = 404
    default_message = "Not found"


class OutOfStock(StorefrontError):
    status_code = 409
    default_message = "Product is out of stock"


class InsufficientStock(OutOfStock):
    default_message = "Not enough stock for one or more products"


class PaymentProcessingError(StorefrontError):
    status_code = 422
    default_message = "Payment processing error"


class InvalidShippingConfiguration(StorefrontError):
    status_code = 422
    default_message = "Invalid shipping configuration"


class OrderCreationFailed(StorefrontError):
    status_code = 500
    default_message = "Order creation failed"


class CarrierDispatchFailed(StorefrontError):
    status_code = 502
    default_message = "Failed to create order in Packeta system"


class ServiceUnavailable(StorefrontError):
    status_code = 503
    default_message = "Service temporarily unavailable"

    def __init__(self, message: Optional[str] = None, cause: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        # La cause réelle reste côté serveur
        self.cause = cause
        if cause:
            logger.error("service unavailable: %s", cause)
