"""
Service errors

Each error kind carries the HTTP status the API layer answers with.
Stores and the order workflow raise these; main.py translates them once.
"""
from typing import Optional


class ServiceError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AlreadyExists(ServiceError):
    status_code = 409
    default_message = "Already exists"


class NotFound(ServiceError):
    status_code = 404
    default_message = "Not found"


class AccessDenied(ServiceError):
    status_code = 403
    default_message = "Access denied"


class InvalidCredentials(ServiceError):
    status_code = 401
    default_message = "Incorrect password"


class InvalidToken(ServiceError):
    status_code = 401
    default_message = "Could not validate credentials"


class InvalidInput(ServiceError):
    status_code = 400
    default_message = "Invalid input"


class Conflict(ServiceError):
    status_code = 409
    default_message = "Conflicting update"


class InsufficientStock(ServiceError):
    status_code = 409

    def __init__(self, product_name: str):
        self.product_name = product_name
        super().__init__(f"The product: {product_name} exceeds quantity available")
