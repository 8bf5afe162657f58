# Overview: Error taxonomy shared by the checkout, stock and payment services.

"""
Every business failure carries a stable ``kind`` the client can switch on,
a human-readable message, an HTTP status for the route layer, and an
optional ``details`` dict (offending product, totals, ...).

Routes turn these into JSON via ``error_response``. Anything that is not a
PosError is an internal failure and is reported without details.
"""

from __future__ import annotations

from flask import jsonify


class PosError(Exception):
    """Base class for recoverable-by-caller failures."""

    kind = "POS_ERROR"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "status": "error",
            "error": self.kind,
            "message": self.message,
            "details": self.details,
        }


class InvalidRequest(PosError):
    """Malformed input (bad quantity, negative discount, bad page)."""
    kind = "INVALID_REQUEST"
    status_code = 400


class EmptyCart(PosError):
    kind = "EMPTY_CART"
    status_code = 400

    def __init__(self, message: str = "Cart cannot be empty", details: dict | None = None):
        super().__init__(message, details)


class ProductNotFound(PosError):
    kind = "PRODUCT_NOT_FOUND"
    status_code = 404

    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id} not found", {"product_id": product_id})
        self.product_id = product_id


class InsufficientStock(PosError):
    kind = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, product_id: str, product_name: str, requested: int, available: int | None = None):
        details = {
            "product_id": product_id,
            "product_name": product_name,
            "requested_quantity": requested,
        }
        if available is not None:
            details["available"] = available
        super().__init__(f"Insufficient stock for {product_name}", details)
        self.product_id = product_id


class InsufficientPayment(PosError):
    kind = "INSUFFICIENT_PAYMENT"
    status_code = 400


class UnsupportedPaymentMethod(PosError):
    kind = "UNSUPPORTED_PAYMENT_METHOD"
    status_code = 400

    def __init__(self, method: object, supported: list[str] | None = None):
        super().__init__(
            f"Payment method {method} is not supported",
            {"payment_method": method, "supported": supported or []},
        )


class TransactionNotFound(PosError):
    kind = "TRANSACTION_NOT_FOUND"
    status_code = 404

    def __init__(self, transaction_id: str):
        super().__init__("Transaction not found", {"transaction_id": transaction_id})


class AlreadyPaid(PosError):
    kind = "ALREADY_PAID"
    status_code = 409

    def __init__(self, transaction_id: str):
        super().__init__("Transaction already paid", {"transaction_id": transaction_id})


class InvalidPaymentState(PosError):
    """Transition not allowed from the transaction's current payment state."""
    kind = "INVALID_PAYMENT_STATE"
    status_code = 409


class PersistenceFailure(PosError):
    kind = "PERSISTENCE_FAILURE"
    status_code = 503

    def __init__(self, message: str = "Could not persist the operation, please retry", details: dict | None = None):
        super().__init__(message, details)


def error_response(exc: PosError):
    """(json, status) pair for a route to return."""
    return jsonify(exc.to_dict()), exc.status_code


def success_response(data=None, message: str = "success", status_code: int = 200):
    return jsonify({"status": "success", "message": message, "data": data}), status_code


def message_response(kind: str, message: str, status_code: int):
    """Error envelope for failures that are not a PosError (auth, internal)."""
    return jsonify({"status": "error", "error": kind, "message": message, "details": {}}), status_code


def internal_error_response():
    return message_response("INTERNAL_ERROR", "Internal server error", 500)
