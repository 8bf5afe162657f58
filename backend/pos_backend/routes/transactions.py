# Overview: Flask API routes for checkout and transaction history; parses input and returns JSON responses.

# backend/pos_backend/routes/transactions.py
"""
Transaction API Routes

- POST /checkout converts a cart into a committed sale
- GET /history lists transactions newest first
- GET /<id> fetches one transaction with its items

Request keys are camelCase; the service layer takes snake_case.
"""

from decimal import Decimal

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth
from ..errors import (
    InvalidRequest,
    PosError,
    error_response,
    internal_error_response,
    success_response,
)
from ..extensions import db
from ..services import checkout_service, transaction_service


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _cart_items(raw_items):
    if raw_items is None:
        return []
    if not isinstance(raw_items, list):
        raise InvalidRequest("items must be a list")
    items = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            raise InvalidRequest("Each cart item must be an object")
        items.append({
            "product_id": raw.get("productId"),
            "quantity": raw.get("quantity"),
            "discount": raw.get("discount"),
        })
    return items


def _int_arg(name: str, default: int) -> int:
    value = request.args.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise InvalidRequest(f"{name} must be an integer", details={name: value})


@transactions_bp.post("/checkout")
@require_auth
def checkout_route():
    """
    Request body:
    {
        "items": [{"productId": "...", "quantity": 2, "discount": 0}],
        "paymentMethod": "CASH" | "QRIS",
        "paymentAmount": 50000,      (CASH)
        "taxRate": 0.11,             (optional)
        "discount": 0                (optional, transaction level)
    }

    Returns:
        201: {transaction, change, payment}
        400/404/409: business error
        503: persistence failure, safe to retry
    """
    try:
        data = request.get_json(silent=True) or {}

        result = checkout_service.checkout(
            db.session,
            current_app.extensions["payment_registry"],
            cashier_id=g.current_user.id,
            items=_cart_items(data.get("items")),
            payment_method=data.get("paymentMethod"),
            payment_amount=data.get("paymentAmount"),
            tax_rate=data.get("taxRate"),
            discount=data.get("discount"),
            default_tax_rate=Decimal(current_app.config["DEFAULT_TAX_RATE"]),
            code_attempts=current_app.config["TRANSACTION_CODE_ATTEMPTS"],
        )

        current_app.logger.info(
            "Checkout %s by %s: total=%s method=%s status=%s",
            result.transaction.code,
            g.current_user.email,
            result.transaction.total_amount,
            result.transaction.payment_method,
            result.transaction.payment_status,
        )

        return success_response(result.to_dict(), message="Checkout successful", status_code=201)

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to checkout")
        return internal_error_response()


@transactions_bp.get("/history")
@require_auth
def history_route():
    """
    Query params: page (default 1), limit (default 10, max 100)
    """
    try:
        result = transaction_service.list_transactions(
            db.session,
            page=_int_arg("page", 1),
            limit=_int_arg("limit", 10),
        )
        return success_response({
            "items": [t.to_dict() for t in result["items"]],
            "meta": result["meta"],
        })

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list transactions")
        return internal_error_response()


@transactions_bp.get("/<transaction_id>")
@require_auth
def get_transaction_route(transaction_id: str):
    try:
        transaction = transaction_service.get_transaction(db.session, transaction_id)
        return success_response(transaction.to_dict())

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get transaction")
        return internal_error_response()
