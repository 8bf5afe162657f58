# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

# backend/pos_backend/routes/payments.py
"""
Payment Processing API Routes

- POST /process settles an existing PENDING transaction
- GET /status/<id> reports payment status for any transaction
- POST /qris/webhook is the provider callback for deferred (QRIS) payments

SECURITY:
- /process and /status require a bearer token
- The webhook authenticates with a shared secret (X-Webhook-Secret) when
  QRIS_WEBHOOK_SECRET is configured
"""

import hmac

from flask import Blueprint, current_app, request

from ..decorators import require_auth
from ..errors import (
    InvalidRequest,
    PosError,
    error_response,
    internal_error_response,
    message_response,
    success_response,
)
from ..extensions import db
from ..services import payment_service


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")

WEBHOOK_SECRET_HEADER = "X-Webhook-Secret"
WEBHOOK_STATUSES = ("PAID", "FAILED")


@payments_bp.post("/process")
@require_auth
def process_payment_route():
    """
    Request body:
    {
        "transactionId": "...",
        "paymentMethod": "CASH",
        "paymentAmount": 50000     (CASH)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        transaction_id = data.get("transactionId")
        method = data.get("paymentMethod")

        if not transaction_id or not method:
            raise InvalidRequest("transactionId and paymentMethod required")

        transaction, outcome = payment_service.process_payment(
            db.session,
            current_app.extensions["payment_registry"],
            transaction_id,
            method,
            {"paid_amount": data.get("paymentAmount")},
        )

        current_app.logger.info(
            "Payment processed for %s via %s: %s",
            transaction.code, transaction.payment_method, outcome.status,
        )

        return success_response({
            **outcome.to_dict(),
            "transactionId": transaction.id,
            "code": transaction.code,
            "paymentMethod": transaction.payment_method,
        }, message="Payment processed")

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to process payment")
        return internal_error_response()


@payments_bp.get("/status/<transaction_id>")
@require_auth
def payment_status_route(transaction_id: str):
    try:
        return success_response(payment_service.get_payment_status(db.session, transaction_id))
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get payment status")
        return internal_error_response()


def _webhook_authorized() -> bool:
    expected = current_app.config.get("QRIS_WEBHOOK_SECRET") or ""
    if not expected:
        current_app.logger.warning("QRIS webhook accepted without secret (QRIS_WEBHOOK_SECRET unset)")
        return True
    presented = request.headers.get(WEBHOOK_SECRET_HEADER, "")
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


@payments_bp.post("/qris/webhook")
def qris_webhook_route():
    """
    Provider callback.

    Request body:
    {
        "transactionId": "...",
        "status": "PAID" | "FAILED"    (optional, default PAID)
    }

    Replayed deliveries are harmless: confirming a PAID transaction returns
    200 with changed=false.
    """
    try:
        if not _webhook_authorized():
            current_app.logger.warning("QRIS webhook rejected: bad secret from %s", request.remote_addr)
            return message_response("UNAUTHORIZED", "Invalid webhook secret", 401)

        data = request.get_json(silent=True) or {}
        transaction_id = data.get("transactionId")
        status = data.get("status") or "PAID"

        if not transaction_id:
            raise InvalidRequest("transactionId required")
        if not isinstance(status, str):
            raise InvalidRequest("status must be a string", details={"status": status})
        status = status.upper()
        if status not in WEBHOOK_STATUSES:
            raise InvalidRequest(
                f"status must be one of {list(WEBHOOK_STATUSES)}",
                details={"status": status},
            )

        registry = current_app.extensions["payment_registry"]
        if status == "PAID":
            transaction, changed = payment_service.confirm_payment(db.session, registry, transaction_id)
        else:
            transaction, changed = payment_service.fail_payment(db.session, registry, transaction_id)

        current_app.logger.info(
            "QRIS webhook %s for %s (changed=%s)", status, transaction.code, changed,
        )

        return success_response({
            "transactionId": transaction.id,
            "code": transaction.code,
            "status": transaction.payment_status,
            "changed": changed,
        }, message="Webhook processed")

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to process QRIS webhook")
        return internal_error_response()
