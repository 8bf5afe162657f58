# Overview: Flask API routes for manual stock adjustment and movement history.

# backend/pos_backend/routes/stock.py
"""
Stock API Routes

Manual adjustments go through the same ledger as checkout, so every change
leaves exactly one movement row. Only ADMIN may adjust.
"""

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_role
from ..errors import (
    InvalidRequest,
    PosError,
    error_response,
    internal_error_response,
    success_response,
)
from ..extensions import db
from ..models.auth import ROLE_ADMIN
from ..services import stock_service


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.post("/adjust")
@require_auth
@require_role(ROLE_ADMIN)
def adjust_stock_route():
    """
    Request body:
    {
        "productId": "...",
        "type": "IN" | "OUT",
        "quantity": 10,
        "reason": "Restock from supplier"   (optional)
    }

    Returns:
        200: new stock level
        400: invalid direction / quantity
        404: product not found
        409: OUT larger than stock
    """
    try:
        data = request.get_json(silent=True) or {}
        product_id = data.get("productId")
        if not product_id:
            raise InvalidRequest("productId required")

        direction = (data.get("type") or "").upper()
        new_stock = stock_service.adjust_stock(
            db.session,
            product_id,
            direction,
            data.get("quantity"),
            data.get("reason") or f"Manual adjustment by {g.current_user.email}",
        )

        current_app.logger.info(
            "Stock %s %s for %s by %s (now %d)",
            direction, data.get("quantity"), product_id, g.current_user.email, new_stock,
        )

        return success_response({"productId": product_id, "stock": new_stock}, message="Stock adjusted")

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return internal_error_response()


@stock_bp.get("/history")
@require_auth
def stock_history_route():
    """
    Query params: productId (optional), page (default 1), limit (default 50)
    """
    try:
        try:
            page = int(request.args.get("page", 1))
            limit = int(request.args.get("limit", 50))
        except ValueError:
            raise InvalidRequest("page and limit must be integers")

        result = stock_service.get_movements(
            db.session,
            product_id=request.args.get("productId"),
            page=page,
            limit=limit,
        )
        return success_response({
            "items": [m.to_dict() for m in result["items"]],
            "meta": {
                "total": result["total"],
                "page": page,
                "limit": limit,
                "totalPages": result["totalPages"],
            },
        })

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get stock history")
        return internal_error_response()
