# pizza42/routes/orders.py
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from ..auth import Claims, get_claims
from ..errors import InternalError, OrderError
from ..schemas.orders import CreateOrderOut, ListOrdersOut
from ..services.orders import OrderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["orders"])


def get_order_service(request: Request) -> OrderService:
    return request.app.state.order_service


async def _json_body(request: Request) -> Any:
    # parsed by hand so a bad body is a 400 after the token checks, not a 422 before them
    try:
        return await request.json()
    except ValueError:
        return None


def _http_error(e: OrderError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/orders", response_model=CreateOrderOut)
async def create_order_endpoint(
    request: Request,
    claims: Optional[Claims] = Depends(get_claims),
    service: OrderService = Depends(get_order_service),
):
    """Body: {"order": {"items": [{"name": "Margherita", "quantity": 2}]}}"""
    body = await _json_body(request)
    order = body.get("order") if isinstance(body, dict) else None
    try:
        record = service.create_order(claims, order)
    except OrderError as e:
        logger.info("order rejected (%d): %s", e.status_code, e.message)
        raise _http_error(e)
    except Exception:
        logger.exception("error creating order")
        raise HTTPException(status_code=500, detail=InternalError.default_message)
    return {"success": True, "order": record}


@router.get("/orders", response_model=ListOrdersOut)
async def list_orders_endpoint(
    claims: Optional[Claims] = Depends(get_claims),
    service: OrderService = Depends(get_order_service),
):
    try:
        orders = await service.list_orders(claims)
    except OrderError as e:
        raise _http_error(e)
    except Exception:
        logger.exception("error listing orders")
        raise HTTPException(status_code=500, detail=InternalError.default_message)
    return {"success": True, "orders": orders}
