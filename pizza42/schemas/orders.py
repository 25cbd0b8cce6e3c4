# pizza42/schemas/orders.py
from typing import Any, Dict, List, Optional
from pydantic import BaseModel


class OrderRecordOut(BaseModel):
    id: str
    created_at: str
    date: str
    time: str
    # [{name, quantity}], passed through as the client sent it
    items: List[Any]


class DisplayOrderOut(BaseModel):
    # mirrored entries may lack any of these
    id: Optional[str] = None
    created_at: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    items: List[Dict[str, Any]]
    order_number: int


class CreateOrderOut(BaseModel):
    success: bool = True
    order: OrderRecordOut


class ListOrdersOut(BaseModel):
    success: bool = True
    orders: List[DisplayOrderOut]


class ExternalOut(BaseModel):
    msg: str


class AuthConfigOut(BaseModel):
    domain: Optional[str] = None
    clientId: Optional[str] = None
    audience: Optional[str] = None
