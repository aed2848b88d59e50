from typing import Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session

from pos_api.database import get_session
from pos_api.schemas import OrderCreateIn, OrderItemsIn, OrderStatusIn, PaymentIn
from pos_api.services import orders as orders_service
from pos_api.utils import parse_id

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("")
def list_orders(status: Optional[str] = None, db: Session = Depends(get_session)):
    # sin filtro (o con status=all) se devuelven todas las órdenes
    if status is not None and status.strip().lower() in ("", "all"):
        status = None
    return {"ok": True, "orders": orders_service.list_orders(db, status)}


# antes de /{order_id} para que "payments" no se tome como id
@router.get("/payments")
def list_payments(db: Session = Depends(get_session)):
    return {"ok": True, "pagos": orders_service.list_payments(db)}


@router.get("/{order_id}")
def get_order(order_id: str, db: Session = Depends(get_session)):
    oid = parse_id(order_id)
    return {"ok": True, "order": orders_service.get_order(db, oid)}


@router.post("")
def create_order(payload: OrderCreateIn, db: Session = Depends(get_session)):
    return {"ok": True, "order": orders_service.create_order(db, payload)}


@router.patch("/{order_id}/status")
def update_status(order_id: str, payload: OrderStatusIn, db: Session = Depends(get_session)):
    oid = parse_id(order_id)
    return {"ok": True, "order": orders_service.update_order_status(db, oid, payload)}


@router.post("/{order_id}/items")
def add_items(order_id: str, payload: OrderItemsIn, db: Session = Depends(get_session)):
    oid = parse_id(order_id)
    return {"ok": True, "order": orders_service.add_items(db, oid, payload)}


@router.delete("/{order_id}/items/{item_id}")
def remove_item(order_id: str, item_id: str, db: Session = Depends(get_session)):
    oid = parse_id(order_id)
    detail_id = parse_id(item_id)
    return {"ok": True, "order": orders_service.remove_item(db, oid, detail_id)}


@router.post("/{order_id}/payments")
def register_payment(order_id: str, payload: PaymentIn, db: Session = Depends(get_session)):
    oid = parse_id(order_id)
    return {"ok": True, "order": orders_service.register_payment(db, oid, payload)}
