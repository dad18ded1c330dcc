import logging
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kirana_store.core.database import get_db
from kirana_store.models.order import Order
from kirana_store.models.order_item import OrderItem
from kirana_store.services import orders as order_service

router = APIRouter(prefix="/api/orders", tags=["orders"])
logger = logging.getLogger(__name__)


class OrderItemIn(BaseModel):
    variant_id: int
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)


class OrderCreate(BaseModel):
    customer_id: Optional[int] = None
    items: List[OrderItemIn] = Field(..., min_length=1)
    total_amount: Optional[Decimal] = None
    payment_method: str
    delivery_slot: Optional[str] = None
    address_snapshot: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: str
    changed_by: Optional[str] = None


def _order_to_dict(order: Order) -> dict:
    return {
        "id": order.id,
        "readable_order_id": order.readable_order_id,
        "customer_id": order.customer_id,
        "cart_id": order.cart_id,
        "total_amount": float(order.total_amount or 0),
        "payment_method": order.payment_method,
        "delivery_slot": order.delivery_slot,
        "delivery_address_snapshot": order.delivery_address_snapshot,
        "status": order.status,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "updated_at": order.updated_at.isoformat() if order.updated_at else None,
    }


def _item_to_dict(item: OrderItem) -> dict:
    variant = item.variant
    product = variant.product if variant else None
    return {
        "id": item.id,
        "variant_id": item.variant_id,
        "quantity": item.quantity,
        "unit_price": float(item.unit_price or 0),
        "total_price": float(item.total_price or 0),
        "weight_label": variant.weight_label if variant else None,
        "base_name": product.base_name if product else None,
    }


@router.post("", status_code=201)
def create_order(payload: OrderCreate, db: Session = Depends(get_db)):
    try:
        order = order_service.create_order(
            db,
            customer_id=payload.customer_id,
            items=[item.model_dump() for item in payload.items],
            payment_method=payload.payment_method,
            total_amount=payload.total_amount,
            delivery_slot=payload.delivery_slot,
            address_snapshot=payload.address_snapshot,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except SQLAlchemyError:
        logger.exception("create order failed")
        raise HTTPException(status_code=500, detail="Failed to create order")

    return {
        "message": "Order created successfully",
        "orderId": order.id,
        "readableId": order.readable_order_id,
    }


@router.get("")
def list_orders(db: Session = Depends(get_db)):
    return [_order_to_dict(order) for order in order_service.list_recent_orders(db)]


@router.get("/{order_id}")
def get_order(order_id: int, db: Session = Depends(get_db)):
    order = order_service.get_order(db, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    data = _order_to_dict(order)
    data["items"] = [_item_to_dict(item) for item in order.order_items]
    return data


@router.put("/{order_id}/status")
def update_order_status(order_id: int, payload: OrderStatusUpdate, db: Session = Depends(get_db)):
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")

    try:
        order = order_service.update_order_status(
            db,
            order,
            payload.status.strip().upper(),
            changed_by=payload.changed_by,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except SQLAlchemyError:
        logger.exception("update order status failed order_id=%s", order_id)
        raise HTTPException(status_code=500, detail="Failed to update status")

    return {"message": "Status updated", "newStatus": order.status}
