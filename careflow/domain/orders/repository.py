"""Order repository - Read access to orders owned by the ordering app"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...enums import ORDER_PENDING
from ...models import Order


class OrderRepository:
    """Repository for order database reads"""

    @staticmethod
    def get_order_by_id(db: Session, order_id: str) -> Optional[Order]:
        """Get an order with its line items"""
        return (
            db.query(Order)
            .options(joinedload(Order.line_items))
            .filter(Order.id == order_id)
            .first()
        )

    @staticmethod
    def get_pending_orders(db: Session) -> list[Order]:
        """Get pending orders, newest first"""
        return (
            db.query(Order)
            .options(joinedload(Order.line_items))
            .filter(Order.status == ORDER_PENDING)
            .order_by(Order.created_at.desc())
            .all()
        )
