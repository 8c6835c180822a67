"""
Order Model
Status: COMPLETED (checkout never writes a partial order)
"""

from datetime import datetime, timezone

from storefront.extensions import db


class Order(db.Model):
    __tablename__ = "orders"

    order_id = db.Column(db.String(64), primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    # Snapshots of the submitted lines: product_id, name, unit_price, quantity
    lines = db.Column(db.JSON, nullable=False)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(
        db.Enum("COMPLETED", name="order_status"),
        nullable=False,
        default="COMPLETED"
    )
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    def to_dict(self):
        return {
            "order_id":     self.order_id,
            "user_id":      self.user_id,
            "lines":        self.lines,
            "total_amount": float(self.total_amount),
            "status":       self.status,
            "created_at":   self.created_at.isoformat(),
        }
