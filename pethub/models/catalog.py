from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .enums import SizeTier


class Service(db.Model):
    """
    Grooming service offered by a business.

    One price per size tier; duration drives the appointment's end time.
    """
    __tablename__ = "services"
    __table_args__ = (
        db.CheckConstraint("duration_minutes > 0", name="ck_services_duration_positive"),
        db.Index("ix_services_business_active", "business_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)
    duration_minutes = db.Column(db.Integer, nullable=False)

    price_small_cents = db.Column(db.Integer, nullable=False)
    price_medium_cents = db.Column(db.Integer, nullable=False)
    price_large_cents = db.Column(db.Integer, nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    business = db.relationship("Business", backref=db.backref("services", lazy=True))

    def price_for(self, size: SizeTier) -> int:
        return {
            SizeTier.SMALL: self.price_small_cents,
            SizeTier.MEDIUM: self.price_medium_cents,
            SizeTier.LARGE: self.price_large_cents,
        }[SizeTier.parse(size)]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "description": self.description,
            "duration_minutes": self.duration_minutes,
            "price_small_cents": self.price_small_cents,
            "price_medium_cents": self.price_medium_cents,
            "price_large_cents": self.price_large_cents,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Retail product sold at the point of sale.

    stock_quantity is never negative: the CHECK constraint is the last line,
    the sale service rejects short carts before touching stock.
    version_id detects concurrent writers that bypassed the row lock.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("business_id", "barcode", name="uq_products_business_barcode"),
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_business_active", "business_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)
    brand = db.Column(db.String(128), nullable=True)
    category = db.Column(db.String(64), nullable=True)
    unit = db.Column(db.String(16), nullable=True)
    barcode = db.Column(db.String(64), nullable=True)

    price_cents = db.Column(db.Integer, nullable=False)
    cost_cents = db.Column(db.Integer, nullable=True)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    business = db.relationship("Business", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return self.stock_quantity <= self.min_stock

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "description": self.description,
            "brand": self.brand,
            "category": self.category,
            "unit": self.unit,
            "barcode": self.barcode,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "stock_quantity": self.stock_quantity,
            "min_stock": self.min_stock,
            "is_low_stock": self.is_low_stock,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
