"""
Project: OrderFlow
Description:
Database models for shops, menus, items, events, customers and orders.
"""

from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

EVENT_STATUSES = ("future", "in_progress", "complete")


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    shop_id = db.Column(db.Integer, db.ForeignKey("shop.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    shop = db.relationship("Shop", backref="users", lazy=True)

    def to_dict(self):
        return {"id": self.id, "username": self.username, "shop_id": self.shop_id}


class Shop(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    # no FK: menu.shop_id already points back at shop
    default_menu_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "default_menu_id": self.default_menu_id,
            "created_at": _iso(self.created_at),
        }


class Menu(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shop.id"), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    is_default = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    items = db.relationship(
        "Item", backref="menu", cascade="all, delete-orphan", lazy=True, order_by="Item.code"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "name": self.name,
            "is_default": self.is_default,
            "created_at": _iso(self.created_at),
        }


class Item(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    menu_id = db.Column(db.Integer, db.ForeignKey("menu.id"), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(10), nullable=False)
    price = db.Column(db.Float, nullable=False)
    color = db.Column(db.String(20), default="#6366f1")
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "menu_id": self.menu_id,
            "name": self.name,
            "code": self.code,
            "price": self.price,
            "color": self.color,
            "created_at": _iso(self.created_at),
        }


class Event(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shop.id"), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    date = db.Column(db.Date, nullable=False)
    menu_id = db.Column(db.Integer, db.ForeignKey("menu.id"), nullable=True)
    status = db.Column(db.String(20), default="future", nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    menu = db.relationship("Menu", lazy=True)
    orders = db.relationship("Order", backref="event", cascade="all, delete-orphan", lazy=True)

    @property
    def is_complete(self):
        return self.status == "complete"

    def to_dict(self):
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "name": self.name,
            "date": self.date.isoformat(),
            "menu_id": self.menu_id,
            "status": self.status,
            "created_at": _iso(self.created_at),
        }


class Customer(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(40), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {"id": self.id, "name": self.name, "phone": self.phone}


class Order(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey("event.id"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customer.id"), nullable=False)
    order_number = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    completed_at = db.Column(db.DateTime, nullable=True)
    customer = db.relationship("Customer", lazy=True)
    order_items = db.relationship(
        "OrderItem", backref="order", cascade="all, delete-orphan", lazy=True, order_by="OrderItem.id"
    )

    @property
    def status(self):
        return "completed" if self.completed_at else "pending"

    def total(self):
        return sum(oi.price for oi in self.order_items if oi.item is not None)

    def to_dict(self):
        return {
            "id": self.id,
            "event_id": self.event_id,
            "customer_id": self.customer_id,
            "order_number": self.order_number,
            "status": self.status,
            "created_at": _iso(self.created_at),
            "completed_at": _iso(self.completed_at),
            "customer": self.customer.to_dict() if self.customer else None,
            "order_items": [oi.to_dict() for oi in self.order_items],
            "total": self.total(),
        }


class OrderItem(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("order.id"), nullable=False)
    item_id = db.Column(db.Integer, db.ForeignKey("item.id"), nullable=False)
    modifications = db.Column(db.String(255), nullable=True)
    # menu price at the time of sale
    unit_price = db.Column(db.Float, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    item = db.relationship("Item", lazy=True)

    @property
    def price(self):
        if self.unit_price is not None:
            return self.unit_price
        return self.item.price if self.item is not None else 0.0

    def to_dict(self):
        return {
            "id": self.id,
            "order_id": self.order_id,
            "item_id": self.item_id,
            "modifications": self.modifications,
            "price": self.price,
            "item": self.item.to_dict() if self.item else None,
        }
