"""
Project: OrderFlow
Description:
Socket.IO wiring for live order boards. Browsers subscribe to one event's
order room and get an "order_change" message whenever an order or its
items are written; shop-level changes go to the shop room joined on
connect.
"""

import logging

from flask import session
from flask_socketio import SocketIO, join_room, leave_room

from models import db, User, Event

logger = logging.getLogger(__name__)

# Created once without an app, then bound inside create_app()
socketio = SocketIO(cors_allowed_origins="*")


def order_room(event_id):
    return f"orders:{event_id}"


def shop_room(shop_id):
    return f"shop:{shop_id}"


def notify_order(kind, event_id, order_id):
    socketio.emit(
        "order_change",
        {"type": kind, "event_id": event_id, "order_id": order_id},
        to=order_room(event_id),
    )


def notify_shop(kind, shop_id, **payload):
    payload["type"] = kind
    socketio.emit("event", payload, to=shop_room(shop_id))


def _session_user():
    user_id = session.get("user_id")
    return db.session.get(User, user_id) if user_id else None


@socketio.on("connect")
def on_connect(auth=None):
    user = _session_user()
    if user is None:
        logger.warning("Rejected socket connection without a session")
        return False
    if user.shop_id:
        join_room(shop_room(user.shop_id))


@socketio.on("subscribe")
def on_subscribe(data):
    user = _session_user()
    event_id = (data or {}).get("event_id")
    event = db.session.get(Event, event_id) if event_id else None
    if user is None or event is None or event.shop_id != user.shop_id:
        return {"ok": False, "error": "not_found"}
    join_room(order_room(event.id))
    return {"ok": True, "room": order_room(event.id)}


@socketio.on("unsubscribe")
def on_unsubscribe(data):
    event_id = (data or {}).get("event_id")
    if event_id:
        leave_room(order_room(event_id))
    return {"ok": True}
