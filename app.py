"""
Project: OrderFlow
Description:
Main application entry point. Initializes Flask, database, and Socket.IO,
and defines the routes for sign-in and shop setup, menus and items,
events, order intake and completion, event summaries and analytics.
"""

import logging
from datetime import date

from flask import Flask, g, jsonify, redirect, render_template, request, session, url_for, abort
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload
from werkzeug.exceptions import HTTPException
from werkzeug.security import check_password_hash, generate_password_hash

import stats
import utils
from config import Config
from models import db, EVENT_STATUSES, User, Shop, Menu, Item, Event, Customer, Order, OrderItem, utcnow
from realtime import socketio, notify_order, notify_shop

logger = logging.getLogger(__name__)


# --------- serializers ---------
def _item_entry(entry, **extra):
    data = {k: v for k, v in entry.items() if k != "item"}
    data["item"] = entry["item"].to_dict()
    data.update(extra)
    return data


def event_stats_to_dict(s):
    return {
        "event": s["event"].to_dict(),
        "total_orders": s["total_orders"],
        "total_items": s["total_items"],
        "total_revenue": s["total_revenue"],
        "completed_orders": s["completed_orders"],
        "avg_completion_time": s["avg_completion_time"],
        "item_breakdown": [_item_entry(e) for e in s["item_breakdown"].values()],
    }


def summary_to_dict(summary):
    if summary is None:
        return None
    data = dict(summary)
    data["item_sales"] = [_item_entry(e) for e in summary["item_sales"]]
    data["display"] = {
        "total_revenue": utils.format_money(summary["total_revenue"]),
        "avg_completion_time": utils.format_duration(summary["avg_completion_time"]),
        "orders_per_hour": f"{summary['orders_per_hour']:.1f}",
        "items_per_hour": f"{summary['items_per_hour']:.1f}",
    }
    return data


def _grid_row(order, units):
    return {
        "order": order.to_dict(),
        "units": {
            code: [{"modification": u["modification"], "color": u["item"].color} for u in group]
            for code, group in units.items()
        },
    }


def create_app(testing: bool = False):
    app = Flask(__name__)
    app.config.from_object(Config)

    if testing:
        app.config["TESTING"] = True
        app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite:///:memory:"
        app.config["SOCKETIO_ASYNC_MODE"] = "threading"

    logging.basicConfig(level=app.config["LOG_LEVEL"])
    logger.setLevel(app.config["LOG_LEVEL"])

    db.init_app(app)
    socketio.init_app(app, async_mode=app.config["SOCKETIO_ASYNC_MODE"])  # bind socketio to this app
    utils.init_app(app)

    with app.app_context():
        db.create_all()

    # --------- helpers ---------
    def current_user():
        if "user" not in g:
            user_id = session.get("user_id")
            g.user = db.session.get(User, user_id) if user_id else None
        return g.user

    def require_login():
        if current_user() is None:
            return jsonify({"error": "login_required"}), 401

    def require_shop():
        resp = require_login()
        if resp:
            return resp
        if current_user().shop is None:
            return jsonify({"error": "setup_required"}), 409
        g.shop = current_user().shop

    def commit():
        try:
            db.session.commit()
        except SQLAlchemyError:
            logger.exception("Database commit failed")
            db.session.rollback()
            raise

    def shop_event_or_404(event_id):
        event = db.get_or_404(Event, event_id)
        if event.shop_id != g.shop.id:
            abort(404)
        return event

    def shop_menu_or_404(menu_id):
        menu = db.get_or_404(Menu, menu_id)
        if menu.shop_id != g.shop.id:
            abort(404)
        return menu

    def shop_item_or_404(item_id):
        item = db.get_or_404(Item, item_id)
        if item.menu.shop_id != g.shop.id:
            abort(404)
        return item

    def shop_order_or_404(order_id):
        order = db.get_or_404(Order, order_id)
        if order.event.shop_id != g.shop.id:
            abort(404)
        return order

    def event_closed(event):
        logger.warning("Rejected order change for completed event %s", event.id)
        return jsonify({"error": "event_complete"}), 409

    def orders_query():
        return Order.query.options(
            selectinload(Order.customer),
            selectinload(Order.order_items).selectinload(OrderItem.item),
        )

    def create_shop(user, shop_name):
        shop = Shop(name=shop_name)
        db.session.add(shop)
        db.session.flush()
        menu = Menu(shop_id=shop.id, name="Default Menu", is_default=True)
        db.session.add(menu)
        db.session.flush()
        shop.default_menu_id = menu.id
        user.shop_id = shop.id
        return shop

    def item_fields(data, partial=False):
        fields = {}
        for key in ("name", "code"):
            if key in data or not partial:
                value = (data.get(key) or "").strip()
                if not value:
                    return None, f"{key}_required"
                fields[key] = value.upper() if key == "code" else value
        if "price" in data or not partial:
            try:
                price = float(data.get("price"))
            except (TypeError, ValueError):
                return None, "invalid_price"
            if price < 0:
                return None, "invalid_price"
            fields["price"] = price
        if "color" in data or not partial:
            fields["color"] = data.get("color") or app.config["DEFAULT_ITEM_COLOR"]
        return fields, None

    def order_units(event, data):
        """Expand the cart payload into (item, modification) pairs, one per unit."""
        lines = data.get("items") or []
        if not isinstance(lines, list):
            return None, "invalid_item"
        wanted = {}
        for line in lines:
            if not isinstance(line, dict):
                return None, "invalid_item"
            mods = line.get("modifications") or []
            if isinstance(mods, str):
                mods = [mods]
            if not isinstance(mods, list):
                return None, "invalid_item"
            mods = [str(m) if m is not None else "" for m in mods]
            try:
                item_id = int(line.get("item_id"))
                quantity = int(line.get("quantity", len(mods) or 1))
            except (TypeError, ValueError):
                return None, "invalid_item"
            if quantity < 0 or quantity > app.config["MAX_ITEM_QUANTITY"]:
                return None, "invalid_quantity"
            wanted.setdefault(item_id, []).append((quantity, mods))

        items = {}
        if wanted:
            rows = Item.query.filter(Item.id.in_(list(wanted)), Item.menu_id == event.menu_id).all()
            items = {item.id: item for item in rows}
        missing = [item_id for item_id in wanted if item_id not in items]
        if missing:
            return None, "unknown_item"

        units = []
        for item_id, entries in wanted.items():
            for quantity, mods in entries:
                for i in range(quantity):
                    mod = mods[i].strip() if i < len(mods) and mods[i] else ""
                    units.append((items[item_id], mod or None))
        if not units:
            return None, "empty_order"
        return units, None

    def customer_fields(data):
        customer = data.get("customer") if isinstance(data, dict) else None
        if not isinstance(customer, dict):
            return "", None
        name = str(customer.get("name") or "").strip()
        phone = str(customer.get("phone") or "").strip() or None
        return name, phone

    def add_units(order, units):
        for item, modification in units:
            order.order_items.append(
                OrderItem(item=item, item_id=item.id, modifications=modification, unit_price=item.price)
            )

    # --------- errors ---------
    @app.errorhandler(HTTPException)
    def http_error(e):
        if request.path.startswith("/api/"):
            return jsonify({"error": e.name.lower().replace(" ", "_"), "message": e.description}), e.code
        return e

    # --------- pages and auth ---------
    @app.get("/")
    def index():
        if current_user():
            return redirect(url_for("events_page"))
        return redirect(url_for("login"))

    @app.route("/login", methods=["GET", "POST"])
    def login():
        if request.method == "GET":
            if current_user():
                return redirect(url_for("events_page"))
            return render_template("login.html")
        data = request.form if request.form else (request.get_json(silent=True) or {})
        username = (data.get("username") or "").strip()
        password = data.get("password") or ""
        user = User.query.filter_by(username=username).first()
        if user and check_password_hash(user.password_hash, password):
            session["user_id"] = user.id
            session["username"] = user.username
            return jsonify({"ok": True, "redirect": url_for("events_page"), "needs_setup": user.shop_id is None})
        logger.warning("Failed login for %r", username)
        return jsonify({"ok": False, "error": "Invalid credentials"}), 401

    @app.post("/signup")
    def signup():
        data = request.get_json(silent=True) or {}
        username = (data.get("username") or "").strip()
        password = data.get("password") or ""
        shop_name = (data.get("shop_name") or "").strip()
        if not username or not password or not shop_name:
            return jsonify({"ok": False, "error": "missing_fields"}), 400
        if User.query.filter_by(username=username).first():
            return jsonify({"ok": False, "error": "username_taken"}), 409
        user = User(username=username, password_hash=generate_password_hash(password))
        db.session.add(user)
        db.session.flush()
        shop = create_shop(user, shop_name)
        commit()
        session["user_id"] = user.id
        session["username"] = user.username
        logger.info("Created shop %s for %s", shop.id, username)
        return jsonify({"ok": True, "user": user.to_dict(), "shop": shop.to_dict()}), 201

    @app.post("/logout")
    def logout():
        session.clear()
        return jsonify({"ok": True})

    @app.get("/events", endpoint="events_page")
    @app.get("/menu", endpoint="menu_page")
    @app.get("/analytics", endpoint="analytics_page")
    def dashboard():
        if not current_user():
            return redirect(url_for("login"))
        return render_template("dashboard.html", username=session.get("username"), view=request.path.strip("/"))

    # ---------- ACCOUNT ----------
    @app.get("/api/me")
    def me():
        resp = require_login()
        if resp:
            return resp
        user = current_user()
        return jsonify({"user": user.to_dict(), "shop": user.shop.to_dict() if user.shop else None})

    @app.post("/api/setup")
    def setup_shop():
        resp = require_login()
        if resp:
            return resp
        user = current_user()
        if user.shop_id:
            return jsonify({"error": "already_setup"}), 409
        shop_name = ((request.get_json(silent=True) or {}).get("shop_name") or "").strip()
        if not shop_name:
            return jsonify({"error": "shop_name_required"}), 400
        shop = create_shop(user, shop_name)
        commit()
        return jsonify(shop.to_dict()), 201

    # ---------- MENUS ----------
    @app.get("/api/menu")
    def default_menu():
        resp = require_shop()
        if resp:
            return resp
        menu = db.session.get(Menu, g.shop.default_menu_id) if g.shop.default_menu_id else None
        if menu is None:
            return jsonify({"menu": None, "items": []})
        return jsonify({"menu": menu.to_dict(), "items": [i.to_dict() for i in menu.items]})

    @app.post("/api/menus/<int:menu_id>/items")
    def create_item(menu_id):
        resp = require_shop()
        if resp:
            return resp
        menu = shop_menu_or_404(menu_id)
        fields, error = item_fields(request.get_json(silent=True) or {})
        if error:
            return jsonify({"error": error}), 400
        item = Item(menu_id=menu.id, **fields)
        db.session.add(item)
        commit()
        notify_shop("item.created", g.shop.id, item=item.to_dict())
        return jsonify(item.to_dict()), 201

    @app.put("/api/items/<int:item_id>")
    def update_item(item_id):
        resp = require_shop()
        if resp:
            return resp
        item = shop_item_or_404(item_id)
        fields, error = item_fields(request.get_json(silent=True) or {}, partial=True)
        if error:
            return jsonify({"error": error}), 400
        for k, v in fields.items():
            setattr(item, k, v)
        commit()
        notify_shop("item.updated", g.shop.id, item=item.to_dict())
        return jsonify(item.to_dict())

    @app.delete("/api/items/<int:item_id>")
    def delete_item(item_id):
        resp = require_shop()
        if resp:
            return resp
        item = shop_item_or_404(item_id)
        if OrderItem.query.filter_by(item_id=item.id).first():
            return jsonify({"error": "item_in_use"}), 409
        db.session.delete(item)
        commit()
        notify_shop("item.deleted", g.shop.id, id=item_id)
        return jsonify({"ok": True})

    @app.get("/api/events/<int:event_id>/menu")
    def event_menu(event_id):
        resp = require_shop()
        if resp:
            return resp
        event = shop_event_or_404(event_id)
        if event.menu is None:
            return jsonify({"menu": None, "items": [], "is_default": False})
        return jsonify({
            "menu": event.menu.to_dict(),
            "items": [i.to_dict() for i in event.menu.items],
            "is_default": event.menu_id == g.shop.default_menu_id,
        })

    @app.post("/api/events/<int:event_id>/menu/bootstrap")
    def bootstrap_event_menu(event_id):
        resp = require_shop()
        if resp:
            return resp
        event = shop_event_or_404(event_id)
        default_menu_id = g.shop.default_menu_id
        if not default_menu_id:
            return jsonify({"error": "default_menu_missing"}), 409
        if event.menu_id and event.menu_id != default_menu_id:
            return jsonify({"created": False, "event": event.to_dict()})

        menu = Menu(shop_id=g.shop.id, name=f"{event.name} Menu", is_default=False)
        db.session.add(menu)
        db.session.flush()
        for source in Item.query.filter_by(menu_id=default_menu_id).all():
            db.session.add(Item(
                menu_id=menu.id,
                name=source.name,
                code=source.code,
                price=source.price,
                color=source.color or app.config["DEFAULT_ITEM_COLOR"],
            ))
        event.menu_id = menu.id
        commit()
        logger.info("Copied default menu into menu %s for event %s", menu.id, event.id)
        notify_shop("event.updated", g.shop.id, event=event.to_dict())
        return jsonify({"created": True, "event": event.to_dict(), "menu": menu.to_dict()}), 201

    # ---------- EVENTS ----------
    @app.get("/api/events")
    def list_events():
        resp = require_shop()
        if resp:
            return resp
        events = Event.query.filter_by(shop_id=g.shop.id).all()
        grouped = stats.group_events(events)
        return jsonify({
            "events": [e.to_dict() for e in stats.sort_events(events)],
            "by_status": {status: [e.to_dict() for e in rows] for status, rows in grouped.items()},
        })

    @app.post("/api/events")
    def create_event():
        resp = require_shop()
        if resp:
            return resp
        if not g.shop.default_menu_id:
            return jsonify({"error": "default_menu_missing"}), 409
        data = request.get_json(silent=True) or {}
        name = (data.get("name") or "").strip()
        if not name:
            return jsonify({"error": "name_required"}), 400
        try:
            event_date = utils.parse_date(data["date"]) if data.get("date") else date.today()
        except ValueError:
            return jsonify({"error": "invalid_date"}), 400
        event = Event(
            shop_id=g.shop.id,
            name=name,
            date=event_date,
            menu_id=g.shop.default_menu_id,
            status="future",
        )
        db.session.add(event)
        commit()
        notify_shop("event.created", g.shop.id, event=event.to_dict())
        return jsonify(event.to_dict()), 201

    @app.get("/api/events/<int:event_id>")
    def get_event(event_id):
        resp = require_shop()
        if resp:
            return resp
        return jsonify(shop_event_or_404(event_id).to_dict())

    @app.put("/api/events/<int:event_id>")
    def update_event(event_id):
        resp = require_shop()
        if resp:
            return resp
        event = shop_event_or_404(event_id)
        data = request.get_json(silent=True) or {}
        if "name" in data:
            name = (data.get("name") or "").strip()
            if not name:
                return jsonify({"error": "name_required"}), 400
            event.name = name
        if "date" in data:
            try:
                event.date = utils.parse_date(data["date"])
            except ValueError:
                return jsonify({"error": "invalid_date"}), 400
        if "status" in data:
            if data["status"] not in EVENT_STATUSES:
                return jsonify({"error": "invalid_status", "allowed": list(EVENT_STATUSES)}), 400
            event.status = data["status"]
        commit()
        notify_shop("event.updated", g.shop.id, event=event.to_dict())
        return jsonify(event.to_dict())

    @app.delete("/api/events/<int:event_id>")
    def delete_event(event_id):
        resp = require_shop()
        if resp:
            return resp
        event = shop_event_or_404(event_id)
        menu = event.menu
        db.session.delete(event)
        db.session.flush()
        if menu is not None and menu.id != g.shop.default_menu_id \
                and not Event.query.filter_by(menu_id=menu.id).first():
            db.session.delete(menu)
        commit()
        notify_shop("event.deleted", g.shop.id, id=event_id)
        return jsonify({"ok": True})

    # ---------- ORDERS ----------
    @app.get("/api/events/<int:event_id>/orders")
    def list_orders(event_id):
        resp = require_shop()
        if resp:
            return resp
        event = shop_event_or_404(event_id)
        orders = orders_query().filter_by(event_id=event.id).order_by(Order.created_at.asc(), Order.id.asc()).all()
        return jsonify([o.to_dict() for o in orders])

    @app.post("/api/events/<int:event_id>/orders")
    def create_order(event_id):
        resp = require_shop()
        if resp:
            return resp
        event = shop_event_or_404(event_id)
        if event.is_complete:
            return event_closed(event)
        data = request.get_json(silent=True) or {}
        name, phone = customer_fields(data)
        if not name:
            return jsonify({"error": "customer_name_required"}), 400
        units, error = order_units(event, data)
        if error:
            return jsonify({"error": error}), 400

        customer = Customer(name=name, phone=phone)
        db.session.add(customer)
        last_number = db.session.query(db.func.max(Order.order_number)).filter_by(event_id=event.id).scalar()
        order = Order(event_id=event.id, customer=customer, order_number=(last_number or 0) + 1)
        add_units(order, units)
        db.session.add(order)
        commit()
        logger.info("Order #%s created for event %s with %d items", order.order_number, event.id, len(units))
        notify_order("order.created", event.id, order.id)
        return jsonify(order.to_dict()), 201

    @app.get("/api/orders/<int:order_id>")
    def get_order(order_id):
        resp = require_shop()
        if resp:
            return resp
        return jsonify(shop_order_or_404(order_id).to_dict())

    @app.put("/api/orders/<int:order_id>")
    def update_order(order_id):
        resp = require_shop()
        if resp:
            return resp
        order = shop_order_or_404(order_id)
        if order.event.is_complete:
            return event_closed(order.event)
        data = request.get_json(silent=True) or {}
        name, phone = customer_fields(data)
        if not name:
            return jsonify({"error": "customer_name_required"}), 400
        units, error = order_units(order.event, data)
        if error:
            return jsonify({"error": error}), 400

        order.customer.name = name
        order.customer.phone = phone
        order.order_items.clear()
        db.session.flush()
        add_units(order, units)
        commit()
        notify_order("order.updated", order.event_id, order.id)
        return jsonify(order.to_dict())

    @app.delete("/api/orders/<int:order_id>")
    def delete_order(order_id):
        resp = require_shop()
        if resp:
            return resp
        order = shop_order_or_404(order_id)
        if order.event.is_complete:
            return event_closed(order.event)
        event_id = order.event_id
        db.session.delete(order)
        commit()
        notify_order("order.deleted", event_id, order_id)
        return jsonify({"ok": True})

    @app.post("/api/orders/<int:order_id>/complete")
    def complete_order(order_id):
        resp = require_shop()
        if resp:
            return resp
        order = shop_order_or_404(order_id)
        if order.event.is_complete:
            return event_closed(order.event)
        if order.completed_at is None:
            order.completed_at = utcnow()
            commit()
            logger.info("Order #%s completed for event %s", order.order_number, order.event_id)
            notify_order("order.completed", order.event_id, order.id)
        return jsonify(order.to_dict())

    @app.post("/api/orders/<int:order_id>/undo")
    def undo_complete(order_id):
        resp = require_shop()
        if resp:
            return resp
        order = shop_order_or_404(order_id)
        if order.event.is_complete:
            return event_closed(order.event)
        if order.completed_at is not None:
            order.completed_at = None
            commit()
            notify_order("order.reopened", order.event_id, order.id)
        return jsonify(order.to_dict())

    @app.get("/api/events/<int:event_id>/grid")
    def order_grid(event_id):
        resp = require_shop()
        if resp:
            return resp
        event = shop_event_or_404(event_id)
        visible = request.args.get("visible", stats.DEFAULT_VISIBLE_ORDERS, type=int)
        if visible not in stats.VISIBLE_ORDER_OPTIONS:
            return jsonify({"error": "invalid_visible", "allowed": list(stats.VISIBLE_ORDER_OPTIONS)}), 400
        orders = orders_query().filter_by(event_id=event.id).all()
        items = event.menu.items if event.menu else []
        grid = stats.order_grid(orders, items, visible)
        return jsonify({
            "item_codes": grid["item_codes"],
            "colors": {item.code: item.color for item in items},
            "pending": [_grid_row(o, units) for o, units in grid["pending"]],
            "completed": [_grid_row(o, units) for o, units in grid["completed"]],
            "pending_count": grid["pending_count"],
            "hidden_pending": grid["hidden_pending"],
            "completed_count": grid["completed_count"],
            "read_only": event.is_complete,
        })

    # ---------- STATS ----------
    @app.get("/api/events/<int:event_id>/stats")
    def event_stats(event_id):
        resp = require_shop()
        if resp:
            return resp
        event = shop_event_or_404(event_id)
        orders = orders_query().filter_by(event_id=event.id).all()
        data = stats.order_stats(orders)
        data["avg_completion_display"] = utils.format_duration(data["avg_completion_time"])
        data["item_counts"] = [_item_entry(e) for e in stats.completed_item_counts(orders)]
        return jsonify(data)

    @app.get("/api/events/<int:event_id>/summary")
    def event_summary(event_id):
        resp = require_shop()
        if resp:
            return resp
        event = shop_event_or_404(event_id)
        orders = orders_query().filter_by(event_id=event.id).all()
        return jsonify({"event": event.to_dict(), "summary": summary_to_dict(stats.event_summary(orders))})

    @app.get("/api/analytics")
    def analytics():
        resp = require_shop()
        if resp:
            return resp
        completed = sorted(
            Event.query.filter_by(shop_id=g.shop.id, status="complete").all(), key=lambda e: e.date
        )
        requested = set(request.args.getlist("event_id", type=int))
        selected = [e for e in completed if e.id in requested] if requested else completed
        codes = list(dict.fromkeys(c.strip().upper() for c in request.args.getlist("code") if c.strip()))

        orders = []
        if selected:
            orders = orders_query().filter(Order.event_id.in_([e.id for e in selected])) \
                .order_by(Order.created_at.asc()).all()
        event_stats_list = [stats.calculate_event_stats(e, orders) for e in selected]
        eff = stats.efficiency(event_stats_list)

        return jsonify({
            "completed_events": [e.to_dict() for e in completed],
            "selected_event_ids": [e.id for e in selected],
            "events": [
                dict(event_stats_to_dict(s), codes={code: stats.item_stats_by_code(s, code) for code in codes})
                for s in event_stats_list
            ],
            "items": [i.to_dict() for i in stats.unique_items(event_stats_list)],
            "totals": stats.analytics_totals(event_stats_list, codes),
            "efficiency": {
                "events": [
                    {"event": row["event"].to_dict(), "avg_completion_time": row["avg_completion_time"]}
                    for row in eff["events"]
                ],
                "overall_avg": eff["overall_avg"],
                "min_avg": eff["min_avg"],
                "max_avg": eff["max_avg"],
            },
        })

    # ---------- HEALTH ----------
    @app.get("/api/health")
    def health():
        return jsonify({"status": "ok"})

    return app


if __name__ == "__main__":
    app = create_app()
    # Runs with the eventlet server unless SOCKETIO_ASYNC_MODE says otherwise
    socketio.run(app, host="0.0.0.0", port=5013, debug=True)
