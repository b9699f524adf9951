"""
Project: OrderFlow
Description:
Order and sales aggregation used by the event dashboard, the event
summary and the cross-event analytics view. Everything here works on
already-loaded rows (or any object with the same attributes) and does a
single pass over the orders it is given.
"""

from collections import OrderedDict

EVENT_STATUS_ORDER = {"in_progress": 0, "future": 1, "complete": 2}
VISIBLE_ORDER_OPTIONS = (5, 10, 15, 20)
DEFAULT_VISIBLE_ORDERS = 10

_MS_PER_HOUR = 1000 * 60 * 60


def order_status(order):
    return "completed" if order.completed_at else "pending"


def completion_time_ms(order):
    """Milliseconds from creation to completion, or None while pending."""
    if not order.completed_at:
        return None
    return (order.completed_at - order.created_at).total_seconds() * 1000


def unit_price(order_item):
    snapshot = getattr(order_item, "unit_price", None)
    if snapshot is not None:
        return float(snapshot)
    return float(order_item.item.price)


def _mean(values):
    return sum(values) / len(values) if values else None


def order_stats(orders):
    pending_count = 0
    completed_count = 0
    completion_times = []

    for order in orders:
        if order_status(order) == "completed":
            completed_count += 1
            completion_times.append(completion_time_ms(order))
        else:
            pending_count += 1

    return {
        "total_orders": len(orders),
        "pending_count": pending_count,
        "completed_count": completed_count,
        "avg_completion_time": _mean(completion_times),
    }


def calculate_event_stats(event, orders):
    event_orders = [o for o in orders if o.event_id == event.id]

    total_items = 0
    total_revenue = 0.0
    item_breakdown = {}

    for order in event_orders:
        for order_item in order.order_items or []:
            item = order_item.item
            if item is None:
                continue
            price = unit_price(order_item)
            total_items += 1
            total_revenue += price

            entry = item_breakdown.setdefault(item.id, {"item": item, "count": 0, "revenue": 0.0})
            entry["count"] += 1
            entry["revenue"] += price

    completion_times = [completion_time_ms(o) for o in event_orders if o.completed_at]

    return {
        "event": event,
        "orders": event_orders,
        "total_orders": len(event_orders),
        "total_items": total_items,
        "total_revenue": total_revenue,
        "completed_orders": len(completion_times),
        "avg_completion_time": _mean(completion_times),
        "item_breakdown": item_breakdown,
    }


def item_stats_by_code(event_stats, code):
    count = 0
    revenue = 0.0
    for entry in event_stats["item_breakdown"].values():
        if entry["item"].code == code:
            count += entry["count"]
            revenue += entry["revenue"]
    return {"count": count, "revenue": revenue}


def unique_items(event_stats_list):
    """One item per code across events (first seen wins), sorted by name."""
    by_code = {}
    for stats in event_stats_list:
        for entry in stats["item_breakdown"].values():
            by_code.setdefault(entry["item"].code, entry["item"])
    return sorted(by_code.values(), key=lambda item: item.name.casefold())


def analytics_totals(event_stats_list, codes=None):
    if codes:
        count = 0
        revenue = 0.0
        for stats in event_stats_list:
            for code in dict.fromkeys(codes):
                item_stats = item_stats_by_code(stats, code)
                count += item_stats["count"]
                revenue += item_stats["revenue"]
        return {"orders": count, "items": count, "revenue": revenue}

    return {
        "orders": sum(s["total_orders"] for s in event_stats_list),
        "items": sum(s["total_items"] for s in event_stats_list),
        "revenue": sum(s["total_revenue"] for s in event_stats_list),
    }


def efficiency(event_stats_list):
    with_completions = [
        s for s in event_stats_list
        if s["completed_orders"] > 0 and s["avg_completion_time"] is not None
    ]
    averages = [s["avg_completion_time"] for s in with_completions]
    return {
        "events": [
            {"event": s["event"], "avg_completion_time": s["avg_completion_time"]}
            for s in with_completions
        ],
        "overall_avg": _mean(averages),
        "min_avg": min(averages) if averages else None,
        "max_avg": max(averages) if averages else None,
    }


def event_summary(orders):
    """Totals, timing and throughput for one event, or None without orders."""
    if not orders:
        return None

    total_items = 0
    total_revenue = 0.0
    item_sales = {}

    for order in orders:
        for order_item in order.order_items or []:
            item = order_item.item
            if item is None:
                continue
            price = unit_price(order_item)
            total_items += 1
            total_revenue += price
            entry = item_sales.setdefault(item.id, {"item": item, "quantity": 0, "revenue": 0.0})
            entry["quantity"] += 1
            entry["revenue"] += price

    completion_times = [completion_time_ms(o) for o in orders if o.completed_at]

    orders_per_hour = 0.0
    items_per_hour = 0.0
    if len(orders) >= 2:
        created = [o.created_at for o in orders]
        span_hours = (max(created) - min(created)).total_seconds() * 1000 / _MS_PER_HOUR
        if span_hours > 0:
            orders_per_hour = len(orders) / span_hours
            items_per_hour = total_items / span_hours

    return {
        "total_orders": len(orders),
        "completed_orders": len(completion_times),
        "total_items": total_items,
        "total_revenue": total_revenue,
        "avg_completion_time": _mean(completion_times),
        "orders_per_hour": orders_per_hour,
        "items_per_hour": items_per_hour,
        "item_sales": sorted(item_sales.values(), key=lambda e: e["quantity"], reverse=True),
    }


def completed_item_counts(orders):
    counts = {}
    for order in orders:
        if not order.completed_at:
            continue
        for order_item in order.order_items or []:
            if order_item.item is None:
                continue
            entry = counts.setdefault(order_item.item_id, {"item": order_item.item, "count": 0})
            entry["count"] += 1
    return sorted(counts.values(), key=lambda e: e["item"].code)


def sort_events(events):
    # two stable passes: date descending, then status priority
    by_date = sorted(events, key=lambda e: e.date, reverse=True)
    return sorted(by_date, key=lambda e: EVENT_STATUS_ORDER.get(e.status or "future", 1))


def group_events(events):
    grouped = OrderedDict((status, []) for status in EVENT_STATUS_ORDER)
    for event in sort_events(events):
        grouped[event.status or "future"].append(event)
    return grouped


def group_order_items(order):
    """Units of an order keyed by item code, units with modifications first."""
    by_code = {}
    for order_item in order.order_items or []:
        if order_item.item is None:
            continue
        by_code.setdefault(order_item.item.code, []).append(
            {"item": order_item.item, "modification": order_item.modifications}
        )
    for units in by_code.values():
        units.sort(key=lambda u: 0 if u["modification"] else 1)
    return by_code


def order_grid(orders, items, visible_count=DEFAULT_VISIBLE_ORDERS):
    item_codes = sorted({item.code for item in items})

    pending = sorted(
        (o for o in orders if order_status(o) == "pending"), key=lambda o: o.created_at
    )
    completed = sorted(
        (o for o in orders if order_status(o) == "completed"),
        key=lambda o: o.completed_at,
        reverse=True,
    )
    visible = pending[:visible_count]

    return {
        "item_codes": item_codes,
        "pending": [(o, group_order_items(o)) for o in visible],
        "completed": [(o, group_order_items(o)) for o in completed],
        "pending_count": len(pending),
        "hidden_pending": len(pending) - len(visible),
        "completed_count": len(completed),
    }
