"""Brand CRM routes: customers, orders, order metrics and marketing campaigns."""
from __future__ import annotations

import csv
import io
from datetime import datetime, timedelta

from flask import Blueprint, Response, current_app, jsonify, request
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .auth import is_admin, require_user
from .extensions import db
from .models import Brand, Campaign, Customer, Order, as_utc, utc_now
from .validation import (
    clean_str,
    get_list_arg,
    get_pagination,
    is_valid_email,
    pagination_meta,
    parse_datetime,
)

bp_crm = Blueprint("crm", __name__)

FIRST_ORDER_NUMBER = 1000

ORDER_CHANNELS = ("shop", "online_store", "pos", "draft", "api")
PAYMENT_STATUSES = ("pending", "paid", "partially_paid", "refunded", "voided")
FULFILLMENT_STATUSES = ("unfulfilled", "partially_fulfilled", "fulfilled", "scheduled")
DELIVERY_STATUSES = ("pending", "in_transit", "delivered", "returned", "failed")
DELIVERY_METHODS = ("shipping", "pickup", "local_delivery", "not_required")
CUSTOMER_STATUSES = ("active", "disabled", "invited")
CAMPAIGN_TYPES = ("email", "sms", "push", "social")
CAMPAIGN_STATUSES = ("draft", "scheduled", "sending", "sent", "active", "paused", "inactive")

ORDER_SORT_COLUMNS = {
    "created_at": Order.created_at,
    "total": Order.total,
    "order_number": Order.order_number,
}

EXPORT_COLUMNS = (
    "order_number",
    "created_at",
    "customer_name",
    "customer_email",
    "channel",
    "payment_status",
    "fulfillment_status",
    "delivery_status",
    "item_count",
    "subtotal",
    "tax",
    "shipping",
    "discount",
    "total",
    "currency",
)


def _load_brand(brand_id: int):
    """Resolve ``(user, brand, None)`` or ``(None, None, error_response)``."""
    user, error = require_user()
    if error:
        return None, None, error

    brand = Brand.query.get(brand_id)
    if not brand:
        return None, None, (jsonify({"error": "brand_not_found"}), 404)

    if brand.owner_id != user.user_id and not is_admin(user):
        current_app.logger.warning(
            f"User {user.user_id} attempted to access brand {brand_id} owned by {brand.owner_id}"
        )
        return None, None, (jsonify({"error": "forbidden", "message": "You do not have access to this brand"}), 403)

    return user, brand, None


def _string_list(value: object) -> list[str] | None:
    if not isinstance(value, list):
        return None
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


# --- BEGIN: Brands ---

@bp_crm.post("/brands")
def create_brand() -> tuple[dict[str, object], int]:
    user, error = require_user()
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    name = clean_str(payload.get("name"))
    if not name:
        return jsonify({"error": "invalid_payload", "message": "name is required"}), 400

    try:
        if Brand.query.filter_by(owner_id=user.user_id).first():
            return jsonify({"error": "conflict", "message": "You already own a brand"}), 409

        brand = Brand(owner_id=user.user_id, name=name)
        db.session.add(brand)
        db.session.commit()

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create brand", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    current_app.logger.info(f"Brand {brand.brand_id} created for user {user.user_id}")
    return jsonify({"brand": brand.to_dict()}), 201


@bp_crm.get("/brands/mine")
def get_my_brand() -> tuple[dict[str, object], int]:
    user, error = require_user()
    if error:
        return error

    try:
        brand = Brand.query.filter_by(owner_id=user.user_id).first()
        if not brand:
            return jsonify({"error": "brand_not_found"}), 404
        return jsonify({"brand": brand.to_dict()}), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch brand", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

# --- END: Brands ---


# --- BEGIN: Customers ---

def _set_consent(customer: Customer, channel: str, subscribed: bool, now: datetime) -> None:
    """Flip a marketing consent flag, stamping the matching timestamp."""
    current = bool(getattr(customer, f"{channel}_subscribed"))
    if current == subscribed:
        return
    setattr(customer, f"{channel}_subscribed", subscribed)
    if subscribed:
        setattr(customer, f"{channel}_subscribed_at", now)
    else:
        setattr(customer, f"{channel}_unsubscribed_at", now)


def _apply_customer_fields(customer: Customer, payload: dict, author_name: str) -> str | None:
    now = utc_now()

    for field in ("first_name", "last_name"):
        if field in payload:
            setattr(customer, field, clean_str(payload.get(field)))

    if "email" in payload:
        email = clean_str(payload.get("email"))
        if not is_valid_email(email):
            return "A valid email is required"
        customer.email = email.lower()

    for field in ("phone", "source"):
        if field in payload:
            setattr(customer, field, clean_str(payload.get(field)))

    if "phone_country_code" in payload:
        customer.phone_country_code = clean_str(payload.get("phone_country_code")) or "US"
    if "language" in payload:
        customer.language = clean_str(payload.get("language")) or "en"

    if "status" in payload:
        if payload.get("status") not in CUSTOMER_STATUSES:
            return f"status must be one of: {', '.join(CUSTOMER_STATUSES)}"
        customer.status = payload["status"]

    if "tags" in payload:
        tags = _string_list(payload.get("tags"))
        if tags is None:
            return "tags must be a list of strings"
        customer.tags = tags

    if "addresses" in payload:
        addresses = payload.get("addresses")
        if not isinstance(addresses, list) or not all(isinstance(a, dict) for a in addresses):
            return "addresses must be a list of objects"
        customer.addresses = addresses

    note = clean_str(payload.get("note"))
    if note:
        customer.notes = list(customer.notes or []) + [{
            "content": note,
            "created_at": now.isoformat(),
            "created_by": author_name,
        }]

    for channel in ("email", "sms"):
        key = f"{channel}_subscribed"
        if key in payload:
            _set_consent(customer, channel, bool(payload.get(key)), now)

    if not customer.first_name or not customer.last_name or not customer.email:
        return "first_name, last_name and email are required"
    return None


def _email_taken(brand_id: int, email: str, exclude_id: int | None = None) -> bool:
    query = Customer.query.filter(Customer.brand_id == brand_id, Customer.email == email)
    if exclude_id is not None:
        query = query.filter(Customer.customer_id != exclude_id)
    return db.session.query(query.exists()).scalar()


@bp_crm.get("/brands/<int:brand_id>/customers")
def list_customers(brand_id: int) -> tuple[dict[str, object], int]:
    """List a brand's customers, newest first.
    ---
    tags:
      - CRM
    parameters:
      - name: brand_id
        in: path
        type: integer
        required: true
      - name: query
        in: query
        type: string
        description: Match on first name, last name or email
      - name: tag
        in: query
        type: string
      - name: page
        in: query
        type: integer
      - name: limit
        in: query
        type: integer
    responses:
      200:
        description: Paginated customers
      400:
        description: Invalid pagination parameters
      403:
        description: Not the brand owner
    """
    _, brand, error = _load_brand(brand_id)
    if error:
        return error

    try:
        page, limit = get_pagination()
    except ValueError:
        return jsonify({"error": "invalid_parameters"}), 400

    search = clean_str(request.args.get("query"))
    tag = clean_str(request.args.get("tag"))

    try:
        customer_query = Customer.query.filter(Customer.brand_id == brand.brand_id)
        if search:
            pattern = f"%{search}%"
            customer_query = customer_query.filter(
                or_(
                    Customer.first_name.ilike(pattern),
                    Customer.last_name.ilike(pattern),
                    Customer.email.ilike(pattern),
                )
            )

        customers = customer_query.order_by(Customer.created_at.desc()).all()
        # Tags live in a JSON column, so the tag filter runs here
        if tag:
            customers = [c for c in customers if tag in (c.tags or [])]

        total = len(customers)
        window = customers[(page - 1) * limit: page * limit]

        return jsonify({
            "customers": [customer.to_dict() for customer in window],
            "pagination": pagination_meta(page, limit, total),
        }), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch customers", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_crm.get("/brands/<int:brand_id>/customers/<int:customer_id>")
def get_customer(brand_id: int, customer_id: int) -> tuple[dict[str, object], int]:
    _, brand, error = _load_brand(brand_id)
    if error:
        return error

    try:
        customer = Customer.query.filter_by(brand_id=brand.brand_id, customer_id=customer_id).first()
        if not customer:
            return jsonify({"error": "customer_not_found"}), 404
        return jsonify({"customer": customer.to_dict()}), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch customer", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_crm.post("/brands/<int:brand_id>/customers")
def create_customer(brand_id: int) -> tuple[dict[str, object], int]:
    user, brand, error = _load_brand(brand_id)
    if error:
        return error

    payload = request.get_json(silent=True) or {}

    customer = Customer(
        brand_id=brand.brand_id,
        addresses=[],
        tags=[],
        notes=[],
        email_subscribed=False,
        sms_subscribed=False,
    )
    message = _apply_customer_fields(customer, payload, user.name)
    if message:
        return jsonify({"error": "invalid_payload", "message": message}), 400

    try:
        if _email_taken(brand.brand_id, customer.email):
            return jsonify({"error": "conflict", "message": "A customer with this email already exists"}), 409

        db.session.add(customer)
        db.session.commit()

    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "conflict", "message": "A customer with this email already exists"}), 409
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create customer", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"customer": customer.to_dict()}), 201


@bp_crm.put("/brands/<int:brand_id>/customers/<int:customer_id>")
def update_customer(brand_id: int, customer_id: int) -> tuple[dict[str, object], int]:
    user, brand, error = _load_brand(brand_id)
    if error:
        return error

    payload = request.get_json(silent=True) or {}

    try:
        customer = Customer.query.filter_by(brand_id=brand.brand_id, customer_id=customer_id).first()
        if not customer:
            return jsonify({"error": "customer_not_found"}), 404

        message = _apply_customer_fields(customer, payload, user.name)
        if message:
            db.session.rollback()
            return jsonify({"error": "invalid_payload", "message": message}), 400

        if "email" in payload and _email_taken(brand.brand_id, customer.email, exclude_id=customer_id):
            db.session.rollback()
            return jsonify({"error": "conflict", "message": "A customer with this email already exists"}), 409

        db.session.commit()
        return jsonify({"customer": customer.to_dict()}), 200

    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "conflict", "message": "A customer with this email already exists"}), 409
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update customer", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_crm.delete("/brands/<int:brand_id>/customers/<int:customer_id>")
def delete_customer(brand_id: int, customer_id: int) -> tuple[dict[str, str], int]:
    _, brand, error = _load_brand(brand_id)
    if error:
        return error

    try:
        customer = Customer.query.filter_by(brand_id=brand.brand_id, customer_id=customer_id).first()
        if not customer:
            return jsonify({"error": "customer_not_found"}), 404

        # Orders keep their customer snapshot
        Order.query.filter_by(customer_id=customer_id).update({"customer_id": None})
        db.session.delete(customer)
        db.session.commit()
        return jsonify({"message": "Customer deleted successfully"}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete customer", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

# --- END: Customers ---


# --- BEGIN: Orders ---

def _parse_money(payload: dict, key: str) -> float:
    """Read a non-negative amount; raises ValueError."""
    value = payload.get(key, 0)
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ValueError(f"{key} must be a non-negative number")
    return float(value)


def _parse_items(raw_items: object) -> tuple[list[dict], str | None]:
    if not isinstance(raw_items, list) or not raw_items:
        return [], "At least one item is required"

    items = []
    for index, raw in enumerate(raw_items, start=1):
        if not isinstance(raw, dict):
            return [], f"Item {index} must be an object"

        name = clean_str(raw.get("name"))
        quantity = raw.get("quantity")
        price = raw.get("price")

        if not name:
            return [], f"Item {index} is missing a name"
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            return [], f"Item {index} quantity must be a positive integer"
        if isinstance(price, bool) or not isinstance(price, (int, float)) or price < 0:
            return [], f"Item {index} price must be a non-negative number"

        item = {
            "name": name,
            "quantity": quantity,
            "price": float(price),
            "total": round(float(price) * quantity, 2),
        }
        for optional in ("sku", "product_id", "variant", "image"):
            if raw.get(optional) is not None:
                item[optional] = raw[optional]
        items.append(item)

    return items, None


def _next_order_number(brand_id: int) -> int:
    highest = db.session.query(func.max(Order.order_number)).filter(Order.brand_id == brand_id).scalar()
    return FIRST_ORDER_NUMBER if highest is None else highest + 1


def _filtered_orders(brand_id: int) -> list[Order]:
    """Apply the list/export query args to a brand's orders.

    Raises ValueError on malformed dates or totals.
    """
    order_query = Order.query.filter(Order.brand_id == brand_id)

    for arg, column, allowed in (
        ("payment_status", Order.payment_status, PAYMENT_STATUSES),
        ("fulfillment_status", Order.fulfillment_status, FULFILLMENT_STATUSES),
        ("delivery_status", Order.delivery_status, DELIVERY_STATUSES),
        ("channel", Order.channel, ORDER_CHANNELS),
    ):
        values = get_list_arg(arg)
        if values:
            unknown = [v for v in values if v not in allowed]
            if unknown:
                raise ValueError(f"Unknown {arg}: {', '.join(unknown)}")
            order_query = order_query.filter(column.in_(values))

    for arg, op in (("min_total", "__ge__"), ("max_total", "__le__")):
        raw = request.args.get(arg)
        if raw:
            order_query = order_query.filter(getattr(Order.total, op)(float(raw)))

    sort_key = request.args.get("order_by", "created_at")
    direction = request.args.get("direction", "desc").lower()
    sort_column = ORDER_SORT_COLUMNS.get(sort_key, Order.created_at)
    if direction == "asc":
        order_query = order_query.order_by(sort_column.asc(), Order.order_id.asc())
    else:
        order_query = order_query.order_by(sort_column.desc(), Order.order_id.desc())

    orders = order_query.all()

    start = request.args.get("start")
    end = request.args.get("end")
    if start:
        start_at = parse_datetime(start)
        orders = [o for o in orders if as_utc(o.created_at) >= start_at]
    if end:
        end_at = parse_datetime(end)
        if len(end.strip()) == 10:
            end_at += timedelta(days=1)
            orders = [o for o in orders if as_utc(o.created_at) < end_at]
        else:
            orders = [o for o in orders if as_utc(o.created_at) <= end_at]

    tag = clean_str(request.args.get("tag"))
    if tag:
        orders = [o for o in orders if tag in (o.tags or [])]

    search = clean_str(request.args.get("search"))
    if search:
        needle = search.lower().lstrip("#")
        orders = [
            o for o in orders
            if needle in str(o.order_number)
            or needle in (o.customer_name or "").lower()
            or needle in (o.customer_email or "").lower()
            or any(needle in str(item.get("name", "")).lower() for item in (o.items or []))
        ]

    return orders


@bp_crm.get("/brands/<int:brand_id>/orders")
def list_orders(brand_id: int) -> tuple[dict[str, object], int]:
    """List orders with filters, search, sorting and pagination.
    ---
    tags:
      - CRM
    parameters:
      - name: payment_status
        in: query
        type: string
        description: Comma separated list
      - name: fulfillment_status
        in: query
        type: string
      - name: delivery_status
        in: query
        type: string
      - name: channel
        in: query
        type: string
      - name: start
        in: query
        type: string
        format: date
      - name: end
        in: query
        type: string
        format: date
      - name: tag
        in: query
        type: string
      - name: min_total
        in: query
        type: number
      - name: max_total
        in: query
        type: number
      - name: search
        in: query
        type: string
      - name: order_by
        in: query
        type: string
        enum: [created_at, total, order_number]
      - name: direction
        in: query
        type: string
        enum: [asc, desc]
    responses:
      200:
        description: Paginated orders
      400:
        description: Invalid filter or pagination parameters
    """
    _, brand, error = _load_brand(brand_id)
    if error:
        return error

    try:
        page, limit = get_pagination()
    except ValueError:
        return jsonify({"error": "invalid_parameters"}), 400

    try:
        orders = _filtered_orders(brand.brand_id)
    except ValueError as exc:
        return jsonify({"error": "invalid_parameters", "message": str(exc)}), 400
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch orders", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    total = len(orders)
    window = orders[(page - 1) * limit: page * limit]

    return jsonify({
        "orders": [order.to_dict() for order in window],
        "pagination": pagination_meta(page, limit, total),
    }), 200


@bp_crm.get("/brands/<int:brand_id>/orders/<int:order_id>")
def get_order(brand_id: int, order_id: int) -> tuple[dict[str, object], int]:
    _, brand, error = _load_brand(brand_id)
    if error:
        return error

    try:
        order = Order.query.filter_by(brand_id=brand.brand_id, order_id=order_id).first()
        if not order:
            return jsonify({"error": "order_not_found"}), 404
        return jsonify({"order": order.to_dict()}), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch order", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_crm.post("/brands/<int:brand_id>/orders")
def create_order(brand_id: int) -> tuple[dict[str, object], int]:
    """Create an order, computing totals and the next order number.

    When the customer email matches a CRM customer of the brand, the order
    is linked to it and that customer's order analytics are bumped.
    """
    _, brand, error = _load_brand(brand_id)
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    customer_data = payload.get("customer") or {}
    if not isinstance(customer_data, dict):
        return jsonify({"error": "invalid_payload", "message": "customer must be an object"}), 400

    customer_name = clean_str(customer_data.get("name"))
    customer_email = clean_str(customer_data.get("email"))
    if not customer_name or not customer_email:
        return jsonify({"error": "invalid_payload", "message": "Customer name and email are required"}), 400
    if not is_valid_email(customer_email):
        return jsonify({"error": "invalid_email", "message": "Customer email is invalid"}), 400

    items, message = _parse_items(payload.get("items"))
    if message:
        return jsonify({"error": "invalid_payload", "message": message}), 400

    try:
        tax = _parse_money(payload, "tax")
        shipping = _parse_money(payload, "shipping")
        discount = _parse_money(payload, "discount")
    except ValueError as exc:
        return jsonify({"error": "invalid_payload", "message": str(exc)}), 400

    channel = payload.get("channel", "shop")
    payment_status = payload.get("payment_status", "pending")
    delivery_method = payload.get("delivery_method", "shipping")
    for value, allowed, label in (
        (channel, ORDER_CHANNELS, "channel"),
        (payment_status, PAYMENT_STATUSES, "payment_status"),
        (delivery_method, DELIVERY_METHODS, "delivery_method"),
    ):
        if value not in allowed:
            return jsonify({
                "error": "invalid_payload",
                "message": f"{label} must be one of: {', '.join(allowed)}",
            }), 400

    subtotal = round(sum(item["total"] for item in items), 2)
    total = round(subtotal + tax + shipping - discount, 2)
    now = utc_now()

    try:
        customer = Customer.query.filter_by(brand_id=brand.brand_id, email=customer_email.lower()).first()

        order = Order(
            brand_id=brand.brand_id,
            order_number=_next_order_number(brand.brand_id),
            customer_id=customer.customer_id if customer else None,
            customer_name=customer_name,
            customer_email=customer_email.lower(),
            customer_phone=clean_str(customer_data.get("phone")),
            channel=channel,
            source=clean_str(payload.get("source")),
            subtotal=subtotal,
            tax=tax,
            shipping=shipping,
            discount=discount,
            total=total,
            currency=clean_str(payload.get("currency")) or "USD",
            payment_status=payment_status,
            payment_method=clean_str(payload.get("payment_method")),
            paid_at=now if payment_status == "paid" else None,
            fulfillment_status="unfulfilled",
            delivery_status="pending",
            delivery_method=delivery_method,
            items=items,
            item_count=sum(item["quantity"] for item in items),
            shipping_address=payload.get("shipping_address"),
            billing_address=payload.get("billing_address"),
            flags=[],
            tags=_string_list(payload.get("tags")) or [],
            notes=clean_str(payload.get("notes")),
            internal_notes=clean_str(payload.get("internal_notes")),
            has_return=False,
            risk_level="low",
            created_at=now,
            updated_at=now,
        )
        db.session.add(order)

        if customer:
            customer.total_orders = (customer.total_orders or 0) + 1
            customer.total_spent = round((customer.total_spent or 0.0) + total, 2)
            customer.last_order_at = now

        db.session.commit()

    except IntegrityError:
        db.session.rollback()
        current_app.logger.warning(f"Order number collision for brand {brand.brand_id}")
        return jsonify({"error": "conflict", "message": "Order number already in use, please retry"}), 409
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create order", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    current_app.logger.info(f"Order #{order.order_number} created for brand {brand.brand_id}")
    return jsonify({"order": order.to_dict()}), 201


@bp_crm.put("/brands/<int:brand_id>/orders/<int:order_id>")
def update_order(brand_id: int, order_id: int) -> tuple[dict[str, object], int]:
    _, brand, error = _load_brand(brand_id)
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    now = utc_now()

    try:
        order = Order.query.filter_by(brand_id=brand.brand_id, order_id=order_id).first()
        if not order:
            return jsonify({"error": "order_not_found"}), 404

        for field, allowed, stamp_value, stamp_field in (
            ("payment_status", PAYMENT_STATUSES, "paid", "paid_at"),
            ("fulfillment_status", FULFILLMENT_STATUSES, "fulfilled", "fulfilled_at"),
            ("delivery_status", DELIVERY_STATUSES, "delivered", "delivered_at"),
            ("delivery_method", DELIVERY_METHODS, None, None),
        ):
            if field not in payload:
                continue
            value = payload.get(field)
            if value not in allowed:
                db.session.rollback()
                return jsonify({
                    "error": "invalid_payload",
                    "message": f"{field} must be one of: {', '.join(allowed)}",
                }), 400
            if stamp_field and value == stamp_value and getattr(order, field) != value:
                setattr(order, stamp_field, now)
            setattr(order, field, value)

        for field in ("tracking_number", "tracking_url", "notes", "internal_notes", "payment_method"):
            if field in payload:
                setattr(order, field, clean_str(payload.get(field)))

        for field in ("shipping_address", "billing_address"):
            if field in payload:
                setattr(order, field, payload.get(field))

        for field in ("tags", "flags"):
            if field in payload:
                values = _string_list(payload.get(field))
                if values is None:
                    db.session.rollback()
                    return jsonify({"error": "invalid_payload", "message": f"{field} must be a list of strings"}), 400
                setattr(order, field, values)

        if "risk_level" in payload:
            if payload.get("risk_level") not in ("low", "medium", "high"):
                db.session.rollback()
                return jsonify({"error": "invalid_payload", "message": "risk_level must be low, medium or high"}), 400
            order.risk_level = payload["risk_level"]

        if "has_return" in payload:
            order.has_return = bool(payload.get("has_return"))
        if "return_amount" in payload:
            try:
                order.return_amount = _parse_money(payload, "return_amount")
            except ValueError as exc:
                db.session.rollback()
                return jsonify({"error": "invalid_payload", "message": str(exc)}), 400

        order.updated_at = now
        db.session.commit()
        return jsonify({"order": order.to_dict()}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update order", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_crm.delete("/brands/<int:brand_id>/orders/<int:order_id>")
def delete_order(brand_id: int, order_id: int) -> tuple[dict[str, str], int]:
    _, brand, error = _load_brand(brand_id)
    if error:
        return error

    try:
        order = Order.query.filter_by(brand_id=brand.brand_id, order_id=order_id).first()
        if not order:
            return jsonify({"error": "order_not_found"}), 404

        db.session.delete(order)
        db.session.commit()
        return jsonify({"message": "Order deleted successfully"}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete order", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


def _percentage_change(previous: float, current: float) -> float:
    if previous == 0:
        return 100 if current > 0 else 0
    return round((current - previous) / previous * 100, 2)


def _order_metrics(orders: list[Order]) -> dict[str, float]:
    fulfilled = [o for o in orders if o.fulfillment_status == "fulfilled" and o.fulfilled_at]
    avg_fulfillment_hours = 0.0
    if fulfilled:
        total_seconds = sum(
            (as_utc(o.fulfilled_at) - as_utc(o.created_at)).total_seconds() for o in fulfilled
        )
        avg_fulfillment_hours = round(total_seconds / len(fulfilled) / 3600, 2)

    return {
        "totalOrders": len(orders),
        "itemsOrdered": sum(o.item_count or 0 for o in orders),
        "returnValue": round(sum(o.return_amount or 0.0 for o in orders), 2),
        "ordersFulfilled": sum(1 for o in orders if o.fulfillment_status == "fulfilled"),
        "ordersDelivered": sum(1 for o in orders if o.delivery_status == "delivered"),
        "avgFulfillmentTime": avg_fulfillment_hours,
        "revenue": round(sum(o.total or 0.0 for o in orders), 2),
        "unpaidCount": sum(1 for o in orders if o.payment_status in ("pending", "partially_paid")),
        "unfulfilledCount": sum(1 for o in orders if o.fulfillment_status == "unfulfilled"),
    }


def _in_window(orders: list[Order], start: datetime, end: datetime) -> list[Order]:
    return [o for o in orders if start <= as_utc(o.created_at) <= end]


@bp_crm.get("/brands/<int:brand_id>/orders/metrics")
def order_metrics(brand_id: int) -> tuple[dict[str, object], int]:
    """Order KPIs for a date window, with percentage change vs. a comparison window.

    Without ``start``/``end`` the window is the last 30 days. Without a
    comparison window every change is measured against zero.
    """
    _, brand, error = _load_brand(brand_id)
    if error:
        return error

    now = utc_now()
    try:
        start = parse_datetime(request.args["start"]) if request.args.get("start") else now - timedelta(days=30)
        end = parse_datetime(request.args["end"]) if request.args.get("end") else now
        compare_start = request.args.get("compare_start")
        compare_end = request.args.get("compare_end")
        compare_window = None
        if compare_start and compare_end:
            compare_window = (parse_datetime(compare_start), parse_datetime(compare_end))
    except ValueError:
        return jsonify({"error": "invalid_parameters", "message": "Dates must be ISO 8601"}), 400

    try:
        orders = Order.query.filter(Order.brand_id == brand.brand_id).all()
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to compute order metrics", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    current = _order_metrics(_in_window(orders, start, end))
    previous = _order_metrics(_in_window(orders, *compare_window) if compare_window else [])

    metrics: dict[str, object] = {}
    for name in (
        "totalOrders",
        "itemsOrdered",
        "returnValue",
        "ordersFulfilled",
        "ordersDelivered",
        "avgFulfillmentTime",
        "revenue",
    ):
        metrics[name] = current[name]
        metrics[f"{name}Change"] = _percentage_change(previous[name], current[name])
    metrics["unpaidCount"] = current["unpaidCount"]
    metrics["unfulfilledCount"] = current["unfulfilledCount"]

    return jsonify({"metrics": metrics}), 200


@bp_crm.get("/brands/<int:brand_id>/orders/export")
def export_orders(brand_id: int):
    _, brand, error = _load_brand(brand_id)
    if error:
        return error

    output_format = request.args.get("format", "csv").lower()
    if output_format not in ("csv", "json"):
        return jsonify({"error": "invalid_format"}), 400

    try:
        orders = _filtered_orders(brand.brand_id)
    except ValueError as exc:
        return jsonify({"error": "invalid_parameters", "message": str(exc)}), 400
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to export orders", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    if output_format == "json":
        return jsonify({"orders": [order.to_dict() for order in orders]}), 200

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(EXPORT_COLUMNS)
    for order in orders:
        row = []
        for column in EXPORT_COLUMNS:
            value = getattr(order, column)
            if isinstance(value, datetime):
                value = as_utc(value).isoformat()
            row.append(value)
        writer.writerow(row)

    csv_content = output.getvalue()
    output.close()

    current_app.logger.info(f"Exported {len(orders)} orders for brand {brand.brand_id}")
    return Response(
        csv_content,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename=orders-brand-{brand.brand_id}.csv"},
    )

# --- END: Orders ---


# --- BEGIN: Marketing ---

def _apply_campaign_fields(campaign: Campaign, payload: dict) -> str | None:
    if "name" in payload:
        campaign.name = clean_str(payload.get("name"))
    if "subject" in payload:
        campaign.subject = clean_str(payload.get("subject"))

    if "type" in payload:
        if payload.get("type") not in CAMPAIGN_TYPES:
            return f"type must be one of: {', '.join(CAMPAIGN_TYPES)}"
        campaign.campaign_type = payload["type"]

    if "status" in payload:
        if payload.get("status") not in CAMPAIGN_STATUSES:
            return f"status must be one of: {', '.join(CAMPAIGN_STATUSES)}"
        campaign.status = payload["status"]

    for field in ("content", "audience", "stats"):
        if field in payload:
            value = payload.get(field) or {}
            if not isinstance(value, dict):
                return f"{field} must be an object"
            setattr(campaign, field, value)

    for field in ("scheduled_at", "sent_at"):
        if field in payload:
            try:
                setattr(campaign, field, parse_datetime(payload[field]) if payload[field] else None)
            except ValueError:
                return f"{field} must be an ISO 8601 timestamp"

    if not campaign.name or not campaign.campaign_type:
        return "name and type are required"
    return None


@bp_crm.get("/brands/<int:brand_id>/campaigns")
def list_campaigns(brand_id: int) -> tuple[dict[str, object], int]:
    _, brand, error = _load_brand(brand_id)
    if error:
        return error

    status = request.args.get("status")
    campaign_type = request.args.get("type")
    if (status and status not in CAMPAIGN_STATUSES) or (campaign_type and campaign_type not in CAMPAIGN_TYPES):
        return jsonify({"error": "invalid_parameters", "message": "Unknown campaign status or type"}), 400

    try:
        campaign_query = Campaign.query.filter(Campaign.brand_id == brand.brand_id)
        if status:
            campaign_query = campaign_query.filter(Campaign.status == status)
        if campaign_type:
            campaign_query = campaign_query.filter(Campaign.campaign_type == campaign_type)

        campaigns = campaign_query.order_by(Campaign.created_at.desc()).all()
        return jsonify({"campaigns": [campaign.to_dict() for campaign in campaigns]}), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch campaigns", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_crm.get("/brands/<int:brand_id>/campaigns/<int:campaign_id>")
def get_campaign(brand_id: int, campaign_id: int) -> tuple[dict[str, object], int]:
    _, brand, error = _load_brand(brand_id)
    if error:
        return error

    try:
        campaign = Campaign.query.filter_by(brand_id=brand.brand_id, campaign_id=campaign_id).first()
        if not campaign:
            return jsonify({"error": "campaign_not_found"}), 404
        return jsonify({"campaign": campaign.to_dict()}), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch campaign", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_crm.post("/brands/<int:brand_id>/campaigns")
def create_campaign(brand_id: int) -> tuple[dict[str, object], int]:
    _, brand, error = _load_brand(brand_id)
    if error:
        return error

    payload = request.get_json(silent=True) or {}

    campaign = Campaign(
        brand_id=brand.brand_id,
        status="draft",
        content={},
        audience={},
        stats={"sent": 0, "opened": 0, "clicked": 0, "revenue": 0},
    )
    message = _apply_campaign_fields(campaign, payload)
    if message:
        return jsonify({"error": "invalid_payload", "message": message}), 400

    try:
        db.session.add(campaign)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create campaign", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"campaign": campaign.to_dict()}), 201


@bp_crm.put("/brands/<int:brand_id>/campaigns/<int:campaign_id>")
def update_campaign(brand_id: int, campaign_id: int) -> tuple[dict[str, object], int]:
    _, brand, error = _load_brand(brand_id)
    if error:
        return error

    payload = request.get_json(silent=True) or {}

    try:
        campaign = Campaign.query.filter_by(brand_id=brand.brand_id, campaign_id=campaign_id).first()
        if not campaign:
            return jsonify({"error": "campaign_not_found"}), 404

        message = _apply_campaign_fields(campaign, payload)
        if message:
            db.session.rollback()
            return jsonify({"error": "invalid_payload", "message": message}), 400

        db.session.commit()
        return jsonify({"campaign": campaign.to_dict()}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update campaign", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_crm.delete("/brands/<int:brand_id>/campaigns/<int:campaign_id>")
def delete_campaign(brand_id: int, campaign_id: int) -> tuple[dict[str, str], int]:
    _, brand, error = _load_brand(brand_id)
    if error:
        return error

    try:
        campaign = Campaign.query.filter_by(brand_id=brand.brand_id, campaign_id=campaign_id).first()
        if not campaign:
            return jsonify({"error": "campaign_not_found"}), 404

        db.session.delete(campaign)
        db.session.commit()
        return jsonify({"message": "Campaign deleted successfully"}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete campaign", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_crm.get("/brands/<int:brand_id>/marketing/stats")
def marketing_stats(brand_id: int) -> tuple[dict[str, object], int]:
    """Aggregate delivery and engagement numbers across a brand's campaigns."""
    _, brand, error = _load_brand(brand_id)
    if error:
        return error

    try:
        campaigns = Campaign.query.filter(Campaign.brand_id == brand.brand_id).all()
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to compute marketing stats", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    def _stat(campaign: Campaign, key: str) -> float:
        value = (campaign.stats or {}).get(key, 0)
        return value if isinstance(value, (int, float)) else 0

    total_sent = sum(_stat(c, "sent") for c in campaigns)
    total_opened = sum(_stat(c, "opened") for c in campaigns)
    total_clicked = sum(_stat(c, "clicked") for c in campaigns)

    stats = {
        "totalCampaigns": len(campaigns),
        "activeCampaigns": sum(1 for c in campaigns if c.status in ("active", "scheduled", "sending")),
        "totalSent": total_sent,
        "openRate": round(total_opened / total_sent * 100, 2) if total_sent else 0,
        "clickRate": round(total_clicked / total_sent * 100, 2) if total_sent else 0,
        "revenue": round(sum(_stat(c, "revenue") for c in campaigns), 2),
    }
    return jsonify({"stats": stats}), 200

# --- END: Marketing ---
