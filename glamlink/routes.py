"""HTTP routes for the Glamlink marketplace API."""
from __future__ import annotations

from datetime import date, datetime, timezone

from flask import Blueprint, Flask, current_app, jsonify, request
from sqlalchemy import func, or_, text
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from .auth import build_token, get_current_user, is_admin, require_admin, require_user
from .extensions import db
from .models import AuthAccount, Professional, Promo, User
from .validation import clean_str, get_bool_arg, is_valid_email, parse_date

bp = Blueprint("api", __name__)


def register_routes(app: Flask) -> None:
    """Mount every blueprint on the application."""
    from .routes_crm import bp_crm
    from .routes_extended import bp_ext
    from .routes_magazine import bp_magazine

    app.register_blueprint(bp)
    app.register_blueprint(bp_magazine)
    app.register_blueprint(bp_crm)
    app.register_blueprint(bp_ext)


@bp.get("/health")
def health_check() -> tuple[dict[str, str], int]:
    """
    Expose a simple uptime check endpoint.
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is healthy and running.
    """
    return jsonify({"status": "ok"}), 200


@bp.get("/db-health")
def database_health() -> tuple[dict[str, str], int]:
    """Check connectivity to the configured database.
    ---
    tags:
      - Health
    responses:
      200:
        description: Database connection is ok.
      500:
        description: Database connection failed.
    """
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        current_app.logger.exception("Database connectivity check failed", exc_info=exc)
        return jsonify({"database": "unavailable"}), 500

    return jsonify({"database": "ok"}), 200


# --- BEGIN: Authentication ---

@bp.post("/auth/register")
def register_user() -> tuple[dict[str, object], int]:
    """Register a new shopper or professional account.
    ---
    tags:
      - Authentication
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
            email:
              type: string
            password:
              type: string
            role:
              type: string
              enum: [user, professional]
            phone:
              type: string
          required:
            - name
            - email
            - password
    responses:
      201:
        description: User registered successfully
      400:
        description: Invalid payload
      409:
        description: Email already exists
      500:
        description: Server error
    """
    payload = request.get_json(silent=True) or {}

    name = (payload.get("name") or "").strip()
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""
    role = (payload.get("role") or "user").strip().lower()
    phone = clean_str(payload.get("phone"))

    if not name or not email or not password:
        return (
            jsonify({"error": "invalid_payload", "message": "name, email, and password are required"}),
            400,
        )

    if not is_valid_email(email):
        return jsonify({"error": "invalid_email", "message": "email address is not valid"}), 400

    # Admin accounts are never created through the public endpoint
    if role not in ["user", "professional"]:
        return (
            jsonify({"error": "invalid_role", "message": "role must be 'user' or 'professional'"}),
            400,
        )

    if User.query.filter_by(email=email).first():
        return (
            jsonify({"error": "conflict", "message": "email address is already in use"}),
            409,
        )

    try:
        new_user = User(name=name, email=email, role=role, phone=phone)
        db.session.add(new_user)
        db.session.flush()  # Get the new user_id before creating the AuthAccount

        new_account = AuthAccount(user_id=new_user.user_id, password_hash=generate_password_hash(password))
        db.session.add(new_account)

        db.session.commit()

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to register new user", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    token = build_token({"user_id": new_user.user_id, "role": new_user.role})

    return jsonify({"token": token, "user": new_user.to_dict_basic()}), 201


@bp.post("/auth/login")
def login() -> tuple[dict[str, object], int]:
    """Authenticate a user by email/password and return an access token.
    ---
    tags:
      - Authentication
    responses:
      200:
        description: Login successful, returns access token
      400:
        description: Missing email or password
      401:
        description: Invalid credentials
      500:
        description: Server error
    """
    payload = request.get_json(silent=True) or {}

    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    if not email or not password:
        return (
            jsonify({"error": "invalid_payload", "message": "email and password are required"}),
            400,
        )

    record = (
        db.session.query(User, AuthAccount)
        .join(AuthAccount, AuthAccount.user_id == User.user_id)
        .filter(User.email == email)
        .first()
    )

    if not record:
        return jsonify({"error": "unauthorized", "message": "invalid email or password"}), 401

    user, auth_account = record

    if not check_password_hash(auth_account.password_hash, password):
        return jsonify({"error": "unauthorized", "message": "invalid email or password"}), 401

    auth_account.last_login_at = datetime.now(timezone.utc)

    try:
        db.session.add(auth_account)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update last login timestamp", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    token = build_token({"user_id": user.user_id, "role": user.role})

    user_data = user.to_dict_basic()
    user_data["is_admin"] = is_admin(user)
    if user.brand:
        user_data["brand_id"] = user.brand.brand_id

    return jsonify({"token": token, "user": user_data}), 200


@bp.get("/auth/me")
def current_user_profile() -> tuple[dict[str, object], int]:
    """Return the account behind the bearer token."""
    user, error = require_user()
    if error:
        return error

    user_data = user.to_dict_basic()
    user_data["is_admin"] = is_admin(user)
    return jsonify({"user": user_data}), 200

# --- END: Authentication ---


# --- BEGIN: Professionals ---

_PROFESSIONAL_TEXT_FIELDS = (
    "name",
    "title",
    "specialty",
    "location",
    "city",
    "bio",
    "email",
    "phone",
    "website",
    "instagram",
    "profile_image",
    "certification_level",
)
_PROFESSIONAL_BOOL_FIELDS = ("is_founder", "featured", "is_visible")


def _apply_professional_fields(professional: Professional, payload: dict) -> str | None:
    """Copy known fields from ``payload``; returns an error message or None."""
    for field in _PROFESSIONAL_TEXT_FIELDS:
        if field in payload:
            setattr(professional, field, clean_str(payload.get(field)))

    for field in _PROFESSIONAL_BOOL_FIELDS:
        if field in payload:
            setattr(professional, field, bool(payload.get(field)))

    if "specialties" in payload:
        specialties = payload.get("specialties") or []
        if not isinstance(specialties, list):
            return "specialties must be a list"
        professional.specialties = [str(item).strip() for item in specialties if str(item).strip()]

    if "years_experience" in payload:
        years = payload.get("years_experience")
        if years is not None and (not isinstance(years, int) or years < 0):
            return "years_experience must be a non-negative integer"
        professional.years_experience = years

    if "rating" in payload:
        rating = payload.get("rating")
        if rating is not None and (not isinstance(rating, (int, float)) or not 0 <= rating <= 5):
            return "rating must be between 0 and 5"
        professional.rating = rating

    if "review_count" in payload:
        review_count = payload.get("review_count") or 0
        if not isinstance(review_count, int) or review_count < 0:
            return "review_count must be a non-negative integer"
        professional.review_count = review_count

    if not professional.name:
        return "name is required"
    return None


@bp.get("/professionals")
def list_professionals() -> tuple[dict[str, object], int]:
    """Return visible professionals for the marketplace.
    ---
    tags:
      - Professionals
    parameters:
      - name: query
        in: query
        type: string
      - name: specialty
        in: query
        type: string
      - name: city
        in: query
        type: string
      - name: featured
        in: query
        type: boolean
    responses:
      200:
        description: List of professionals ordered for display
      500:
        description: Database error
    """
    query = (request.args.get("query") or "").strip()
    specialty = (request.args.get("specialty") or "").strip()
    city = (request.args.get("city") or "").strip()
    featured_only = get_bool_arg("featured")

    try:
        professional_query = Professional.query.filter(Professional.is_visible.is_(True))

        if query:
            pattern = f"%{query}%"
            professional_query = professional_query.filter(
                or_(
                    Professional.name.ilike(pattern),
                    Professional.title.ilike(pattern),
                    Professional.specialty.ilike(pattern),
                )
            )
        if specialty:
            professional_query = professional_query.filter(Professional.specialty.ilike(f"%{specialty}%"))
        if city:
            professional_query = professional_query.filter(Professional.city.ilike(city))
        if featured_only:
            professional_query = professional_query.filter(Professional.featured.is_(True))

        professionals = professional_query.order_by(
            Professional.sort_order.asc(), Professional.name.asc()
        ).all()

        return jsonify({
            "professionals": [professional.to_dict() for professional in professionals],
            "total": len(professionals),
        }), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch professionals", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.get("/professionals/<int:professional_id>")
def get_professional(professional_id: int) -> tuple[dict[str, object], int]:
    try:
        professional = Professional.query.get(professional_id)
        if not professional or not professional.is_visible:
            return jsonify({"error": "professional_not_found"}), 404

        return jsonify({"professional": professional.to_dict()}), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch professional", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.post("/admin/professionals")
def create_professional() -> tuple[dict[str, object], int]:
    """Create a professional listing (admin only)."""
    _, error = require_admin()
    if error:
        return error

    payload = request.get_json(silent=True) or {}

    professional = Professional()
    message = _apply_professional_fields(professional, payload)
    if message:
        return jsonify({"error": "invalid_payload", "message": message}), 400

    try:
        # New listings go to the end of the marketplace order
        max_order = db.session.query(func.max(Professional.sort_order)).scalar()
        professional.sort_order = (max_order or 0) + 1

        db.session.add(professional)
        db.session.commit()

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create professional", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"professional": professional.to_dict()}), 201


@bp.put("/admin/professionals/<int:professional_id>")
def update_professional(professional_id: int) -> tuple[dict[str, object], int]:
    _, error = require_admin()
    if error:
        return error

    payload = request.get_json(silent=True) or {}

    try:
        professional = Professional.query.get(professional_id)
        if not professional:
            return jsonify({"error": "professional_not_found"}), 404

        message = _apply_professional_fields(professional, payload)
        if message:
            db.session.rollback()
            return jsonify({"error": "invalid_payload", "message": message}), 400

        db.session.commit()
        return jsonify({"professional": professional.to_dict()}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update professional", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.delete("/admin/professionals/<int:professional_id>")
def delete_professional(professional_id: int) -> tuple[dict[str, str], int]:
    _, error = require_admin()
    if error:
        return error

    try:
        professional = Professional.query.get(professional_id)
        if not professional:
            return jsonify({"error": "professional_not_found"}), 404

        db.session.delete(professional)
        db.session.commit()
        return jsonify({"message": "Professional deleted successfully"}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete professional", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.post("/admin/professionals/reorder")
def reorder_professionals() -> tuple[dict[str, object], int]:
    """Persist a drag-and-drop ordering: ``sort_order`` becomes list position."""
    _, error = require_admin()
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    ids = payload.get("ids")

    if not isinstance(ids, list) or not ids or not all(isinstance(i, int) for i in ids):
        return jsonify({"error": "invalid_payload", "message": "ids must be a non-empty list of integers"}), 400

    try:
        professionals = Professional.query.filter(Professional.professional_id.in_(ids)).all()
        by_id = {professional.professional_id: professional for professional in professionals}

        missing = [i for i in ids if i not in by_id]
        if missing:
            return jsonify({
                "error": "professional_not_found",
                "message": f"unknown professional ids: {missing}",
            }), 400

        for position, professional_id in enumerate(ids, start=1):
            by_id[professional_id].sort_order = position

        db.session.commit()
        ordered = [by_id[i].to_dict() for i in ids]
        return jsonify({"professionals": ordered}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to reorder professionals", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.post("/admin/professionals/batch")
def batch_create_professionals() -> tuple[dict[str, object], int]:
    _, error = require_admin()
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    entries = payload.get("professionals")

    if not isinstance(entries, list) or not entries:
        return jsonify({"error": "invalid_payload", "message": "professionals must be a non-empty list"}), 400

    created: list[Professional] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            return jsonify({"error": "invalid_payload", "message": f"entry {index} is not an object"}), 400
        professional = Professional()
        message = _apply_professional_fields(professional, entry)
        if message:
            return jsonify({"error": "invalid_payload", "message": f"entry {index}: {message}"}), 400
        created.append(professional)

    try:
        max_order = db.session.query(func.max(Professional.sort_order)).scalar() or 0
        for offset, professional in enumerate(created, start=1):
            professional.sort_order = max_order + offset
            db.session.add(professional)
        db.session.commit()

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to batch create professionals", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({
        "professionals": [professional.to_dict() for professional in created],
        "created": len(created),
    }), 201

# --- END: Professionals ---


# --- BEGIN: Promos ---

# Request keys (camelCase, as sent by the admin dashboard) -> model attributes
_PROMO_REQUIRED_FIELDS = ("title", "description", "image", "link", "ctaText", "startDate", "endDate")
_PROMO_TEXT_FIELDS = {
    "title": "title",
    "description": "description",
    "image": "image",
    "link": "link",
    "ctaText": "cta_text",
    "popupDisplay": "popup_display",
    "category": "category",
}


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _active_promos_query(today: date):
    return (
        Promo.query.filter(
            Promo.visible.is_(True),
            Promo.start_date <= today,
            Promo.end_date >= today,
        )
        .order_by(Promo.priority.desc(), Promo.end_date.asc())
    )


def _promo_stats(today: date) -> dict[str, int]:
    promos = Promo.query.all()
    return {
        "total": len(promos),
        "active": sum(1 for promo in promos if promo.is_active(today)),
        "featured": sum(1 for promo in promos if promo.featured and promo.is_active(today)),
        "expired": sum(1 for promo in promos if promo.end_date < today),
        "upcoming": sum(1 for promo in promos if promo.start_date > today),
    }


def _apply_promo_fields(promo: Promo, payload: dict) -> str | None:
    for key, attribute in _PROMO_TEXT_FIELDS.items():
        if key in payload:
            value = clean_str(payload.get(key))
            if value is None and key in _PROMO_REQUIRED_FIELDS:
                return f"{key} cannot be empty"
            setattr(promo, attribute, value)

    try:
        if "startDate" in payload:
            promo.start_date = parse_date(payload.get("startDate"))
        if "endDate" in payload:
            promo.end_date = parse_date(payload.get("endDate"))
    except ValueError:
        return "startDate and endDate must be ISO dates (YYYY-MM-DD)"

    if promo.start_date and promo.end_date and promo.end_date < promo.start_date:
        return "endDate must be on or after startDate"

    for key in ("visible", "featured"):
        if key in payload:
            setattr(promo, key, bool(payload.get(key)))

    for key in ("discount", "priority"):
        if key in payload:
            value = payload.get(key)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                return f"{key} must be a non-negative integer"
            setattr(promo, key, value)

    if not promo.category:
        promo.category = "All"
    return None


@bp.get("/promos")
def list_promos() -> tuple[dict[str, object], int]:
    """Return currently active promotions.
    ---
    tags:
      - Promos
    parameters:
      - name: category
        in: query
        type: string
      - name: featured
        in: query
        type: boolean
      - name: stats
        in: query
        type: boolean
    responses:
      200:
        description: Active promos, featured promos, or aggregate stats
      500:
        description: Database error
    """
    category = (request.args.get("category") or "").strip()
    today = _today()

    try:
        if get_bool_arg("stats"):
            return jsonify({"success": True, "data": {"stats": _promo_stats(today)}}), 200

        active = _active_promos_query(today).all()

        if get_bool_arg("featured"):
            featured = [promo.to_dict() for promo in active if promo.featured]
            return jsonify({"success": True, "data": {"promos": featured, "featuredPromos": featured}}), 200

        if category and category != "All":
            in_category = [promo.to_dict() for promo in active if promo.category == category]
            return jsonify({"success": True, "data": {"promos": in_category, "featuredPromos": []}}), 200

        return jsonify({
            "success": True,
            "data": {
                "promos": [promo.to_dict() for promo in active],
                "featuredPromos": [promo.to_dict() for promo in active if promo.featured],
            },
        }), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch promos", exc_info=exc)
        return jsonify({"success": False, "error": "database_error"}), 500


@bp.get("/promos/<int:promo_id>")
def get_promo(promo_id: int) -> tuple[dict[str, object], int]:
    try:
        promo = Promo.query.get(promo_id)
        if not promo:
            return jsonify({"error": "promo_not_found"}), 404

        # Hidden promos are only visible to admins
        if not promo.visible and not is_admin(get_current_user()):
            return jsonify({"error": "promo_not_found"}), 404

        return jsonify({"promo": promo.to_dict()}), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch promo", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.post("/promos")
def create_promo() -> tuple[dict[str, object], int]:
    """Create a promotion (authenticated).
    ---
    tags:
      - Promos
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [title, description, image, link, ctaText, startDate, endDate]
    responses:
      201:
        description: Promo created
      400:
        description: Missing or invalid fields
      401:
        description: Authentication required
    """
    user, error = require_user()
    if error:
        return error

    payload = request.get_json(silent=True) or {}

    missing = [field for field in _PROMO_REQUIRED_FIELDS if not payload.get(field)]
    if missing:
        current_app.logger.warning(f"Promo rejected, missing fields: {', '.join(missing)}")
        return jsonify({
            "success": False,
            "error": "invalid_payload",
            "message": f"Missing required fields: {', '.join(missing)}",
        }), 400

    promo = Promo()
    message = _apply_promo_fields(promo, payload)
    if message:
        return jsonify({"success": False, "error": "invalid_payload", "message": message}), 400

    promo.popup_display = promo.popup_display or promo.title
    promo.extra = {
        "user_agent": request.headers.get("User-Agent"),
        "ip": request.headers.get("X-Forwarded-For") or request.headers.get("X-Real-IP") or "unknown",
        "source": "authenticated-submission",
        "user_id": user.user_id,
    }

    try:
        db.session.add(promo)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create promo", exc_info=exc)
        return jsonify({"success": False, "error": "database_error"}), 500

    current_app.logger.info(f"Promo {promo.promo_id} created by user {user.user_id}")
    return jsonify({
        "success": True,
        "message": "Promo created successfully!",
        "promoId": promo.promo_id,
        "title": promo.title,
    }), 201


@bp.put("/promos/<int:promo_id>")
def update_promo(promo_id: int) -> tuple[dict[str, object], int]:
    _, error = require_admin()
    if error:
        return error

    payload = request.get_json(silent=True) or {}

    try:
        promo = Promo.query.get(promo_id)
        if not promo:
            return jsonify({"error": "promo_not_found"}), 404

        message = _apply_promo_fields(promo, payload)
        if message:
            db.session.rollback()
            return jsonify({"error": "invalid_payload", "message": message}), 400

        db.session.commit()
        return jsonify({"promo": promo.to_dict()}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update promo", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.delete("/promos/<int:promo_id>")
def delete_promo(promo_id: int) -> tuple[dict[str, str], int]:
    _, error = require_admin()
    if error:
        return error

    try:
        promo = Promo.query.get(promo_id)
        if not promo:
            return jsonify({"error": "promo_not_found"}), 404

        db.session.delete(promo)
        db.session.commit()
        return jsonify({"message": "Promo deleted successfully"}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete promo", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp.get("/admin/promos")
def list_all_promos() -> tuple[dict[str, object], int]:
    """All promos, hidden and expired included, newest first."""
    _, error = require_admin()
    if error:
        return error

    try:
        promos = Promo.query.order_by(Promo.created_at.desc()).all()
        return jsonify({"promos": [promo.to_dict() for promo in promos]}), 200
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch promos for admin", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

# --- END: Promos ---
