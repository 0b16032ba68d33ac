"""Database models for the Glamlink backend."""
from __future__ import annotations

from datetime import date, datetime, timezone

from .extensions import db


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from the database."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _iso(value: datetime | date | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    return value.isoformat()


class User(db.Model):
    __tablename__ = "users"

    user_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    role = db.Column(
        db.Enum(
            "user",
            "professional",
            "admin",
            name="user_role",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="user",
    )
    phone = db.Column(db.String(30))
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    auth_account = db.relationship("AuthAccount", back_populates="user", uselist=False)
    brand = db.relationship("Brand", back_populates="owner", uselist=False)

    def to_dict_basic(self) -> dict[str, object]:
        return {
            "id": self.user_id,
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "phone": self.phone,
        }


class AuthAccount(db.Model):
    __tablename__ = "auth_accounts"

    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), primary_key=True)
    password_hash = db.Column(db.String(255), nullable=False)
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    user = db.relationship("User", back_populates="auth_account")


# ---------------------------------------------------------------------------
# Marketplace
# ---------------------------------------------------------------------------

class Professional(db.Model):
    __tablename__ = "professionals"

    professional_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    title = db.Column(db.String(150))
    specialty = db.Column(db.String(150))
    specialties = db.Column(db.JSON, nullable=False, default=list)
    location = db.Column(db.String(200))
    city = db.Column(db.String(100))
    bio = db.Column(db.Text)
    email = db.Column(db.String(255))
    phone = db.Column(db.String(30))
    website = db.Column(db.String(255))
    instagram = db.Column(db.String(100))
    profile_image = db.Column(db.String(500))
    certification_level = db.Column(db.String(50))
    years_experience = db.Column(db.Integer)
    rating = db.Column(db.Float)
    review_count = db.Column(db.Integer, nullable=False, default=0)
    is_founder = db.Column(db.Boolean, nullable=False, default=False)
    featured = db.Column(db.Boolean, nullable=False, default=False)
    is_visible = db.Column(db.Boolean, nullable=False, default=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.professional_id,
            "name": self.name,
            "title": self.title,
            "specialty": self.specialty,
            "specialties": self.specialties or [],
            "location": self.location,
            "city": self.city,
            "bio": self.bio,
            "email": self.email,
            "phone": self.phone,
            "website": self.website,
            "instagram": self.instagram,
            "profile_image": self.profile_image,
            "certification_level": self.certification_level,
            "years_experience": self.years_experience,
            "rating": self.rating,
            "review_count": self.review_count,
            "is_founder": bool(self.is_founder),
            "featured": bool(self.featured),
            "is_visible": bool(self.is_visible),
            "sort_order": self.sort_order,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Promo(db.Model):
    __tablename__ = "promos"

    promo_id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    image = db.Column(db.String(500), nullable=False)
    link = db.Column(db.String(500), nullable=False)
    cta_text = db.Column(db.String(100), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    popup_display = db.Column(db.String(200))
    visible = db.Column(db.Boolean, nullable=False, default=True)
    featured = db.Column(db.Boolean, nullable=False, default=False)
    category = db.Column(db.String(100), nullable=False, default="All")
    discount = db.Column(db.Integer, nullable=False, default=0)
    priority = db.Column(db.Integer, nullable=False, default=5)
    # "metadata" is reserved on declarative models
    extra = db.Column("metadata", db.JSON, nullable=True, default=dict)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def is_active(self, today: date) -> bool:
        return bool(self.visible) and self.start_date <= today <= self.end_date

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.promo_id,
            "title": self.title,
            "description": self.description,
            "image": self.image,
            "link": self.link,
            "cta_text": self.cta_text,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "popup_display": self.popup_display or self.title,
            "visible": bool(self.visible),
            "featured": bool(self.featured),
            "category": self.category,
            "discount": self.discount,
            "priority": self.priority,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


# ---------------------------------------------------------------------------
# Digital magazine
# ---------------------------------------------------------------------------

class MagazineIssue(db.Model):
    __tablename__ = "magazine_issues"

    issue_id = db.Column(db.Integer, primary_key=True)
    issue_number = db.Column(db.Integer, unique=True, nullable=False)
    title = db.Column(db.String(200), nullable=False)
    subtitle = db.Column(db.String(255))
    issue_date = db.Column(db.Date)
    cover_image = db.Column(db.String(500))
    description = db.Column(db.Text)
    is_published = db.Column(db.Boolean, nullable=False, default=False)
    featured = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    sections = db.relationship(
        "MagazineSection",
        back_populates="issue",
        order_by="MagazineSection.sort_order",
        cascade="all, delete-orphan",
    )
    digital_pages = db.relationship(
        "DigitalPage",
        back_populates="issue",
        order_by="DigitalPage.page_number",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.issue_id,
            "issue_number": self.issue_number,
            "title": self.title,
            "subtitle": self.subtitle,
            "issue_date": _iso(self.issue_date),
            "cover_image": self.cover_image,
            "description": self.description,
            "is_published": bool(self.is_published),
            "featured": bool(self.featured),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class MagazineSection(db.Model):
    __tablename__ = "magazine_sections"

    section_id = db.Column(db.Integer, primary_key=True)
    issue_id = db.Column(db.Integer, db.ForeignKey("magazine_issues.issue_id"), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    section_type = db.Column(db.String(100), nullable=False, default="custom")
    content = db.Column(db.JSON, nullable=False, default=dict)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    # Editor lock; cleared fields mean unlocked
    locked_by = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=True)
    locked_by_name = db.Column(db.String(100))
    locked_by_email = db.Column(db.String(255))
    locked_at = db.Column(db.DateTime)
    lock_expires_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    issue = db.relationship("MagazineIssue", back_populates="sections")

    def clear_lock(self) -> None:
        self.locked_by = None
        self.locked_by_name = None
        self.locked_by_email = None
        self.locked_at = None
        self.lock_expires_at = None

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.section_id,
            "issue_id": self.issue_id,
            "title": self.title,
            "section_type": self.section_type,
            "content": self.content or {},
            "sort_order": self.sort_order,
            "locked_by": self.locked_by,
            "lock_expires_at": _iso(self.lock_expires_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class DigitalPage(db.Model):
    __tablename__ = "digital_pages"

    page_id = db.Column(db.Integer, primary_key=True)
    issue_id = db.Column(db.Integer, db.ForeignKey("magazine_issues.issue_id"), nullable=False)
    page_number = db.Column(db.Integer, nullable=False)
    page_type = db.Column(db.String(100), nullable=False, default="custom")
    title = db.Column(db.String(200))
    page_data = db.Column(db.JSON, nullable=False, default=dict)
    canvas_url = db.Column(db.String(500))
    pdf_settings = db.Column(db.JSON, nullable=True, default=dict)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    issue = db.relationship("MagazineIssue", back_populates="digital_pages")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.page_id,
            "issue_id": self.issue_id,
            "page_number": self.page_number,
            "page_type": self.page_type,
            "title": self.title,
            "page_data": self.page_data or {},
            "canvas_url": self.canvas_url,
            "pdf_settings": self.pdf_settings or {},
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


# ---------------------------------------------------------------------------
# Public submissions
# ---------------------------------------------------------------------------

class GetFeaturedSubmission(db.Model):
    __tablename__ = "get_featured_submissions"

    submission_id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(150), nullable=False)
    phone = db.Column(db.String(30), nullable=False)
    form_type = db.Column(
        db.Enum(
            "cover",
            "local-spotlight",
            "top-treatment",
            "rising-star",
            "profile-only",
            name="get_featured_form_type",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
    )
    answers = db.Column(db.JSON, nullable=False, default=dict)
    status = db.Column(
        db.Enum(
            "pending_review",
            "approved",
            "rejected",
            name="get_featured_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="pending_review",
    )
    reviewed = db.Column(db.Boolean, nullable=False, default=False)
    reviewed_at = db.Column(db.DateTime)
    reviewed_by = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=True)
    review_notes = db.Column(db.Text)
    extra = db.Column("metadata", db.JSON, nullable=True, default=dict)
    submitted_at = db.Column(db.String(40))
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.submission_id,
            "email": self.email,
            "full_name": self.full_name,
            "phone": self.phone,
            "form_type": self.form_type,
            "answers": self.answers or {},
            "status": self.status,
            "reviewed": bool(self.reviewed),
            "reviewed_at": _iso(self.reviewed_at),
            "reviewed_by": self.reviewed_by,
            "review_notes": self.review_notes,
            "metadata": self.extra or {},
            "submitted_at": self.submitted_at,
            "created_at": _iso(self.created_at),
        }


class SubmissionCounter(db.Model):
    """Admission counter for capped public forms."""

    __tablename__ = "submission_counters"

    key = db.Column(db.String(100), primary_key=True)
    count = db.Column(db.Integer, nullable=False, default=0)
    max_count = db.Column(db.Integer, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self) -> dict[str, object]:
        remaining = max(0, self.max_count - self.count)
        return {
            "count": self.count,
            "max": self.max_count,
            "remaining": remaining,
            "isOpen": remaining > 0,
        }


class DigitalCardSubmission(db.Model):
    __tablename__ = "digital_card_submissions"

    submission_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(30))
    business_name = db.Column(db.String(200))
    card_data = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.submission_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "business_name": self.business_name,
            "card_data": self.card_data or {},
            "created_at": _iso(self.created_at),
        }


class VerificationSubmission(db.Model):
    __tablename__ = "verification_submissions"

    submission_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    business_info = db.Column(db.JSON, nullable=False, default=dict)
    owner_identity = db.Column(db.JSON, nullable=False, default=dict)
    business_docs = db.Column(db.JSON, nullable=False, default=dict)
    status = db.Column(
        db.Enum(
            "pending",
            "approved",
            "rejected",
            name="verification_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="pending",
    )
    review_notes = db.Column(db.Text)
    reviewed_by = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=True)
    reviewed_at = db.Column(db.DateTime)
    submitted_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    user = db.relationship("User", foreign_keys=[user_id])

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.submission_id,
            "user_id": self.user_id,
            "business_info": self.business_info or {},
            "owner_identity": self.owner_identity or {},
            "business_docs": self.business_docs or {},
            "status": self.status,
            "review_notes": self.review_notes,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": _iso(self.reviewed_at),
            "submitted_at": _iso(self.submitted_at),
        }


# ---------------------------------------------------------------------------
# CRM
# ---------------------------------------------------------------------------

class Brand(db.Model):
    __tablename__ = "brands"

    brand_id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), unique=True, nullable=False)
    name = db.Column(db.String(150), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    owner = db.relationship("User", back_populates="brand")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.brand_id,
            "owner_id": self.owner_id,
            "name": self.name,
            "created_at": _iso(self.created_at),
        }


class Customer(db.Model):
    __tablename__ = "customers"
    __table_args__ = (db.UniqueConstraint("brand_id", "email", name="uq_customer_brand_email"),)

    customer_id = db.Column(db.Integer, primary_key=True)
    brand_id = db.Column(db.Integer, db.ForeignKey("brands.brand_id"), nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(30))
    phone_country_code = db.Column(db.String(5), nullable=False, default="US")
    language = db.Column(db.String(10), nullable=False, default="en")
    addresses = db.Column(db.JSON, nullable=False, default=list)
    tags = db.Column(db.JSON, nullable=False, default=list)
    notes = db.Column(db.JSON, nullable=False, default=list)
    email_subscribed = db.Column(db.Boolean, nullable=False, default=False)
    email_subscribed_at = db.Column(db.DateTime)
    email_unsubscribed_at = db.Column(db.DateTime)
    sms_subscribed = db.Column(db.Boolean, nullable=False, default=False)
    sms_subscribed_at = db.Column(db.DateTime)
    sms_unsubscribed_at = db.Column(db.DateTime)
    status = db.Column(
        db.Enum(
            "active",
            "disabled",
            "invited",
            name="customer_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="active",
    )
    source = db.Column(db.String(50), nullable=False, default="manual")
    total_orders = db.Column(db.Integer, nullable=False, default=0)
    total_spent = db.Column(db.Float, nullable=False, default=0.0)
    last_order_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> dict[str, object]:
        total_orders = self.total_orders or 0
        return {
            "id": self.customer_id,
            "brand_id": self.brand_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "phone_country_code": self.phone_country_code,
            "language": self.language,
            "addresses": self.addresses or [],
            "tags": self.tags or [],
            "notes": self.notes or [],
            "marketing": {
                "email_subscribed": bool(self.email_subscribed),
                "email_subscribed_at": _iso(self.email_subscribed_at),
                "email_unsubscribed_at": _iso(self.email_unsubscribed_at),
                "sms_subscribed": bool(self.sms_subscribed),
                "sms_subscribed_at": _iso(self.sms_subscribed_at),
                "sms_unsubscribed_at": _iso(self.sms_unsubscribed_at),
            },
            "analytics": {
                "total_orders": total_orders,
                "total_spent": round(self.total_spent or 0.0, 2),
                "average_order_value": (
                    round((self.total_spent or 0.0) / total_orders, 2) if total_orders else 0
                ),
                "last_order_at": _iso(self.last_order_at),
            },
            "status": self.status,
            "source": self.source,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Order(db.Model):
    __tablename__ = "orders"
    __table_args__ = (db.UniqueConstraint("brand_id", "order_number", name="uq_order_brand_number"),)

    order_id = db.Column(db.Integer, primary_key=True)
    brand_id = db.Column(db.Integer, db.ForeignKey("brands.brand_id"), nullable=False)
    order_number = db.Column(db.Integer, nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.customer_id"), nullable=True)
    customer_name = db.Column(db.String(200), nullable=False)
    customer_email = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(30))
    channel = db.Column(
        db.Enum(
            "shop",
            "online_store",
            "pos",
            "draft",
            "api",
            name="order_channel",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="shop",
    )
    source = db.Column(db.String(100))
    subtotal = db.Column(db.Float, nullable=False, default=0.0)
    tax = db.Column(db.Float, nullable=False, default=0.0)
    shipping = db.Column(db.Float, nullable=False, default=0.0)
    discount = db.Column(db.Float, nullable=False, default=0.0)
    total = db.Column(db.Float, nullable=False, default=0.0)
    currency = db.Column(db.String(3), nullable=False, default="USD")
    payment_status = db.Column(
        db.Enum(
            "pending",
            "paid",
            "partially_paid",
            "refunded",
            "voided",
            name="order_payment_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="pending",
    )
    payment_method = db.Column(db.String(50))
    paid_at = db.Column(db.DateTime)
    fulfillment_status = db.Column(
        db.Enum(
            "unfulfilled",
            "partially_fulfilled",
            "fulfilled",
            "scheduled",
            name="order_fulfillment_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="unfulfilled",
    )
    fulfilled_at = db.Column(db.DateTime)
    delivery_status = db.Column(
        db.Enum(
            "pending",
            "in_transit",
            "delivered",
            "returned",
            "failed",
            name="order_delivery_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="pending",
    )
    delivery_method = db.Column(
        db.Enum(
            "shipping",
            "pickup",
            "local_delivery",
            "not_required",
            name="order_delivery_method",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="shipping",
    )
    tracking_number = db.Column(db.String(100))
    tracking_url = db.Column(db.String(500))
    delivered_at = db.Column(db.DateTime)
    items = db.Column(db.JSON, nullable=False, default=list)
    item_count = db.Column(db.Integer, nullable=False, default=0)
    shipping_address = db.Column(db.JSON, nullable=True)
    billing_address = db.Column(db.JSON, nullable=True)
    flags = db.Column(db.JSON, nullable=False, default=list)
    tags = db.Column(db.JSON, nullable=False, default=list)
    notes = db.Column(db.Text)
    internal_notes = db.Column(db.Text)
    has_return = db.Column(db.Boolean, nullable=False, default=False)
    return_amount = db.Column(db.Float)
    risk_level = db.Column(db.String(10), nullable=False, default="low")
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.order_id,
            "brand_id": self.brand_id,
            "order_number": self.order_number,
            "customer": {
                "id": self.customer_id,
                "name": self.customer_name,
                "email": self.customer_email,
                "phone": self.customer_phone,
            },
            "channel": self.channel,
            "source": self.source,
            "subtotal": self.subtotal,
            "tax": self.tax,
            "shipping": self.shipping,
            "discount": self.discount,
            "total": self.total,
            "currency": self.currency,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "paid_at": _iso(self.paid_at),
            "fulfillment_status": self.fulfillment_status,
            "fulfilled_at": _iso(self.fulfilled_at),
            "delivery_status": self.delivery_status,
            "delivery_method": self.delivery_method,
            "tracking_number": self.tracking_number,
            "tracking_url": self.tracking_url,
            "delivered_at": _iso(self.delivered_at),
            "items": self.items or [],
            "item_count": self.item_count,
            "shipping_address": self.shipping_address,
            "billing_address": self.billing_address,
            "flags": self.flags or [],
            "tags": self.tags or [],
            "notes": self.notes,
            "internal_notes": self.internal_notes,
            "has_return": bool(self.has_return),
            "return_amount": self.return_amount,
            "risk_level": self.risk_level,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Campaign(db.Model):
    __tablename__ = "marketing_campaigns"

    campaign_id = db.Column(db.Integer, primary_key=True)
    brand_id = db.Column(db.Integer, db.ForeignKey("brands.brand_id"), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    campaign_type = db.Column(
        db.Enum(
            "email",
            "sms",
            "push",
            "social",
            name="campaign_type",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
    )
    status = db.Column(
        db.Enum(
            "draft",
            "scheduled",
            "sending",
            "sent",
            "active",
            "paused",
            "inactive",
            name="campaign_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="draft",
    )
    subject = db.Column(db.String(255))
    content = db.Column(db.JSON, nullable=False, default=dict)
    audience = db.Column(db.JSON, nullable=False, default=dict)
    stats = db.Column(db.JSON, nullable=False, default=dict)
    scheduled_at = db.Column(db.DateTime)
    sent_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.campaign_id,
            "brand_id": self.brand_id,
            "name": self.name,
            "type": self.campaign_type,
            "status": self.status,
            "subject": self.subject,
            "content": self.content or {},
            "audience": self.audience or {},
            "stats": self.stats or {},
            "scheduled_at": _iso(self.scheduled_at),
            "sent_at": _iso(self.sent_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


# ---------------------------------------------------------------------------
# Support messaging
# ---------------------------------------------------------------------------

class SupportConversation(db.Model):
    __tablename__ = "support_conversations"

    conversation_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    subject = db.Column(db.String(255), nullable=False)
    status = db.Column(
        db.Enum(
            "open",
            "pending",
            "resolved",
            name="support_conversation_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="open",
    )
    last_message = db.Column(db.JSON, nullable=True)
    unread_by_user = db.Column(db.Integer, nullable=False, default=0)
    unread_by_admin = db.Column(db.Integer, nullable=False, default=0)
    metrics = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    user = db.relationship("User")
    messages = db.relationship(
        "SupportMessage",
        back_populates="conversation",
        order_by="SupportMessage.timestamp",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.conversation_id,
            "user_id": self.user_id,
            "user_email": self.user.email if self.user else None,
            "subject": self.subject,
            "status": self.status,
            "last_message": self.last_message,
            "unread_by_user": self.unread_by_user,
            "unread_by_admin": self.unread_by_admin,
            "metrics": self.metrics or {},
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class SupportMessage(db.Model):
    __tablename__ = "support_messages"

    message_id = db.Column(db.Integer, primary_key=True)
    conversation_id = db.Column(
        db.Integer, db.ForeignKey("support_conversations.conversation_id"), nullable=False
    )
    sender_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    sender_email = db.Column(db.String(255), nullable=False)
    sender_name = db.Column(db.String(100), nullable=False)
    content = db.Column(db.Text, nullable=False)
    attachments = db.Column(db.JSON, nullable=False, default=list)
    timestamp = db.Column(db.DateTime, nullable=False, default=utc_now)
    read_at = db.Column(db.DateTime)

    conversation = db.relationship("SupportConversation", back_populates="messages")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.message_id,
            "sender_id": self.sender_id,
            "sender_email": self.sender_email,
            "sender_name": self.sender_name,
            "content": self.content,
            "attachments": self.attachments or [],
            "timestamp": _iso(self.timestamp),
            "read_at": _iso(self.read_at),
        }


# ---------------------------------------------------------------------------
# Site settings
# ---------------------------------------------------------------------------

class CTAAlertConfig(db.Model):
    """Site-wide call-to-action banner; a single row keyed ``ctaAlert``."""

    __tablename__ = "cta_alert_config"

    config_id = db.Column(db.String(50), primary_key=True, default="ctaAlert")
    message = db.Column(db.Text, nullable=False, default="")
    button_text = db.Column(db.String(100), nullable=False, default="Learn More")
    background_color = db.Column(db.String(20), nullable=False, default="#22B8C8")
    text_color = db.Column(db.String(20), nullable=False, default="#FFFFFF")
    button_background_color = db.Column(db.String(20), nullable=False, default="#FFFFFF")
    button_text_color = db.Column(db.String(20), nullable=False, default="#22B8C8")
    button_hover_color = db.Column(db.String(20), nullable=False, default="#F3F4F6")
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=False)
    local_storage_key = db.Column(db.String(100), nullable=False, default="cta-alert-dismissed")
    dismiss_after_hours = db.Column(db.Integer, nullable=False, default=24)
    modal_type = db.Column(db.String(50), nullable=False, default="none")
    custom_modal_id = db.Column(db.String(100))
    modal_title = db.Column(db.String(200))
    modal_html_content = db.Column(db.Text)
    show_got_it_button = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    PUBLIC_FIELDS = (
        "message",
        "button_text",
        "background_color",
        "text_color",
        "button_background_color",
        "button_text_color",
        "button_hover_color",
        "local_storage_key",
        "dismiss_after_hours",
        "modal_type",
        "custom_modal_id",
        "modal_title",
        "modal_html_content",
        "show_got_it_button",
    )

    def is_within_date_range(self, today: date) -> bool:
        return bool(self.is_active) and self.start_date <= today <= self.end_date

    def to_public_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"id": self.config_id}
        for field in self.PUBLIC_FIELDS:
            payload[field] = getattr(self, field)
        return payload

    def to_dict(self) -> dict[str, object]:
        payload = self.to_public_dict()
        payload.update({
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "is_active": bool(self.is_active),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        })
        return payload


class CTAModalTemplate(db.Model):
    __tablename__ = "cta_modal_templates"

    template_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    modal_title = db.Column(db.String(200), nullable=False, default="")
    modal_html_content = db.Column(db.Text, nullable=False, default="")
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.template_id,
            "name": self.name,
            "modal_title": self.modal_title,
            "modal_html_content": self.modal_html_content,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class NewsletterSubscriber(db.Model):
    __tablename__ = "newsletter_subscribers"

    subscriber_id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    first_name = db.Column(db.String(100))
    last_name = db.Column(db.String(100))
    user_type = db.Column(db.String(20), nullable=False, default="users")
    status = db.Column(db.String(20), nullable=False, default="subscribed")
    mailchimp_id = db.Column(db.String(100))
    subscribed_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.subscriber_id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "user_type": self.user_type,
            "status": self.status,
            "subscribed_at": _iso(self.subscribed_at),
        }
