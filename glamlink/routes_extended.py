"""Extended routes: public submissions, verification, support messaging,
CTA alert settings, the newsletter and Mailchimp campaigns."""
from __future__ import annotations

from datetime import date, timedelta

import requests
from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from . import mailchimp
from .auth import is_admin, require_admin, require_user
from .extensions import db
from .models import (CTAAlertConfig, CTAModalTemplate, DigitalCardSubmission,
                     GetFeaturedSubmission, NewsletterSubscriber, SubmissionCounter,
                     SupportConversation, SupportMessage, VerificationSubmission,
                     as_utc, utc_now)
from .rate_limit import support_message_limiter
from .validation import (clean_str, get_pagination, is_valid_email,
                         pagination_meta, parse_date, parse_datetime)

bp_ext = Blueprint("api_ext", __name__)


def _client_ip() -> str:
    return (
        request.headers.get("X-Forwarded-For")
        or request.headers.get("X-Real-IP")
        or request.remote_addr
        or "unknown"
    )


def _method_not_allowed():
    return jsonify({"error": "method_not_allowed", "message": "Method not allowed"}), 405


# GET-FEATURED SUBMISSIONS
GET_FEATURED_FORM_TYPES = ("cover", "local-spotlight", "top-treatment", "rising-star", "profile-only")
GET_FEATURED_REQUIRED = ("email", "fullName", "phone", "formType")
GET_FEATURED_LIST_FIELDS = (
    "primarySpecialties",
    "achievements",
    "excitementFeatures",
    "painPoints",
    "treatmentBenefits",
    "careerHighlights",
    "achievementsRisingStar",
    "headshots",
    "workPhotos",
    "beforeAfterPhotos",
    "portfolioPhotos",
    "professionalPhotos",
    "contentPlanningMedia",
)
GET_FEATURED_FILE_FIELDS = (
    "headshots",
    "workPhotos",
    "beforeAfterPhotos",
    "portfolioPhotos",
    "professionalPhotos",
    "contentPlanningMedia",
)


def _clean_get_featured_answers(payload: dict) -> dict:
    """Drop nulls and empty list entries; strip inline file data."""
    cleaned = {key: value for key, value in payload.items() if value is not None}

    for field in GET_FEATURED_LIST_FIELDS:
        if isinstance(cleaned.get(field), list):
            items = [item for item in cleaned[field] if item is not None and item != ""]
            if items:
                cleaned[field] = items
            else:
                del cleaned[field]

    for field in GET_FEATURED_FILE_FIELDS:
        if isinstance(cleaned.get(field), list):
            cleaned[field] = [
                {k: v for k, v in item.items() if k != "data"} if isinstance(item, dict) else item
                for item in cleaned[field]
            ]

    for key in GET_FEATURED_REQUIRED + ("submittedAt",):
        cleaned.pop(key, None)
    return cleaned


@bp_ext.post("/get-featured/submit")
def submit_get_featured() -> tuple[dict[str, object], int]:
    """Accept a public "get featured" application.
    ---
    tags:
      - Get Featured
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [email, fullName, phone, formType]
          properties:
            email:
              type: string
            fullName:
              type: string
            phone:
              type: string
            formType:
              type: string
              enum: [cover, local-spotlight, top-treatment, rising-star, profile-only]
    responses:
      200:
        description: Application stored
      400:
        description: Validation error
      500:
        description: Database error
    """
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "invalid_payload", "message": "Request body must be a JSON object"}), 400

    missing = [
        field for field in GET_FEATURED_REQUIRED
        if not payload.get(field) or (isinstance(payload.get(field), list) and not payload[field])
    ]
    if missing:
        current_app.logger.warning(f"Get featured submission missing fields: {', '.join(missing)}")
        return jsonify({
            "error": "invalid_payload",
            "message": f"Missing required fields: {', '.join(missing)}",
        }), 400

    form_type = payload["formType"]
    if form_type not in GET_FEATURED_FORM_TYPES:
        current_app.logger.warning(f"Get featured submission with invalid form type: {form_type}")
        return jsonify({"error": "invalid_form_type", "message": "Invalid form type"}), 400

    email = payload["email"]
    if not is_valid_email(email):
        return jsonify({"error": "invalid_email", "message": "Invalid email format"}), 400

    full_name = str(payload["fullName"]).strip()
    if len(full_name) < 2:
        return jsonify({
            "error": "invalid_payload",
            "message": "Full name must be at least 2 characters long",
        }), 400

    phone = str(payload["phone"]).strip()
    if len(phone) < 10:
        return jsonify({"error": "invalid_payload", "message": "Please provide a valid phone number"}), 400

    submission = GetFeaturedSubmission(
        email=email.strip(),
        full_name=full_name,
        phone=phone,
        form_type=form_type,
        answers=_clean_get_featured_answers(payload),
        status="pending_review",
        reviewed=False,
        submitted_at=clean_str(payload.get("submittedAt")) or utc_now().isoformat(),
        extra={
            "user_agent": request.headers.get("User-Agent"),
            "ip": _client_ip(),
            "source": "get-featured-form",
        },
    )

    try:
        db.session.add(submission)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to store get featured submission", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    current_app.logger.info(
        f"Get featured application {submission.submission_id} stored for {submission.email} ({form_type})"
    )
    return jsonify({
        "success": True,
        "message": "Application submitted successfully!",
        "submissionId": submission.submission_id,
        "email": submission.email,
    }), 200


@bp_ext.get("/get-featured/submit")
def get_featured_submit_not_allowed():
    return _method_not_allowed()


@bp_ext.get("/get-featured/submissions")
def list_get_featured_submissions() -> tuple[dict[str, object], int]:
    _, error = require_admin()
    if error:
        return error

    try:
        page, limit = get_pagination()
    except ValueError:
        return jsonify({"error": "invalid_parameters"}), 400

    status = request.args.get("status")
    form_type = request.args.get("formType")
    if status and status not in ("pending_review", "approved", "rejected"):
        return jsonify({"error": "invalid_parameters", "message": f"Unknown status: {status}"}), 400
    if form_type and form_type not in GET_FEATURED_FORM_TYPES:
        return jsonify({"error": "invalid_parameters", "message": f"Unknown formType: {form_type}"}), 400

    try:
        query = GetFeaturedSubmission.query
        if status:
            query = query.filter(GetFeaturedSubmission.status == status)
        if form_type:
            query = query.filter(GetFeaturedSubmission.form_type == form_type)

        total = query.count()
        submissions = (
            query.order_by(GetFeaturedSubmission.created_at.desc(), GetFeaturedSubmission.submission_id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
            .all()
        )

        return jsonify({
            "submissions": [s.to_dict() for s in submissions],
            "pagination": pagination_meta(page, limit, total),
        }), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch get featured submissions", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_ext.post("/get-featured/submissions/<int:submission_id>/review")
def review_get_featured_submission(submission_id: int) -> tuple[dict[str, object], int]:
    reviewer, error = require_admin()
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    status = payload.get("status")
    if status not in ("approved", "rejected", "pending_review"):
        return jsonify({
            "error": "invalid_payload",
            "message": "status must be approved, rejected or pending_review",
        }), 400

    try:
        submission = GetFeaturedSubmission.query.get(submission_id)
        if not submission:
            return jsonify({"error": "submission_not_found"}), 404

        submission.status = status
        submission.reviewed = True
        submission.reviewed_at = utc_now()
        submission.reviewed_by = reviewer.user_id
        if "notes" in payload:
            submission.review_notes = clean_str(payload.get("notes"))

        db.session.commit()

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to review get featured submission", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    current_app.logger.info(f"Get featured submission {submission_id} marked {status} by {reviewer.user_id}")
    return jsonify({"submission": submission.to_dict()}), 200


# DIGITAL CARD SUBMISSION CAP
DIGITAL_CARD_COUNTER_KEY = "digital-card"


def _digital_card_counter(create: bool = False) -> SubmissionCounter | None:
    counter = SubmissionCounter.query.get(DIGITAL_CARD_COUNTER_KEY)
    if counter is None and create:
        counter = SubmissionCounter(
            key=DIGITAL_CARD_COUNTER_KEY,
            count=0,
            max_count=current_app.config["DIGITAL_CARD_MAX_SUBMISSIONS"],
        )
        db.session.add(counter)
        db.session.flush()
    return counter


@bp_ext.post("/digital-card/submit")
def submit_digital_card() -> tuple[dict[str, object], int]:
    """Store a digital business card request while the cap allows it.

    The counter is incremented with a conditional UPDATE in the same
    transaction as the insert, so two requests racing for the last slot
    cannot both be admitted.
    """
    payload = request.get_json(silent=True) or {}

    name = clean_str(payload.get("name"))
    email = clean_str(payload.get("email"))
    if not name or not email:
        return jsonify({"error": "invalid_payload", "message": "name and email are required"}), 400
    if not is_valid_email(email):
        return jsonify({"error": "invalid_email", "message": "Invalid email format"}), 400

    card_data = payload.get("cardData") or {}
    if not isinstance(card_data, dict):
        return jsonify({"error": "invalid_payload", "message": "cardData must be an object"}), 400

    try:
        try:
            _digital_card_counter(create=True)
        except IntegrityError:
            # Another request created the counter first
            db.session.rollback()

        result = db.session.execute(
            update(SubmissionCounter)
            .where(
                SubmissionCounter.key == DIGITAL_CARD_COUNTER_KEY,
                SubmissionCounter.count < SubmissionCounter.max_count,
            )
            .values(count=SubmissionCounter.count + 1, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            db.session.rollback()
            current_app.logger.info(f"Digital card submission from {email} refused: limit reached")
            return jsonify({
                "error": "submission_limit_reached",
                "message": "We've reached the maximum number of digital card submissions.",
            }), 409

        submission = DigitalCardSubmission(
            name=name,
            email=email.lower(),
            phone=clean_str(payload.get("phone")),
            business_name=clean_str(payload.get("businessName")),
            card_data=card_data,
        )
        db.session.add(submission)
        db.session.commit()

        counter = _digital_card_counter()
        db.session.refresh(counter)
        remaining = max(0, counter.max_count - counter.count)

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to store digital card submission", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    current_app.logger.info(
        f"Digital card submission {submission.submission_id} stored; {remaining} slots remaining"
    )
    return jsonify({
        "success": True,
        "submissionId": submission.submission_id,
        "remaining": remaining,
    }), 201


@bp_ext.get("/digital-card/status")
def digital_card_status() -> tuple[dict[str, object], int]:
    try:
        counter = _digital_card_counter()
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to read digital card counter", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    if counter is None:
        counter = SubmissionCounter(
            key=DIGITAL_CARD_COUNTER_KEY,
            count=0,
            max_count=current_app.config["DIGITAL_CARD_MAX_SUBMISSIONS"],
        )
    return jsonify(counter.to_dict()), 200


@bp_ext.put("/admin/digital-card/limit")
def update_digital_card_limit() -> tuple[dict[str, object], int]:
    admin, error = require_admin()
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    new_max = payload.get("max")
    if isinstance(new_max, bool) or not isinstance(new_max, int) or new_max < 0:
        return jsonify({"error": "invalid_payload", "message": "max must be a non-negative integer"}), 400

    try:
        counter = _digital_card_counter(create=True)
        counter.max_count = new_max
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update digital card limit", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    current_app.logger.info(f"Digital card limit set to {new_max} by {admin.user_id}")
    return jsonify(counter.to_dict()), 200


@bp_ext.get("/admin/digital-card/submissions")
def list_digital_card_submissions() -> tuple[dict[str, object], int]:
    _, error = require_admin()
    if error:
        return error

    try:
        page, limit = get_pagination()
    except ValueError:
        return jsonify({"error": "invalid_parameters"}), 400

    try:
        query = DigitalCardSubmission.query
        total = query.count()
        submissions = (
            query.order_by(DigitalCardSubmission.created_at.desc(), DigitalCardSubmission.submission_id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
            .all()
        )
        return jsonify({
            "submissions": [s.to_dict() for s in submissions],
            "pagination": pagination_meta(page, limit, total),
        }), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch digital card submissions", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


# VERIFICATION
def _verification_step_errors(payload: dict) -> tuple[int, list[str]] | None:
    """Return ``(step, errors)`` for the first failing step, else None."""
    business_info = payload.get("businessInfo") or {}
    owner_identity = payload.get("ownerIdentity") or {}
    business_docs = payload.get("businessDocs") or {}
    if not all(isinstance(part, dict) for part in (business_info, owner_identity, business_docs)):
        return 1, ["Verification sections must be objects"]

    steps = (
        (business_info, (
            ("businessName", "Business name is required"),
            ("businessType", "Business type is required"),
            ("businessAddress", "Business address is required"),
            ("city", "City is required"),
            ("state", "State is required"),
            ("zipCode", "ZIP code is required"),
        )),
        (owner_identity, (
            ("ownerFullName", "Owner name is required"),
            ("ownerIdFront", "Government-issued ID (front) is required"),
        )),
        (business_docs, (
            ("businessLicense", "Business license is required"),
        )),
    )

    for step, (section, checks) in enumerate(steps, start=1):
        errors = []
        for field, message in checks:
            value = section.get(field)
            if isinstance(value, str):
                value = value.strip()
            if not value:
                errors.append(message)
        if errors:
            return step, errors

    if payload.get("agreedToTerms") is not True:
        return 4, ["You must agree to the verification terms"]
    return None


@bp_ext.post("/verification/submit")
def submit_verification() -> tuple[dict[str, object], int]:
    """Submit business verification documents for review.
    ---
    tags:
      - Verification
    responses:
      201:
        description: Submission stored with status pending
      400:
        description: A step failed validation
      401:
        description: Unauthorized
      409:
        description: A pending or approved submission already exists
    """
    user, error = require_user()
    if error:
        return error

    payload = request.get_json(silent=True) or {}

    failure = _verification_step_errors(payload)
    if failure:
        step, errors = failure
        return jsonify({
            "error": "invalid_payload",
            "message": f"Step {step} has errors: {', '.join(errors)}",
        }), 400

    try:
        existing = (
            VerificationSubmission.query
            .filter(
                VerificationSubmission.user_id == user.user_id,
                VerificationSubmission.status.in_(("pending", "approved")),
            )
            .first()
        )
        if existing:
            return jsonify({
                "error": "conflict",
                "message": f"A verification submission is already {existing.status}",
            }), 409

        submission = VerificationSubmission(
            user_id=user.user_id,
            business_info=payload["businessInfo"],
            owner_identity=payload["ownerIdentity"],
            business_docs=payload["businessDocs"],
            status="pending",
        )
        db.session.add(submission)
        db.session.commit()

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to store verification submission", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    current_app.logger.info(f"Verification submission {submission.submission_id} from user {user.user_id}")
    return jsonify({"submission": submission.to_dict()}), 201


@bp_ext.get("/verification/status")
def verification_status() -> tuple[dict[str, object], int]:
    user, error = require_user()
    if error:
        return error

    try:
        latest = (
            VerificationSubmission.query
            .filter(VerificationSubmission.user_id == user.user_id)
            .order_by(VerificationSubmission.submitted_at.desc(), VerificationSubmission.submission_id.desc())
            .first()
        )
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch verification status", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    if not latest:
        return jsonify({"status": "not_submitted"}), 200
    return jsonify({"status": latest.status, "submission": latest.to_dict()}), 200


@bp_ext.get("/admin/verification")
def list_verification_submissions() -> tuple[dict[str, object], int]:
    _, error = require_admin()
    if error:
        return error

    try:
        page, limit = get_pagination()
    except ValueError:
        return jsonify({"error": "invalid_parameters"}), 400

    status = request.args.get("status")
    if status and status not in ("pending", "approved", "rejected"):
        return jsonify({"error": "invalid_parameters", "message": f"Unknown status: {status}"}), 400

    try:
        query = VerificationSubmission.query
        if status:
            query = query.filter(VerificationSubmission.status == status)

        total = query.count()
        submissions = (
            query.order_by(VerificationSubmission.submitted_at.desc(), VerificationSubmission.submission_id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
            .all()
        )

        results = []
        for submission in submissions:
            data = submission.to_dict()
            data["user"] = submission.user.to_dict_basic() if submission.user else None
            results.append(data)

        return jsonify({
            "submissions": results,
            "pagination": pagination_meta(page, limit, total),
        }), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch verification submissions", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_ext.post("/admin/verification/<int:submission_id>/review")
def review_verification(submission_id: int) -> tuple[dict[str, object], int]:
    reviewer, error = require_admin()
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    status = payload.get("status")
    notes = clean_str(payload.get("notes"))

    if status not in ("approved", "rejected"):
        return jsonify({"error": "invalid_payload", "message": "status must be approved or rejected"}), 400
    if status == "rejected" and not notes:
        return jsonify({"error": "invalid_payload", "message": "A rejection reason is required"}), 400

    try:
        submission = VerificationSubmission.query.get(submission_id)
        if not submission:
            return jsonify({"error": "submission_not_found"}), 404

        submission.status = status
        submission.review_notes = notes
        submission.reviewed_by = reviewer.user_id
        submission.reviewed_at = utc_now()
        db.session.commit()

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to review verification submission", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    current_app.logger.info(f"Verification {submission_id} {status} by {reviewer.user_id}")
    return jsonify({"submission": submission.to_dict()}), 200


# SUPPORT MESSAGING
SUPPORT_STATUSES = ("open", "pending", "resolved")


def _load_conversation(conversation_id: int, user):
    """Return ``(conversation, admin_flag, None)`` or ``(None, False, error)``."""
    conversation = SupportConversation.query.get(conversation_id)
    if not conversation:
        return None, False, (jsonify({"success": False, "error": "conversation_not_found"}), 404)

    admin = is_admin(user)
    if not admin and conversation.user_id != user.user_id:
        return None, False, (jsonify({"success": False, "error": "forbidden"}), 403)
    return conversation, admin, None


def _clean_attachments(raw: object) -> list[dict] | None:
    if raw is None:
        return []
    if not isinstance(raw, list) or not all(isinstance(a, dict) for a in raw):
        return None
    attachments = []
    for item in raw:
        attachment = {
            key: item.get(key)
            for key in ("id", "type", "url", "name", "size", "mimeType", "uploadedAt")
        }
        if item.get("thumbnailUrl"):
            attachment["thumbnailUrl"] = item["thumbnailUrl"]
        attachments.append(attachment)
    return attachments


@bp_ext.post("/support/conversations")
def create_conversation() -> tuple[dict[str, object], int]:
    user, error = require_user()
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    subject = clean_str(payload.get("subject"))
    content = clean_str(payload.get("content"))
    if not subject or not content:
        return jsonify({"error": "invalid_payload", "message": "subject and content are required"}), 400

    now = utc_now()
    try:
        conversation = SupportConversation(
            user_id=user.user_id,
            subject=subject,
            status="open",
            last_message={"content": content, "sender_id": user.user_id, "timestamp": now.isoformat()},
            unread_by_user=0,
            unread_by_admin=1,
            metrics={"total_admin_replies": 0},
            created_at=now,
            updated_at=now,
        )
        message = SupportMessage(
            sender_id=user.user_id,
            sender_email=user.email,
            sender_name=user.name,
            content=content,
            attachments=[],
            timestamp=now,
        )
        conversation.messages.append(message)
        db.session.add(conversation)
        db.session.commit()

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create support conversation", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"conversation": conversation.to_dict(), "message": message.to_dict()}), 201


@bp_ext.get("/support/conversations")
def list_conversations() -> tuple[dict[str, object], int]:
    user, error = require_user()
    if error:
        return error

    status = request.args.get("status")
    if status and status not in SUPPORT_STATUSES:
        return jsonify({"error": "invalid_parameters", "message": f"Unknown status: {status}"}), 400

    try:
        query = SupportConversation.query
        if not is_admin(user):
            query = query.filter(SupportConversation.user_id == user.user_id)
        if status:
            query = query.filter(SupportConversation.status == status)

        conversations = query.order_by(
            SupportConversation.updated_at.desc(), SupportConversation.conversation_id.desc()
        ).all()
        return jsonify({"conversations": [c.to_dict() for c in conversations]}), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch support conversations", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_ext.get("/support/conversations/<int:conversation_id>/messages")
def get_conversation_messages(conversation_id: int) -> tuple[dict[str, object], int]:
    """Messages in timestamp order; reading clears the caller's unread count."""
    user, error = require_user()
    if error:
        return error

    try:
        conversation, admin, error = _load_conversation(conversation_id, user)
        if error:
            return error

        now = utc_now()
        for message in conversation.messages:
            if message.sender_id != user.user_id and message.read_at is None:
                message.read_at = now

        if admin:
            conversation.unread_by_admin = 0
        else:
            conversation.unread_by_user = 0

        db.session.commit()
        return jsonify({
            "success": True,
            "messages": [m.to_dict() for m in conversation.messages],
        }), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to fetch support messages", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_ext.post("/support/conversations/<int:conversation_id>/messages")
def send_conversation_message(conversation_id: int) -> tuple[dict[str, object], int]:
    """Post a message to a conversation.

    Non-admin senders are limited to ``SUPPORT_MESSAGES_PER_MINUTE``
    messages per rolling minute; only delivered messages count. Admin
    replies count toward response metrics and reopen resolved
    conversations.
    """
    user, error = require_user()
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    content = clean_str(payload.get("content"))
    if not content:
        return jsonify({"success": False, "error": "invalid_payload", "message": "Message content is required"}), 400

    attachments = _clean_attachments(payload.get("attachments"))
    if attachments is None:
        return jsonify({"success": False, "error": "invalid_payload", "message": "attachments must be a list of objects"}), 400

    sender_is_admin = is_admin(user)
    if not sender_is_admin:
        limit = current_app.config["SUPPORT_MESSAGES_PER_MINUTE"]
        if not support_message_limiter.check(user.user_id, limit):
            current_app.logger.warning(f"Support message rate limit hit by user {user.user_id}")
            return jsonify({
                "success": False,
                "error": "rate_limited",
                "message": "Rate limit exceeded. Please wait before sending more messages.",
            }), 429

    try:
        conversation, admin, error = _load_conversation(conversation_id, user)
        if error:
            return error

        now = utc_now()
        message = SupportMessage(
            sender_id=user.user_id,
            sender_email=user.email,
            sender_name=user.name or user.email.split("@")[0],
            content=content,
            attachments=attachments,
            timestamp=now,
        )
        conversation.messages.append(message)

        conversation.last_message = {
            "content": content,
            "sender_id": user.user_id,
            "timestamp": now.isoformat(),
        }
        conversation.updated_at = now

        if admin:
            conversation.unread_by_user = (conversation.unread_by_user or 0) + 1

            metrics = dict(conversation.metrics or {})
            metrics["total_admin_replies"] = metrics.get("total_admin_replies", 0) + 1
            if metrics.get("first_response_time_ms") is None:
                elapsed = now - as_utc(conversation.created_at)
                metrics["first_response_time_ms"] = int(elapsed.total_seconds() * 1000)
            conversation.metrics = metrics

            if conversation.status == "resolved":
                conversation.status = "pending"
        else:
            conversation.unread_by_admin = (conversation.unread_by_admin or 0) + 1

        db.session.commit()
        if not sender_is_admin:
            support_message_limiter.record(user.user_id)

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to send support message", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"success": True, "message": message.to_dict()}), 201


@bp_ext.put("/support/conversations/<int:conversation_id>/status")
def update_conversation_status(conversation_id: int) -> tuple[dict[str, object], int]:
    admin, error = require_admin()
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    status = payload.get("status")
    if status not in SUPPORT_STATUSES:
        return jsonify({"error": "invalid_payload", "message": "status must be open, pending or resolved"}), 400

    try:
        conversation = SupportConversation.query.get(conversation_id)
        if not conversation:
            return jsonify({"error": "conversation_not_found"}), 404

        conversation.status = status
        conversation.updated_at = utc_now()
        db.session.commit()

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update conversation status", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    current_app.logger.info(f"Conversation {conversation_id} set to {status} by {admin.user_id}")
    return jsonify({"conversation": conversation.to_dict()}), 200


# CTA ALERT SETTINGS
CTA_ALERT_ID = "ctaAlert"
CTA_STRING_FIELDS = (
    "message",
    "button_text",
    "background_color",
    "text_color",
    "button_background_color",
    "button_text_color",
    "button_hover_color",
    "local_storage_key",
    "modal_type",
    "custom_modal_id",
    "modal_title",
    "modal_html_content",
)


def _default_cta_alert(today: date) -> dict[str, object]:
    return {
        "id": CTA_ALERT_ID,
        "message": "",
        "button_text": "Learn More",
        "background_color": "#22B8C8",
        "text_color": "#FFFFFF",
        "button_background_color": "#FFFFFF",
        "button_text_color": "#22B8C8",
        "button_hover_color": "#F3F4F6",
        "local_storage_key": "cta-alert-dismissed",
        "dismiss_after_hours": 24,
        "modal_type": "none",
        "custom_modal_id": None,
        "modal_title": None,
        "modal_html_content": None,
        "show_got_it_button": True,
        "start_date": today.isoformat(),
        "end_date": (today + timedelta(days=30)).isoformat(),
        "is_active": False,
    }


@bp_ext.get("/content-settings/cta-alert")
def get_cta_alert_config() -> tuple[dict[str, object], int]:
    _, error = require_admin()
    if error:
        return error

    try:
        config = CTAAlertConfig.query.get(CTA_ALERT_ID)
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch CTA alert config", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    if config is None:
        return jsonify({"config": _default_cta_alert(utc_now().date()), "initialized": False}), 200
    return jsonify({"config": config.to_dict(), "initialized": True}), 200


@bp_ext.put("/content-settings/cta-alert")
def update_cta_alert_config() -> tuple[dict[str, object], int]:
    """Create or merge the site-wide CTA alert.
    ---
    tags:
      - Content Settings
    responses:
      200:
        description: Stored configuration
      400:
        description: Invalid dates or field values
      403:
        description: Admin access required
    """
    admin, error = require_admin()
    if error:
        return error

    payload = request.get_json(silent=True) or {}

    try:
        config = CTAAlertConfig.query.get(CTA_ALERT_ID)
        if config is None:
            defaults = _default_cta_alert(utc_now().date())
            config = CTAAlertConfig(
                config_id=CTA_ALERT_ID,
                start_date=date.fromisoformat(defaults["start_date"]),
                end_date=date.fromisoformat(defaults["end_date"]),
                **{k: v for k, v in defaults.items() if k not in ("id", "start_date", "end_date")},
            )
            db.session.add(config)

        for field in CTA_STRING_FIELDS:
            if field in payload:
                value = payload.get(field)
                if value is not None and not isinstance(value, str):
                    db.session.rollback()
                    return jsonify({"error": "invalid_payload", "message": f"{field} must be a string"}), 400
                setattr(config, field, value)

        if "dismiss_after_hours" in payload:
            hours = payload.get("dismiss_after_hours")
            if isinstance(hours, bool) or not isinstance(hours, int) or hours < 0:
                db.session.rollback()
                return jsonify({
                    "error": "invalid_payload",
                    "message": "dismiss_after_hours must be a non-negative integer",
                }), 400
            config.dismiss_after_hours = hours

        for field in ("is_active", "show_got_it_button"):
            if field in payload:
                setattr(config, field, bool(payload.get(field)))

        for field in ("start_date", "end_date"):
            if field in payload:
                try:
                    setattr(config, field, parse_date(payload.get(field)))
                except ValueError:
                    db.session.rollback()
                    return jsonify({"error": "invalid_payload", "message": f"{field} must be YYYY-MM-DD"}), 400

        if config.end_date < config.start_date:
            db.session.rollback()
            return jsonify({"error": "invalid_payload", "message": "end_date must not be before start_date"}), 400

        db.session.commit()

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update CTA alert config", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    current_app.logger.info(f"CTA alert updated by {admin.user_id}; active={config.is_active}")
    return jsonify({"config": config.to_dict(), "initialized": True}), 200


@bp_ext.post("/content-settings/cta-alert/deactivate")
def deactivate_cta_alert() -> tuple[dict[str, object], int]:
    _, error = require_admin()
    if error:
        return error

    try:
        config = CTAAlertConfig.query.get(CTA_ALERT_ID)
        if config is None:
            return jsonify({"error": "cta_alert_not_found"}), 404

        config.is_active = False
        db.session.commit()

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to deactivate CTA alert", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"success": True, "config": config.to_dict()}), 200


@bp_ext.get("/cta-alert/active")
def get_active_cta_alert() -> tuple[dict[str, object], int]:
    try:
        config = CTAAlertConfig.query.get(CTA_ALERT_ID)
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch active CTA alert", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    if config is None or not config.is_within_date_range(utc_now().date()):
        return jsonify({"alert": None}), 200
    return jsonify({"alert": config.to_public_dict()}), 200


def _apply_template_fields(template: CTAModalTemplate, payload: dict) -> str | None:
    if "name" in payload:
        template.name = clean_str(payload.get("name"))
    for field in ("modal_title", "modal_html_content"):
        if field in payload:
            setattr(template, field, payload.get(field) or "")
    if not template.name:
        return "name is required"
    return None


@bp_ext.get("/content-settings/cta-alert/templates")
def list_cta_templates() -> tuple[dict[str, object], int]:
    _, error = require_admin()
    if error:
        return error

    try:
        templates = CTAModalTemplate.query.order_by(CTAModalTemplate.created_at.desc()).all()
        return jsonify({"templates": [t.to_dict() for t in templates]}), 200
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch CTA templates", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_ext.post("/content-settings/cta-alert/templates")
def create_cta_template() -> tuple[dict[str, object], int]:
    _, error = require_admin()
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    template = CTAModalTemplate(modal_title="", modal_html_content="")
    message = _apply_template_fields(template, payload)
    if message:
        return jsonify({"error": "invalid_payload", "message": message}), 400

    try:
        db.session.add(template)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create CTA template", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"template": template.to_dict()}), 201


@bp_ext.get("/content-settings/cta-alert/templates/<int:template_id>")
def get_cta_template(template_id: int) -> tuple[dict[str, object], int]:
    _, error = require_admin()
    if error:
        return error

    try:
        template = CTAModalTemplate.query.get(template_id)
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch CTA template", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    if not template:
        return jsonify({"error": "template_not_found"}), 404
    return jsonify({"template": template.to_dict()}), 200


@bp_ext.put("/content-settings/cta-alert/templates/<int:template_id>")
def update_cta_template(template_id: int) -> tuple[dict[str, object], int]:
    _, error = require_admin()
    if error:
        return error

    payload = request.get_json(silent=True) or {}

    try:
        template = CTAModalTemplate.query.get(template_id)
        if not template:
            return jsonify({"error": "template_not_found"}), 404

        message = _apply_template_fields(template, payload)
        if message:
            db.session.rollback()
            return jsonify({"error": "invalid_payload", "message": message}), 400

        db.session.commit()
        return jsonify({"template": template.to_dict()}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update CTA template", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_ext.delete("/content-settings/cta-alert/templates/<int:template_id>")
def delete_cta_template(template_id: int) -> tuple[dict[str, str], int]:
    _, error = require_admin()
    if error:
        return error

    try:
        template = CTAModalTemplate.query.get(template_id)
        if not template:
            return jsonify({"error": "template_not_found"}), 404

        db.session.delete(template)
        db.session.commit()
        return jsonify({"message": "Template deleted successfully"}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete CTA template", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


# NEWSLETTER
def _record_subscriber(email: str, first_name: str | None, last_name: str | None,
                       user_type: str, mailchimp_id: str | None = None) -> None:
    """Upsert the local subscriber row. Raises SQLAlchemyError."""
    subscriber = NewsletterSubscriber.query.filter_by(email=email).first()
    if subscriber is None:
        subscriber = NewsletterSubscriber(email=email)
        db.session.add(subscriber)

    subscriber.first_name = first_name or subscriber.first_name
    subscriber.last_name = last_name or subscriber.last_name
    subscriber.user_type = user_type
    subscriber.status = "subscribed"
    if mailchimp_id:
        subscriber.mailchimp_id = mailchimp_id
    db.session.commit()


def _record_after_remote(email, first_name, last_name, user_type, mailchimp_id=None) -> None:
    # Mailchimp already accepted the member; a local failure is logged only
    try:
        _record_subscriber(email, first_name, last_name, user_type, mailchimp_id)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception(f"Failed to record newsletter subscriber {email} locally", exc_info=exc)


def _response_json(response: requests.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


@bp_ext.post("/newsletter/subscribe")
def subscribe_newsletter() -> tuple[dict[str, object], int]:
    """Subscribe an email address to the newsletter list.
    ---
    tags:
      - Newsletter
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [email]
          properties:
            email:
              type: string
            firstName:
              type: string
            lastName:
              type: string
            userType:
              type: string
              description: "pros" or "users"
            forceWelcomeEmail:
              type: boolean
    responses:
      200:
        description: Subscribed, resubscribed or already subscribed
      400:
        description: Missing or invalid email
      502:
        description: Mailchimp unreachable
    """
    payload = request.get_json(silent=True) or {}

    email = clean_str(payload.get("email"))
    first_name = clean_str(payload.get("firstName"))
    last_name = clean_str(payload.get("lastName"))
    user_type = clean_str(payload.get("userType")) or "users"

    if not email or not is_valid_email(email):
        current_app.logger.warning(f"Newsletter subscription with invalid email: {email}")
        return jsonify({"error": "invalid_email", "message": "Please provide a valid email address"}), 400

    email = email.lower()
    current_app.logger.info(f"Newsletter subscription initiated for {email} ({user_type})")
    if payload.get("forceWelcomeEmail"):
        current_app.logger.info(f"Welcome email requested for {email}; welcome emails are sent by the mail service")

    if not mailchimp.is_configured():
        current_app.logger.warning("Mailchimp is not configured; newsletter running in development mode")
        try:
            _record_subscriber(email, first_name, last_name, user_type)
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Failed to record newsletter subscriber", exc_info=exc)
            return jsonify({"error": "database_error"}), 500

        return jsonify({
            "message": "Successfully subscribed! (Development mode)",
            "email": email,
            "firstName": first_name,
            "lastName": last_name,
        }), 200

    member = mailchimp.build_member(email, first_name, last_name, user_type)

    try:
        response = mailchimp.add_member(member)
    except requests.RequestException as exc:
        current_app.logger.exception(f"Mailchimp request failed for {email}", exc_info=exc)
        return jsonify({
            "error": "newsletter_unavailable",
            "message": "An error occurred while processing your subscription. Please try again later.",
        }), 502

    result = _response_json(response)

    if response.ok:
        current_app.logger.info(f"Mailchimp subscription successful for {email}")
        _record_after_remote(email, first_name, last_name, user_type, result.get("id"))
        return jsonify({
            "message": "Successfully subscribed to Glamlink newsletter!",
            "email": result.get("email_address", email),
        }), 200

    if result.get("title") == "Member Exists":
        current_app.logger.info(f"Mailchimp member exists, attempting to resubscribe {email}")
        try:
            update_response = mailchimp.upsert_member(member)
            if update_response.ok:
                update_result = _response_json(update_response)
                _record_after_remote(email, first_name, last_name, user_type, update_result.get("id"))
                return jsonify({
                    "message": "Successfully resubscribed to Glamlink newsletter!",
                    "email": update_result.get("email_address", email),
                    "resubscribed": True,
                }), 200
            current_app.logger.warning(
                f"Mailchimp resubscribe for {email} returned {update_response.status_code}"
            )
        except requests.RequestException as exc:
            current_app.logger.warning(f"Failed to resubscribe {email}: {exc}")

        return jsonify({"message": "You're already subscribed!", "email": email}), 200

    current_app.logger.error(
        f"Mailchimp subscription failed for {email}: status={response.status_code} "
        f"title={result.get('title')} detail={result.get('detail')}"
    )
    return jsonify({
        "error": result.get("detail") or result.get("title") or "Subscription failed. Please try again.",
    }), response.status_code


@bp_ext.get("/newsletter/subscribe")
def newsletter_subscribe_not_allowed():
    return _method_not_allowed()


# MAILCHIMP CAMPAIGNS
CAMPAIGN_AUDIENCES = ("users", "pros", "both")


def _mailchimp_failure(exc: Exception, action: str):
    if isinstance(exc, mailchimp.MailchimpError):
        return jsonify({"error": "mailchimp_error", "message": exc.message}), 502
    current_app.logger.exception(f"Mailchimp unreachable while trying to {action}", exc_info=exc)
    return jsonify({
        "error": "mailchimp_unavailable",
        "message": f"Failed to {action}. Please try again later.",
    }), 502


def _replicate_template_campaign(template_id, name, subject, preview_text, recipient_email, send_now):
    """Copy the template campaign, retitle it, optionally narrow it to one
    recipient, and send it when asked."""
    campaign = mailchimp.replicate_campaign(template_id)
    campaign_id = campaign["id"]
    current_app.logger.info(f"Replicated Mailchimp template campaign {template_id} as {campaign_id}")

    mailchimp.update_campaign(campaign_id, {
        "settings": {
            "subject_line": subject or "Welcome to Glamlink Magazine!",
            "title": name or f"Welcome Email - {utc_now().isoformat()}",
            "preview_text": preview_text or "Your exclusive beauty content awaits...",
        },
    })
    if recipient_email:
        mailchimp.update_campaign(campaign_id, {
            "recipients": {
                "list_id": current_app.config["MAILCHIMP_LIST_ID"],
                "segment_opts": mailchimp.single_recipient_segment(recipient_email),
            },
        })

    body = {
        "campaignId": campaign_id,
        "webId": campaign.get("web_id"),
        "templateUsed": template_id,
    }
    if send_now:
        mailchimp.send_campaign(campaign_id)
        current_app.logger.info(f"Mailchimp campaign {campaign_id} sent from template {template_id}")
        body.update({"message": "Campaign sent successfully using template!", "status": "sent"})
    else:
        body.update({
            "message": "Campaign replicated successfully!",
            "status": "saved",
            "editUrl": mailchimp.edit_url(campaign.get("web_id")),
        })
    return body


@bp_ext.post("/mailchimp/campaigns")
def create_mailchimp_campaign() -> tuple[dict[str, object], int]:
    """Create a Mailchimp campaign from caller-supplied HTML (admin only).

    With template mode on, the configured template campaign is replicated
    instead; if that fails the regular flow runs. The new campaign is
    then test-sent, sent, scheduled or left as a draft.
    ---
    tags:
      - Mailchimp
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [campaignName, subjectLine, htmlContent]
          properties:
            campaignName:
              type: string
            subjectLine:
              type: string
            previewText:
              type: string
            htmlContent:
              type: string
            targetAudience:
              type: string
              enum: [users, pros, both]
            recipientEmail:
              type: string
            sendNow:
              type: boolean
            scheduleTime:
              type: string
              format: date-time
            testEmails:
              type: array
              items:
                type: string
            useTemplateMode:
              type: boolean
    responses:
      201:
        description: Campaign sent, scheduled or saved
      400:
        description: Invalid payload
      502:
        description: Mailchimp rejected the request or is unreachable
    """
    admin, error = require_admin()
    if error:
        return error

    payload = request.get_json(silent=True) or {}

    name = clean_str(payload.get("campaignName"))
    subject = clean_str(payload.get("subjectLine"))
    preview_text = clean_str(payload.get("previewText"))
    html = payload.get("htmlContent") if isinstance(payload.get("htmlContent"), str) else None
    audience = clean_str(payload.get("targetAudience"))
    recipient_email = clean_str(payload.get("recipientEmail"))
    send_now = payload.get("sendNow") is True
    test_emails = payload.get("testEmails") or []

    if audience and audience not in CAMPAIGN_AUDIENCES:
        return jsonify({
            "error": "invalid_payload",
            "message": f"targetAudience must be one of: {', '.join(CAMPAIGN_AUDIENCES)}",
        }), 400
    if recipient_email and not is_valid_email(recipient_email):
        return jsonify({"error": "invalid_email", "message": "recipientEmail is not a valid email address"}), 400
    if not isinstance(test_emails, list) or not all(is_valid_email(e) for e in test_emails):
        return jsonify({"error": "invalid_payload", "message": "testEmails must be a list of email addresses"}), 400

    schedule_time = None
    if payload.get("scheduleTime") and not send_now:
        try:
            schedule_time = parse_datetime(payload.get("scheduleTime")).isoformat()
        except ValueError:
            return jsonify({"error": "invalid_payload", "message": "scheduleTime must be an ISO 8601 timestamp"}), 400

    config = current_app.config
    template_id = config.get("MAILCHIMP_TEMPLATE_CAMPAIGN_ID")
    wants_template = payload.get("useTemplateMode") is True or config.get("MAILCHIMP_USE_TEMPLATE_MODE")
    if wants_template and template_id and mailchimp.is_configured():
        try:
            body = _replicate_template_campaign(template_id, name, subject, preview_text, recipient_email, send_now)
            return jsonify(body), 201
        except (mailchimp.MailchimpError, requests.RequestException) as exc:
            current_app.logger.warning(f"Template replication failed, creating a regular campaign instead: {exc}")

    if not name or not subject or not html or not html.strip():
        return jsonify({
            "error": "invalid_payload",
            "message": "Missing required fields: campaignName, subjectLine, htmlContent",
        }), 400

    current_app.logger.info(
        f"Campaign '{name}' requested by admin {admin.user_id} "
        f"(audience={audience or 'both'}, send_now={send_now}, html={len(html)} bytes)"
    )

    if not mailchimp.is_configured():
        current_app.logger.warning("Mailchimp is not configured; campaign not created (development mode)")
        return jsonify({
            "message": "Campaign created successfully! (Development mode)",
            "campaignId": f"dev-campaign-{int(utc_now().timestamp() * 1000)}",
            "webId": 12345,
            "status": "save",
        }), 201

    if recipient_email:
        segment = mailchimp.single_recipient_segment(recipient_email)
    else:
        segment = mailchimp.audience_segment(audience)
        if segment is None:
            current_app.logger.warning(f"Campaign '{name}' has no segment and will go to the entire list")

    try:
        template = mailchimp.create_template(name, html)
        campaign = mailchimp.create_campaign(mailchimp.build_campaign(name, subject, preview_text, segment))
        campaign_id = campaign["id"]
        mailchimp.set_campaign_content(campaign_id, template_id=template["id"])

        if test_emails:
            mailchimp.send_test(campaign_id, test_emails)
            current_app.logger.info(f"Test emails for campaign {campaign_id} sent to {len(test_emails)} recipients")

        body = {"campaignId": campaign_id, "webId": campaign.get("web_id")}
        if send_now:
            mailchimp.send_campaign(campaign_id)
            current_app.logger.info(f"Mailchimp campaign {campaign_id} sent")
            body.update({
                "message": "Campaign sent successfully!",
                "status": "sent",
                "archiveUrl": campaign.get("archive_url"),
            })
        elif schedule_time:
            mailchimp.schedule_campaign(campaign_id, schedule_time)
            current_app.logger.info(f"Mailchimp campaign {campaign_id} scheduled for {schedule_time}")
            body.update({
                "message": "Campaign scheduled successfully!",
                "status": "scheduled",
                "scheduleTime": schedule_time,
            })
        else:
            body.update({
                "message": "Campaign saved as draft!",
                "status": "saved",
                "editUrl": mailchimp.edit_url(campaign.get("web_id")),
            })

    except (mailchimp.MailchimpError, requests.RequestException) as exc:
        return _mailchimp_failure(exc, "create campaign")

    return jsonify(body), 201


@bp_ext.get("/mailchimp/campaigns")
def list_mailchimp_campaigns() -> tuple[dict[str, object], int]:
    """Recent campaigns, or list segments with ``?action=segments``."""
    _, error = require_admin()
    if error:
        return error

    want_segments = request.args.get("action") == "segments"

    if not mailchimp.is_configured():
        if want_segments:
            return jsonify({
                "segments": [
                    {"id": "users", "name": "Users", "member_count": 100},
                    {"id": "pros", "name": "Pros", "member_count": 50},
                ],
                "total_items": 2,
            }), 200
        return jsonify({"message": "Development mode - no campaigns", "campaigns": [], "total_items": 0}), 200

    try:
        if want_segments:
            result = mailchimp.list_segments()
            return jsonify({
                "segments": result.get("segments", []),
                "total_items": result.get("total_items", 0),
            }), 200

        result = mailchimp.list_campaigns()
        return jsonify({
            "campaigns": result.get("campaigns", []),
            "total_items": result.get("total_items", 0),
        }), 200

    except (mailchimp.MailchimpError, requests.RequestException) as exc:
        return _mailchimp_failure(exc, "fetch campaign data")


@bp_ext.put("/mailchimp/campaigns/<campaign_id>")
def update_mailchimp_campaign(campaign_id: str) -> tuple[dict[str, object], int]:
    _, error = require_admin()
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    settings = payload.get("settings")
    html = payload.get("htmlContent")

    if settings is not None and not isinstance(settings, dict):
        return jsonify({"error": "invalid_payload", "message": "settings must be an object"}), 400
    if html is not None and not isinstance(html, str):
        return jsonify({"error": "invalid_payload", "message": "htmlContent must be a string"}), 400
    if not settings and not (html and html.strip()):
        return jsonify({"error": "invalid_payload", "message": "Provide settings or htmlContent to update"}), 400

    if not mailchimp.is_configured():
        return jsonify({"message": "Campaign updated successfully! (Development mode)", "campaignId": campaign_id}), 200

    try:
        if settings:
            mailchimp.update_campaign(campaign_id, {"settings": settings})
        if html and html.strip():
            mailchimp.set_campaign_content(campaign_id, html=html)
    except (mailchimp.MailchimpError, requests.RequestException) as exc:
        return _mailchimp_failure(exc, "update campaign")

    current_app.logger.info(f"Mailchimp campaign {campaign_id} updated")
    return jsonify({"message": "Campaign updated successfully!", "campaignId": campaign_id}), 200


@bp_ext.delete("/mailchimp/campaigns/<campaign_id>")
def delete_mailchimp_campaign(campaign_id: str) -> tuple[dict[str, object], int]:
    _, error = require_admin()
    if error:
        return error

    if not mailchimp.is_configured():
        return jsonify({"message": "Campaign deleted successfully! (Development mode)"}), 200

    try:
        mailchimp.delete_campaign(campaign_id)
    except (mailchimp.MailchimpError, requests.RequestException) as exc:
        return _mailchimp_failure(exc, "delete campaign")

    current_app.logger.info(f"Mailchimp campaign {campaign_id} deleted")
    return jsonify({"message": "Campaign deleted successfully!"}), 200
