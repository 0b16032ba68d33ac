"""Digital magazine routes: issues, editor sections, section locks and pages."""
from __future__ import annotations

from datetime import datetime, timedelta

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .auth import get_current_user, is_admin, require_admin
from .extensions import db
from .models import DigitalPage, MagazineIssue, MagazineSection, User, as_utc, utc_now
from .validation import clean_str, get_bool_arg, parse_date

bp_magazine = Blueprint("magazine", __name__)


# --- BEGIN: Issues ---

def _apply_issue_fields(issue: MagazineIssue, payload: dict) -> str | None:
    for field in ("title", "subtitle", "cover_image", "description"):
        if field in payload:
            setattr(issue, field, clean_str(payload.get(field)))

    if "issue_number" in payload:
        issue_number = payload.get("issue_number")
        if not isinstance(issue_number, int) or issue_number < 1:
            return "issue_number must be a positive integer"
        issue.issue_number = issue_number

    if "issue_date" in payload:
        try:
            issue.issue_date = parse_date(payload["issue_date"]) if payload["issue_date"] else None
        except ValueError:
            return "issue_date must be an ISO date (YYYY-MM-DD)"

    for field in ("is_published", "featured"):
        if field in payload:
            setattr(issue, field, bool(payload.get(field)))

    if not issue.title or not issue.issue_number:
        return "title and issue_number are required"
    return None


@bp_magazine.get("/magazine/issues")
def list_issues() -> tuple[dict[str, object], int]:
    """List magazine issues, newest issue number first.
    ---
    tags:
      - Magazine
    parameters:
      - name: include_unpublished
        in: query
        type: boolean
        description: Admins only; include drafts
    responses:
      200:
        description: List of issues
      500:
        description: Database error
    """
    include_unpublished = get_bool_arg("include_unpublished") and is_admin(get_current_user())

    try:
        issue_query = MagazineIssue.query
        if not include_unpublished:
            issue_query = issue_query.filter(MagazineIssue.is_published.is_(True))

        issues = issue_query.order_by(MagazineIssue.issue_number.desc()).all()
        return jsonify({"issues": [issue.to_dict() for issue in issues]}), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch magazine issues", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_magazine.get("/magazine/issues/<int:issue_id>")
def get_issue(issue_id: int) -> tuple[dict[str, object], int]:
    try:
        issue = MagazineIssue.query.get(issue_id)
        if not issue or (not issue.is_published and not is_admin(get_current_user())):
            return jsonify({"error": "issue_not_found"}), 404

        issue_data = issue.to_dict()
        issue_data["sections"] = [section.to_dict() for section in issue.sections]
        return jsonify({"issue": issue_data}), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch magazine issue", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_magazine.post("/magazine/issues")
def create_issue() -> tuple[dict[str, object], int]:
    _, error = require_admin()
    if error:
        return error

    payload = request.get_json(silent=True) or {}

    issue = MagazineIssue()
    message = _apply_issue_fields(issue, payload)
    if message:
        return jsonify({"error": "invalid_payload", "message": message}), 400

    try:
        db.session.add(issue)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "conflict", "message": "issue_number is already in use"}), 409
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create magazine issue", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"issue": issue.to_dict()}), 201


@bp_magazine.put("/magazine/issues/<int:issue_id>")
def update_issue(issue_id: int) -> tuple[dict[str, object], int]:
    _, error = require_admin()
    if error:
        return error

    payload = request.get_json(silent=True) or {}

    try:
        issue = MagazineIssue.query.get(issue_id)
        if not issue:
            return jsonify({"error": "issue_not_found"}), 404

        message = _apply_issue_fields(issue, payload)
        if message:
            db.session.rollback()
            return jsonify({"error": "invalid_payload", "message": message}), 400

        db.session.commit()
        return jsonify({"issue": issue.to_dict()}), 200

    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "conflict", "message": "issue_number is already in use"}), 409
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update magazine issue", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_magazine.delete("/magazine/issues/<int:issue_id>")
def delete_issue(issue_id: int) -> tuple[dict[str, str], int]:
    _, error = require_admin()
    if error:
        return error

    try:
        issue = MagazineIssue.query.get(issue_id)
        if not issue:
            return jsonify({"error": "issue_not_found"}), 404

        db.session.delete(issue)
        db.session.commit()
        return jsonify({"message": "Issue deleted successfully"}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete magazine issue", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

# --- END: Issues ---


# --- BEGIN: Sections ---

def _lock_is_expired(section: MagazineSection) -> bool:
    expires_at = as_utc(section.lock_expires_at)
    return expires_at is None or expires_at <= utc_now()


def _lock_is_active(section: MagazineSection) -> bool:
    return section.locked_by is not None and not _lock_is_expired(section)


def _lock_status(section: MagazineSection, user: User, expires_at: datetime | None = None) -> dict[str, object]:
    expires_at = as_utc(expires_at or section.lock_expires_at)
    return {
        "isLocked": True,
        "lockedBy": section.locked_by,
        "lockedByName": section.locked_by_name,
        "lockedByEmail": section.locked_by_email,
        "lockExpiresAt": expires_at.isoformat() if expires_at else None,
        "canOverride": section.locked_by == user.user_id,
    }


def _apply_section_fields(section: MagazineSection, payload: dict) -> str | None:
    if "title" in payload:
        section.title = clean_str(payload.get("title"))
    if "section_type" in payload:
        section.section_type = clean_str(payload.get("section_type")) or "custom"
    if "content" in payload:
        content = payload.get("content")
        if not isinstance(content, dict):
            return "content must be an object"
        section.content = content

    if not section.title:
        return "title is required"
    return None


@bp_magazine.get("/magazine/issues/<int:issue_id>/sections")
def list_sections(issue_id: int) -> tuple[dict[str, object], int]:
    try:
        issue = MagazineIssue.query.get(issue_id)
        if not issue or (not issue.is_published and not is_admin(get_current_user())):
            return jsonify({"error": "issue_not_found"}), 404

        return jsonify({"sections": [section.to_dict() for section in issue.sections]}), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch magazine sections", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_magazine.post("/magazine/issues/<int:issue_id>/sections")
def create_section(issue_id: int) -> tuple[dict[str, object], int]:
    _, error = require_admin()
    if error:
        return error

    payload = request.get_json(silent=True) or {}

    try:
        issue = MagazineIssue.query.get(issue_id)
        if not issue:
            return jsonify({"error": "issue_not_found"}), 404

        section = MagazineSection(issue_id=issue_id, content={})
        message = _apply_section_fields(section, payload)
        if message:
            return jsonify({"error": "invalid_payload", "message": message}), 400

        max_order = (
            db.session.query(func.max(MagazineSection.sort_order))
            .filter(MagazineSection.issue_id == issue_id)
            .scalar()
        )
        section.sort_order = (max_order or 0) + 1

        db.session.add(section)
        db.session.commit()

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create magazine section", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"section": section.to_dict()}), 201


@bp_magazine.put("/magazine/sections/<int:section_id>")
def update_section(section_id: int) -> tuple[dict[str, object], int]:
    """Save section content; refused while another editor holds the lock."""
    user, error = require_admin()
    if error:
        return error

    payload = request.get_json(silent=True) or {}

    try:
        section = MagazineSection.query.get(section_id)
        if not section:
            return jsonify({"error": "section_not_found"}), 404

        if _lock_is_active(section) and section.locked_by != user.user_id:
            return jsonify({
                "error": "section_locked",
                "message": f"Section is locked by {section.locked_by_name or 'another user'}",
                "lockStatus": _lock_status(section, user),
            }), 423

        message = _apply_section_fields(section, payload)
        if message:
            db.session.rollback()
            return jsonify({"error": "invalid_payload", "message": message}), 400

        db.session.commit()
        return jsonify({"section": section.to_dict()}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update magazine section", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_magazine.delete("/magazine/sections/<int:section_id>")
def delete_section(section_id: int) -> tuple[dict[str, str], int]:
    user, error = require_admin()
    if error:
        return error

    try:
        section = MagazineSection.query.get(section_id)
        if not section:
            return jsonify({"error": "section_not_found"}), 404

        if _lock_is_active(section) and section.locked_by != user.user_id:
            return jsonify({
                "error": "section_locked",
                "message": f"Section is locked by {section.locked_by_name or 'another user'}",
            }), 423

        db.session.delete(section)
        db.session.commit()
        return jsonify({"message": "Section deleted successfully"}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete magazine section", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_magazine.post("/magazine/issues/<int:issue_id>/sections/reorder")
def reorder_sections(issue_id: int) -> tuple[dict[str, object], int]:
    _, error = require_admin()
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    ids = payload.get("ids")

    if not isinstance(ids, list) or not ids or not all(isinstance(i, int) for i in ids):
        return jsonify({"error": "invalid_payload", "message": "ids must be a non-empty list of integers"}), 400

    try:
        issue = MagazineIssue.query.get(issue_id)
        if not issue:
            return jsonify({"error": "issue_not_found"}), 404

        by_id = {section.section_id: section for section in issue.sections}
        if sorted(ids) != sorted(by_id):
            return jsonify({
                "error": "invalid_payload",
                "message": "ids must list every section of the issue exactly once",
            }), 400

        for position, section_id in enumerate(ids, start=1):
            by_id[section_id].sort_order = position

        db.session.commit()
        return jsonify({"sections": [by_id[i].to_dict() for i in ids]}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to reorder magazine sections", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

# --- END: Sections ---


# --- BEGIN: Section locks ---

@bp_magazine.get("/magazine/sections/<int:section_id>/lock")
def get_section_lock(section_id: int) -> tuple[dict[str, object], int]:
    """Check lock status for a section; expired locks are cleared on read.
    ---
    tags:
      - Magazine
    responses:
      200:
        description: Lock status
      401:
        description: Unauthorized
      404:
        description: Section not found
    """
    user, error = require_admin()
    if error:
        return error

    try:
        section = MagazineSection.query.get(section_id)
        if not section:
            return jsonify({"error": "section_not_found"}), 404

        if section.locked_by is None or section.lock_expires_at is None:
            return jsonify({"isLocked": False, "canOverride": False}), 200

        if _lock_is_expired(section):
            section.clear_lock()
            db.session.commit()
            return jsonify({"isLocked": False, "canOverride": False}), 200

        return jsonify(_lock_status(section, user)), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to check section lock", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_magazine.post("/magazine/sections/<int:section_id>/lock")
def acquire_section_lock(section_id: int) -> tuple[dict[str, object], int]:
    """Acquire the editor lock on a section.

    An active lock held by someone else is refused with 423. The caller's
    own active lock (say, from another tab) is also refused unless the
    request sets ``override``.
    """
    user, error = require_admin()
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    override = bool(payload.get("override", False))

    try:
        section = MagazineSection.query.get(section_id)
        if not section:
            return jsonify({"error": "section_not_found"}), 404

        if _lock_is_active(section):
            if section.locked_by != user.user_id:
                return jsonify({
                    "success": False,
                    "error": f"Section is locked by {section.locked_by_name or 'another user'}",
                    "lockStatus": _lock_status(section, user),
                }), 423

            if not override:
                return jsonify({
                    "success": False,
                    "error": "You have this section locked elsewhere. Set override=true to continue.",
                    "lockStatus": _lock_status(section, user),
                }), 423

        now = utc_now()
        expires_at = now + timedelta(minutes=current_app.config["SECTION_LOCK_MINUTES"])

        section.locked_by = user.user_id
        section.locked_by_name = user.name
        section.locked_by_email = user.email
        section.locked_at = now
        section.lock_expires_at = expires_at
        db.session.commit()

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to acquire section lock", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    current_app.logger.info(
        f"Section {section_id} locked by {user.name} ({user.user_id}) until {expires_at.isoformat()}"
    )
    return jsonify({"success": True, "lockStatus": _lock_status(section, user, expires_at)}), 200


@bp_magazine.put("/magazine/sections/<int:section_id>/lock")
def refresh_section_lock(section_id: int) -> tuple[dict[str, object], int]:
    """Extend the caller's lock by another lock period."""
    user, error = require_admin()
    if error:
        return error

    try:
        section = MagazineSection.query.get(section_id)
        if not section:
            return jsonify({"error": "section_not_found"}), 404

        if section.locked_by is None:
            return jsonify({"error": "not_locked", "message": "Section is not locked"}), 400

        if section.locked_by != user.user_id:
            return jsonify({"error": "forbidden", "message": "You do not own this lock"}), 403

        if _lock_is_expired(section):
            return jsonify({"error": "lock_expired", "message": "Lock has expired"}), 410

        expires_at = utc_now() + timedelta(minutes=current_app.config["SECTION_LOCK_MINUTES"])
        section.lock_expires_at = expires_at
        db.session.commit()

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to refresh section lock", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"success": True, "lockStatus": _lock_status(section, user, expires_at)}), 200


@bp_magazine.delete("/magazine/sections/<int:section_id>/lock")
def release_section_lock(section_id: int) -> tuple[dict[str, object], int]:
    user, error = require_admin()
    if error:
        return error

    try:
        section = MagazineSection.query.get(section_id)
        if not section:
            return jsonify({"error": "section_not_found"}), 404

        if section.locked_by is None:
            return jsonify({"success": True, "message": "Section was not locked"}), 200

        # Someone else's lock can only be cleared once it has expired
        if section.locked_by != user.user_id and not _lock_is_expired(section):
            return jsonify({
                "success": False,
                "error": f"Cannot release lock owned by {section.locked_by_name or 'another user'}",
            }), 403

        section.clear_lock()
        db.session.commit()

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to release section lock", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    current_app.logger.info(f"Section {section_id} lock released by {user.user_id}")
    return jsonify({"success": True, "message": "Lock released successfully"}), 200

# --- END: Section locks ---


# --- BEGIN: Digital pages ---

def _apply_page_fields(page: DigitalPage, payload: dict) -> str | None:
    if "title" in payload:
        page.title = clean_str(payload.get("title"))
    if "page_type" in payload:
        page.page_type = clean_str(payload.get("page_type")) or "custom"
    if "canvas_url" in payload:
        page.canvas_url = clean_str(payload.get("canvas_url"))
    if "page_number" in payload:
        page_number = payload.get("page_number")
        if not isinstance(page_number, int) or page_number < 1:
            return "page_number must be a positive integer"
        page.page_number = page_number
    for field in ("page_data", "pdf_settings"):
        if field in payload:
            value = payload.get(field) or {}
            if not isinstance(value, dict):
                return f"{field} must be an object"
            setattr(page, field, value)
    return None


@bp_magazine.get("/magazine/issues/<int:issue_id>/digital-pages")
def list_digital_pages(issue_id: int) -> tuple[dict[str, object], int]:
    try:
        issue = MagazineIssue.query.get(issue_id)
        if not issue or (not issue.is_published and not is_admin(get_current_user())):
            return jsonify({"error": "issue_not_found"}), 404

        return jsonify({"pages": [page.to_dict() for page in issue.digital_pages]}), 200

    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch digital pages", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_magazine.post("/magazine/issues/<int:issue_id>/digital-pages")
def create_digital_page(issue_id: int) -> tuple[dict[str, object], int]:
    _, error = require_admin()
    if error:
        return error

    payload = request.get_json(silent=True) or {}

    try:
        issue = MagazineIssue.query.get(issue_id)
        if not issue:
            return jsonify({"error": "issue_not_found"}), 404

        page = DigitalPage(issue_id=issue_id, page_data={}, pdf_settings={})
        message = _apply_page_fields(page, payload)
        if message:
            return jsonify({"error": "invalid_payload", "message": message}), 400

        if page.page_number is None:
            max_number = (
                db.session.query(func.max(DigitalPage.page_number))
                .filter(DigitalPage.issue_id == issue_id)
                .scalar()
            )
            page.page_number = (max_number or 0) + 1

        db.session.add(page)
        db.session.commit()

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create digital page", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"page": page.to_dict()}), 201


@bp_magazine.put("/magazine/digital-pages/<int:page_id>")
def update_digital_page(page_id: int) -> tuple[dict[str, object], int]:
    _, error = require_admin()
    if error:
        return error

    payload = request.get_json(silent=True) or {}

    try:
        page = DigitalPage.query.get(page_id)
        if not page:
            return jsonify({"error": "page_not_found"}), 404

        message = _apply_page_fields(page, payload)
        if message:
            db.session.rollback()
            return jsonify({"error": "invalid_payload", "message": message}), 400

        db.session.commit()
        return jsonify({"page": page.to_dict()}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update digital page", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_magazine.delete("/magazine/digital-pages/<int:page_id>")
def delete_digital_page(page_id: int) -> tuple[dict[str, str], int]:
    _, error = require_admin()
    if error:
        return error

    try:
        page = DigitalPage.query.get(page_id)
        if not page:
            return jsonify({"error": "page_not_found"}), 404

        db.session.delete(page)
        db.session.commit()
        return jsonify({"message": "Page deleted successfully"}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete digital page", exc_info=exc)
        return jsonify({"error": "database_error"}), 500


@bp_magazine.post("/magazine/issues/<int:issue_id>/digital-pages/reorder")
def reorder_digital_pages(issue_id: int) -> tuple[dict[str, object], int]:
    """Renumber an issue's pages 1..n in the given order."""
    _, error = require_admin()
    if error:
        return error

    payload = request.get_json(silent=True) or {}
    ids = payload.get("ids")

    if not isinstance(ids, list) or not ids or not all(isinstance(i, int) for i in ids):
        return jsonify({"error": "invalid_payload", "message": "ids must be a non-empty list of integers"}), 400

    try:
        issue = MagazineIssue.query.get(issue_id)
        if not issue:
            return jsonify({"error": "issue_not_found"}), 404

        by_id = {page.page_id: page for page in issue.digital_pages}
        if sorted(ids) != sorted(by_id):
            return jsonify({
                "error": "invalid_payload",
                "message": "ids must list every page of the issue exactly once",
            }), 400

        for number, page_id in enumerate(ids, start=1):
            by_id[page_id].page_number = number

        db.session.commit()
        return jsonify({"pages": [by_id[i].to_dict() for i in ids]}), 200

    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to reorder digital pages", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

# --- END: Digital pages ---
