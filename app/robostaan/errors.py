from __future__ import annotations

from flask import current_app, flash, g
from sqlalchemy.orm import Session


def report_backend_error(s: Session, what: str) -> None:
    """
    Call-site handler for failed writes: roll back, log with the request id,
    and show the user a generic message ("Error saving blog. Please try again.").
    Must be called from inside an `except` block.
    """
    s.rollback()
    current_app.logger.exception("Error %s (request_id=%s)", what, getattr(g, "request_id", None))
    flash(f"Error {what}. Please try again.", "danger")
