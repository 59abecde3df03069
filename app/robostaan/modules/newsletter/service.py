from __future__ import annotations

from typing import TYPE_CHECKING

from app.robostaan.audit import record_event
from app.robostaan.policies import INSERT, SELECT, UPDATE, enforce
from app.robostaan.utils import is_valid_email, normalize_email, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.robostaan.models import User
    from app.robostaan.modules.newsletter.models import NewsletterSubscription


def _find(s: "Session", email: str) -> "NewsletterSubscription | None":
    from app.robostaan.modules.newsletter.models import NewsletterSubscription

    return s.query(NewsletterSubscription).filter(NewsletterSubscription.email == email).one_or_none()


def subscribe(s: "Session", email: str | None, actor: "User | None" = None) -> tuple["NewsletterSubscription", bool]:
    """
    Subscribe an address. Re-subscribing an inactive address reactivates it.
    Returns (subscription, changed) where changed is False for an already-active address.
    """
    from app.robostaan.modules.newsletter.models import NewsletterSubscription

    email = normalize_email(email)
    if not is_valid_email(email):
        raise ValueError("Please enter a valid email address.")

    existing = _find(s, email)
    if existing is not None:
        if existing.active:
            return existing, False
        enforce(actor, "newsletter_subscriptions", UPDATE, existing)
        existing.active = True
        existing.subscribed_at = utcnow()
        record_event(s, actor=actor, action="newsletter.resubscribe", entity_type="NewsletterSubscription", entity_id=str(existing.id))
        return existing, True

    sub = NewsletterSubscription(email=email, subscribed_at=utcnow(), active=True)
    enforce(actor, "newsletter_subscriptions", INSERT, sub)
    s.add(sub)
    s.flush()
    record_event(s, actor=actor, action="newsletter.subscribe", entity_type="NewsletterSubscription", entity_id=str(sub.id))
    return sub, True


def unsubscribe(s: "Session", email: str | None, actor: "User | None" = None) -> bool:
    """Deactivate a subscription. Returns False if the address was not actively subscribed."""
    existing = _find(s, normalize_email(email))
    if existing is None or not existing.active:
        return False
    enforce(actor, "newsletter_subscriptions", UPDATE, existing)
    existing.active = False
    record_event(s, actor=actor, action="newsletter.unsubscribe", entity_type="NewsletterSubscription", entity_id=str(existing.id))
    return True


def active_subscriptions(s: "Session", actor: "User | None") -> list["NewsletterSubscription"]:
    from app.robostaan.modules.newsletter.models import NewsletterSubscription

    enforce(actor, "newsletter_subscriptions", SELECT)
    return (
        s.query(NewsletterSubscription)
        .filter(NewsletterSubscription.active.is_(True))
        .order_by(NewsletterSubscription.subscribed_at.desc(), NewsletterSubscription.id.desc())
        .all()
    )
