# Overview: Notification port for stock alerts; delivery lives outside the ledger.

"""
The ledger never talks to email/SMS providers. It calls a notifier object
injected through create_app(notifier=...) and kept in app.extensions.

Notifications are fire-and-forget side effects of committed state changes:
dispatch() logs and swallows any notifier failure so the inventory operation
that triggered it never fails or rolls back because of it.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db, NOTIFIER_EXTENSION_KEY


class Notifier:
    """Interface the ledger calls into. Subclass and override what you deliver."""

    def notify_low_stock(self, product, status) -> None:
        raise NotImplementedError

    def notify_replenishment_active(self, product, batch) -> None:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Default notifier: writes notifications to the app log."""

    def notify_low_stock(self, product, status) -> None:
        current_app.logger.info(
            "Low stock: product=%s sku=%s quantity=%s level=%s",
            product.id, product.sku, product.quantity, status.level,
        )

    def notify_replenishment_active(self, product, batch) -> None:
        current_app.logger.info(
            "Replenishment active: product=%s sku=%s batch=%s quantity=%s",
            product.id, product.sku, batch.id, batch.quantity_remaining,
        )


@dataclass
class PendingNotification:
    """A notification queued during a unit of work, delivered after commit."""
    method: str
    args: tuple
    alert: object | None = None


def get_notifier() -> Notifier:
    notifier = current_app.extensions.get(NOTIFIER_EXTENSION_KEY)
    if notifier is None:
        notifier = LoggingNotifier()
        current_app.extensions[NOTIFIER_EXTENSION_KEY] = notifier
    return notifier


def dispatch(method: str, *args) -> bool:
    """
    Call notifier.<method>(*args). Returns True if delivery did not raise.
    """
    notifier = get_notifier()
    try:
        getattr(notifier, method)(*args)
        return True
    except Exception:
        current_app.logger.exception("Notifier %s failed", method)
        return False


def deliver(outbox: list[PendingNotification]) -> None:
    """
    Deliver notifications queued by a committed operation, then flag the
    alerts whose notification went out.
    """
    notified = []
    for item in outbox:
        if dispatch(item.method, *item.args) and item.alert is not None:
            notified.append(item.alert)

    if not notified:
        return
    try:
        for alert in notified:
            alert.is_notified = True
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to flag alerts as notified")
