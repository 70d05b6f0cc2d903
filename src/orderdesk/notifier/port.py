"""Notifier port: abstract interface for outbound notifications.

Notifications are fire-and-forget. A failed notification never fails the
order transition that triggered it.
"""

from abc import ABC, abstractmethod


class NotifierPort(ABC):
    """Abstract interface for notifier adapters."""

    @abstractmethod
    def notify_customer(self, order_id: str, email: str | None, subject: str, body: str) -> dict:
        """Tell the end customer about a shipment.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (on failure)
        """
        ...

    @abstractmethod
    def notify_merchant(self, order_id: str, subject: str, body: str) -> dict:
        """Tell the merchant about a fulfillment request.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (on failure)
        """
        ...
