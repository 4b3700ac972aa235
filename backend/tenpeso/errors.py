# Overview: Error taxonomy shared by the settlement services and the API layer.

from __future__ import annotations


class SettlementError(Exception):
    """Base for every domain error surfaced to callers verbatim."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(SettlementError):
    """Bad input shape or values; the caller must correct and resubmit."""
    status_code = 400


class NotFoundError(SettlementError):
    """Unknown order, product, batch or setting."""
    status_code = 404


class OutOfStockError(SettlementError):
    """
    A product cannot cover the requested quantity.

    User-facing and retryable once an admin restocks.
    """
    status_code = 409

    def __init__(self, *, product_id: int, name: str, requested: int, available: int):
        super().__init__(
            f"{name} is out of stock (requested {requested}, available {available})",
            details={
                "product_id": product_id,
                "name": name,
                "requested": requested,
                "available": available,
            },
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class InvalidTransitionError(SettlementError):
    """Order status change not allowed by the state machine."""
    status_code = 409


class InventoryInconsistencyError(SettlementError):
    """
    Cached stock and lot ledger disagree.

    Fatal to the order being settled; needs an operator.
    """
    status_code = 500
