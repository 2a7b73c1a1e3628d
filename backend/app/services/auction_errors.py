from __future__ import annotations

from decimal import Decimal
from typing import Any


class AuctionDomainError(ValueError):
    """Business-rule violation raised by the bidding core.

    These are caller-visible outcomes; the API layer maps them to HTTP responses
    through ``code`` and ``http_status``.
    """

    code = "AUCTION_ERROR"
    http_status = 400

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_detail(self) -> dict[str, Any]:
        detail: dict[str, Any] = {"code": self.code, "message": self.message}
        for key, value in self.context.items():
            detail[key] = format(value, "f") if isinstance(value, Decimal) else value
        return detail


class InvalidPrice(AuctionDomainError):
    code = "INVALID_PRICE"
    http_status = 400


class NotFound(AuctionDomainError):
    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, entity: str) -> None:
        super().__init__(f"{entity} not found")
        self.entity = entity


class AuctionNotAcceptingBids(AuctionDomainError):
    code = "AUCTION_NOT_ACCEPTING_BIDS"
    http_status = 409


class SupplierNotVerified(AuctionDomainError):
    code = "SUPPLIER_NOT_VERIFIED"
    http_status = 409


class DecrementTooSmall(AuctionDomainError):
    code = "DECREMENT_TOO_SMALL"
    http_status = 409


class BidNotLower(AuctionDomainError):
    code = "BID_NOT_LOWER"
    http_status = 409


class AuctionStillActive(AuctionDomainError):
    code = "AUCTION_STILL_ACTIVE"
    http_status = 409


class BidNotCancellable(AuctionDomainError):
    code = "BID_NOT_CANCELLABLE"
    http_status = 409


class InvalidTransition(AuctionDomainError):
    code = "INVALID_TRANSITION"
    http_status = 409
