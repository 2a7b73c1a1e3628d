from typing import Optional

from fastapi import Depends, HTTPException, Request

from app.database import get_db
from app.services.auction_errors import AuctionDomainError

_DB_DEP = Depends(get_db)


def request_id_of(request: Request) -> Optional[str]:
    return str(request.headers.get("X-Request-ID") or "") or None


def domain_http_error(exc: AuctionDomainError) -> HTTPException:
    """Translate a bidding-rule violation into the HTTP response the client sees."""
    return HTTPException(status_code=exc.http_status, detail=exc.to_detail())


__all__ = ["_DB_DEP", "domain_http_error", "get_db", "request_id_of"]
