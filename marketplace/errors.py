"""Typed lifecycle errors and their HTTP rendering.

Services raise these instead of bare HTTPExceptions so that every failure
reaching a client carries a stable machine-readable ``code`` alongside the
human ``detail``. The store layer translates driver errors (unique-constraint
violations, missing rows) into this taxonomy before they leave it.
"""

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class MarketplaceError(Exception):
    status_code: int = 400
    code: str = "marketplace_error"
    default_detail: str = "Request could not be completed"
    headers: dict[str, str] | None = None

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        return {"detail": self.detail, "code": self.code}


class ValidationError(MarketplaceError):
    status_code = 422
    code = "validation_error"
    default_detail = "Invalid input"

    def __init__(self, fields: list[str], detail: str | None = None) -> None:
        self.fields = sorted(set(fields))
        super().__init__(detail or f"Missing or invalid field(s): {', '.join(self.fields)}")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "fields": self.fields}


class AuthenticationRequired(MarketplaceError):
    status_code = 401
    code = "authentication_required"
    default_detail = "Sign in to continue"
    headers = {"WWW-Authenticate": "ProfileSig"}


class AuthorizationError(MarketplaceError):
    status_code = 403
    code = "authorization_error"
    default_detail = "Not permitted"


class NotFound(MarketplaceError):
    status_code = 404
    code = "not_found"
    default_detail = "Not found"


class DuplicateBid(MarketplaceError):
    status_code = 409
    code = "duplicate_bid"
    default_detail = "You have already submitted a bid for this job"


class InvalidState(MarketplaceError):
    status_code = 409
    code = "invalid_state"
    default_detail = "Operation not allowed in the current status"


class CounterOffersNotAllowed(MarketplaceError):
    status_code = 422
    code = "counter_offers_not_allowed"
    default_detail = "This job only accepts bids at the listed price"


class ProfileExists(MarketplaceError):
    status_code = 409
    code = "profile_exists"
    default_detail = "Public key already registered"


class ActionInProgress(MarketplaceError):
    status_code = 409
    code = "action_in_progress"
    default_detail = "The same action is already being processed"


class RateLimited(MarketplaceError):
    status_code = 429
    code = "rate_limited"
    default_detail = "Rate limit exceeded"

    def __init__(self, retry_after: int) -> None:
        self.retry_after = retry_after
        self.headers = {"Retry-After": str(retry_after)}
        super().__init__()


class PartialFailure(MarketplaceError):
    """The approval cascade gave up after exhausting its retry budget.

    Clients must re-read the job and its bids before retrying, since a
    commit whose acknowledgement was lost may still have been applied.
    """

    status_code = 503
    code = "partial_failure"
    default_detail = "Bid approval could not be completed; re-check the job before retrying"

    def to_dict(self) -> dict:
        return {**super().to_dict(), "retry": "recheck"}


async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render pydantic body/query failures in the ValidationError shape."""
    fields = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        fields.append(".".join(loc) or "body")
    err = ValidationError(fields)
    return JSONResponse(
        status_code=err.status_code,
        content={**err.to_dict(), "errors": jsonable_encoder(exc.errors())},
    )
