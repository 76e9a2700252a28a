# src/vinculum/handler.py

"""
Framework-independent tracking request handler.

Both the Lambda entry point and the Flask app hand the inbound method, query
string and JSON body to ``handle_tracking_request`` and get back
``(status_code, headers, body)``.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import requests

from vinculum.client import GatewayClient
from vinculum.config import Settings
from vinculum.errors import NegotiationExhausted, TrackingError, ValidationError
from vinculum.logger import format_exception_info
from vinculum.models import TrackingQuery, TrackingResult
from vinculum.normalizer import normalize
from vinculum.shapes import DEFAULT_ATTEMPTS, NegotiationResult, ShapeNegotiator, UpstreamAttempt

logger = logging.getLogger(__name__)

ALLOWED_METHODS = ("GET", "POST")
IDENTIFIER_FIELDS = ("orderNumbers", "orderNumber", "deliveryNo")
# each identifier costs up to len(DEFAULT_ATTEMPTS) sequential upstream calls
MAX_IDENTIFIERS = 10
MISSING_IDENTIFIER_HINT = "Send 'orderNumber' (or 'deliveryNo') in the JSON body or query string."
NOT_FOUND_HINT = "Check the order number. If it is correct, the shipment may not be created yet."

Response = Tuple[int, Dict[str, str], Dict[str, Any]]


def _split(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        parts = []
        for entry in value:
            parts.extend(_split(entry))
        return parts
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        return []
    return [part.strip() for part in str(value).split(",") if part.strip()]


def _first_text(value: Any) -> Optional[str]:
    # repeated query parameters arrive as lists
    if isinstance(value, (list, tuple)):
        return next((v for v in map(_first_text, value) if v), None)
    if isinstance(value, str):
        return value.strip() or None
    return None


def parse_queries(
    params: Optional[Mapping[str, Any]],
    body: Optional[Mapping[str, Any]],
    default_location: Optional[str] = None,
) -> List[TrackingQuery]:
    """
    Collects identifiers from the JSON body, falling back to the query string.
    Accepts a single identifier, a comma-separated string or a list.
    :raises ValidationError: when no non-blank identifier is present.
    """
    sources = [src for src in (body, params) if isinstance(src, Mapping)]

    identifiers: List[str] = []
    for source in sources:
        for name in IDENTIFIER_FIELDS:
            for identifier in _split(source.get(name)):
                if identifier not in identifiers:
                    identifiers.append(identifier)
        if identifiers:
            break

    if not identifiers:
        raise ValidationError("Missing 'orderNumber' in request", hint=MISSING_IDENTIFIER_HINT)
    if len(identifiers) > MAX_IDENTIFIERS:
        raise ValidationError(
            f"Too many order numbers ({len(identifiers)})",
            hint=f"Send at most {MAX_IDENTIFIERS} order numbers per request.",
        )

    # body wins over the query string
    location = next(
        (loc for loc in (_first_text(src.get("orderLocation")) for src in sources) if loc),
        default_location,
    )
    return [TrackingQuery(identifier=identifier, location_hint=location) for identifier in identifiers]


def exhausted_error(identifier: str, negotiation: NegotiationResult) -> NegotiationExhausted:
    """
    Turns a failed negotiation into the error returned to the caller.

    Only HTTP failures: the last upstream status is passed through.
    Only network failures: 502. Anything else (rejections, mixed): 400.
    """
    tried = [record.model_dump(by_alias=True) for record in negotiation.tried]
    outcomes = {record.outcome for record in negotiation.tried}

    if outcomes == {"http_error"}:
        last_status = negotiation.tried[-1].http_status or 502
        return NegotiationExhausted(
            "Upstream error",
            identifier=identifier,
            tried=tried,
            status_code=last_status if last_status >= 400 else 502,
            details=negotiation.last_body,
        )
    if outcomes == {"network_error"}:
        return NegotiationExhausted(
            "Order service unreachable",
            identifier=identifier,
            tried=tried,
            status_code=502,
            hint="Please try again in a few minutes.",
        )

    rejections = [record for record in negotiation.tried if record.outcome == "rejected"]
    message = next((r.response_message for r in reversed(rejections) if r.response_message), None)
    return NegotiationExhausted(
        message or "Order not found",
        identifier=identifier,
        tried=tried,
        hint=NOT_FOUND_HINT,
    )


class TrackingService:
    def __init__(
        self,
        settings: Settings,
        session: Optional[requests.Session] = None,
        attempts: Sequence[UpstreamAttempt] = DEFAULT_ATTEMPTS,
    ):
        self.client = GatewayClient(settings, session=session)
        self.negotiator = ShapeNegotiator(self.client, attempts)

    def lookup(self, query: TrackingQuery, expand: bool = False) -> TrackingResult:
        negotiation = self.negotiator.resolve(query)
        if not negotiation.succeeded:
            raise exhausted_error(query.identifier, negotiation)
        return normalize(
            query.identifier,
            negotiation.response.body,
            expand=expand,
            attempt=negotiation.attempt.label,
        )

    def lookup_many(self, queries: Sequence[TrackingQuery]) -> Response:
        results = []
        errors = []
        for query in queries:
            try:
                results.append(self.lookup(query, expand=True).to_response())
            except NegotiationExhausted as e:
                errors.append(e.to_dict())

        if not results:
            return 400, {}, {
                "error": "None of the orders could be found",
                "hint": NOT_FOUND_HINT,
                "errors": errors,
            }
        body = dict(results[0])
        body["results"] = results
        body["errors"] = errors
        return 200, {}, body


def handle_tracking_request(
    method: str,
    params: Optional[Mapping[str, Any]],
    body: Optional[Mapping[str, Any]],
    *,
    settings: Settings,
    session: Optional[requests.Session] = None,
    attempts: Sequence[UpstreamAttempt] = DEFAULT_ATTEMPTS,
) -> Response:
    """
    Validates the request, resolves every identifier against the upstream
    and renders the result or error envelope. Never raises.
    """
    if (method or "").upper() not in ALLOWED_METHODS:
        return 405, {"Allow": ", ".join(ALLOWED_METHODS)}, {"error": "Method not allowed"}

    try:
        queries = parse_queries(params, body, default_location=settings.default_location)
        settings.require()

        service = TrackingService(settings, session=session, attempts=attempts)
        if len(queries) > 1:
            logger.info(f"Tracking {len(queries)} identifiers")
            return service.lookup_many(queries)

        result = service.lookup(queries[0])
        return 200, {}, result.to_response()

    except TrackingError as e:
        if e.status_code >= 500:
            logger.error(f"Tracking request failed: {e.message}")
        else:
            logger.info(f"Tracking request rejected ({e.status_code}): {e.message}")
        return e.status_code, {}, e.to_dict()
    except Exception as e:
        logger.error(format_exception_info(e))
        return 500, {}, {"error": str(e) or "Server error"}
