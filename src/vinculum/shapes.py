# src/vinculum/shapes.py

"""
Ordered request shapes for the Vinculum order API.

The accepted payload layout differs between tenants, API versions and
identifier types (order number vs delivery number), so every known layout is
kept as a candidate and tried in priority order until one succeeds.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from vinculum.client import GatewayClient
from vinculum.errors import GatewayNetworkError
from vinculum.models import AttemptRecord, TrackingQuery, UpstreamResponse

logger = logging.getLogger(__name__)

SHIPMENT_DETAIL_PATH = "/order/shipmentDetail"
ORDER_STATUS_PATH = "/order/status"


@dataclass(frozen=True)
class UpstreamAttempt:
    label: str
    path: str
    build_payload: Callable[[TrackingQuery], Dict[str, Any]]

    def url(self, base_url: str) -> str:
        return f"{base_url.rstrip('/')}{self.path}"


@dataclass
class NegotiationResult:
    response: Optional[UpstreamResponse] = None
    attempt: Optional[UpstreamAttempt] = None
    tried: List[AttemptRecord] = field(default_factory=list)
    # body of the last failed attempt, surfaced as error details
    last_body: Optional[Dict[str, Any]] = None

    @property
    def succeeded(self) -> bool:
        return self.response is not None


def _flat(id_key: str, location_key: str) -> Callable[[TrackingQuery], Dict[str, Any]]:
    def build(query: TrackingQuery) -> Dict[str, Any]:
        payload = {id_key: query.identifier}
        if query.location_hint:
            payload[location_key] = query.location_hint
        return payload
    return build


def _request_list(id_key: str, location_key: str) -> Callable[[TrackingQuery], Dict[str, Any]]:
    flat = _flat(id_key, location_key)

    def build(query: TrackingQuery) -> Dict[str, Any]:
        return {"request": [flat(query)]}
    return build


# Most specific and most likely first
DEFAULT_ATTEMPTS: Sequence[UpstreamAttempt] = (
    UpstreamAttempt("shipmentDetail:orderNo", SHIPMENT_DETAIL_PATH, _flat("orderNo", "orderLocation")),
    UpstreamAttempt("shipmentDetail:order_no", SHIPMENT_DETAIL_PATH, _flat("order_no", "order_location")),
    UpstreamAttempt("shipmentDetail:request[order_no]", SHIPMENT_DETAIL_PATH, _request_list("order_no", "order_location")),
    UpstreamAttempt("shipmentDetail:deliveryNo", SHIPMENT_DETAIL_PATH, _flat("deliveryNo", "orderLocation")),
    UpstreamAttempt("orderStatus:request[order_no]", ORDER_STATUS_PATH, _request_list("order_no", "order_location")),
)


def failed_attempt(url: str, attempt: UpstreamAttempt, response: UpstreamResponse) -> AttemptRecord:
    return AttemptRecord(
        endpoint=url,
        label=attempt.label,
        outcome="rejected" if response.http_ok else "http_error",
        http_status=response.http_status,
        response_code=response.response_code,
        response_message=response.response_message,
    )


class ShapeNegotiator:
    """
    Drives the gateway client through the candidate shapes, sequentially,
    stopping at the first response that passes the success predicate.
    """

    def __init__(self, client: GatewayClient, attempts: Sequence[UpstreamAttempt] = DEFAULT_ATTEMPTS):
        self.client = client
        self.attempts = tuple(attempts)

    def resolve(self, query: TrackingQuery) -> NegotiationResult:
        result = NegotiationResult()

        for attempt in self.attempts:
            url = attempt.url(self.client.settings.base_url)
            payload = attempt.build_payload(query)
            try:
                response = self.client.call(url, payload)
            except GatewayNetworkError as e:
                result.tried.append(AttemptRecord(
                    endpoint=url,
                    label=attempt.label,
                    outcome="network_error",
                    error=e.message,
                ))
                continue

            if response.succeeded:
                logger.info(f"{query.identifier}: shape {attempt.label} succeeded")
                result.response = response
                result.attempt = attempt
                return result

            logger.info(
                f"{query.identifier}: shape {attempt.label} failed "
                f"(HTTP {response.http_status}, responseCode={response.response_code!r})"
            )
            result.last_body = response.body
            result.tried.append(failed_attempt(url, attempt, response))

        logger.warning(f"{query.identifier}: all {len(self.attempts)} shapes failed")
        return result
