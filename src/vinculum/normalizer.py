# src/vinculum/normalizer.py

"""
Maps the order API's response bodies onto ``TrackingResult``.

The API answers in one of a few shapes depending on the endpoint that
accepted the request:

- order-with-shipments: ``{"orders": [{"status", "shipDetail": [...]}]}``
  (``shipdetail`` on some tenants)
- status-line: ``{"response": [{"orderNo", "orderStatus", "invoiceNo"}]}``
  (``responselist`` / ``order_no`` / ``status`` on others)

``detect_shape`` picks the shape from field presence and each shape has its
own mapping function.
"""

import logging
import re
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from vinculum.models import LineItem, ShipmentEvent, ShipmentSummary, TrackingResult

logger = logging.getLogger(__name__)

PENDING_SCANS_REMARK = "Courier scans are pending. Updates will appear once the carrier picks up the shipment."
DEFAULT_EVENT_STATUS = "Shipment created"

EPOCH = datetime(1970, 1, 1)

DATE_FORMATS = (
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%Y-%m-%d %H:%M:%S",
)

CANONICAL_STATUSES = {
    "intransit": "in transit",
    "shipped": "shipped",
    "shippedcomplete": "shipped complete",
    "delivered": "delivered",
}

# (date field, event label), in timeline order; the in-transit event is
# synthesized between ship and delivered
MILESTONES_BEFORE_TRANSIT = (
    ("allocation_date", "Allocated"),
    ("pick_date", "Picked"),
    ("pack_date", "Packed"),
    ("shipdate", "Shipped"),
)
MILESTONES_AFTER_TRANSIT = (
    ("delivereddate", "Delivered"),
)


class ResponseShape(str, Enum):
    ORDER_SHIPMENT = "order_shipment"
    STATUS_LINE = "status_line"
    UNKNOWN = "unknown"


def first_present(record: Dict[str, Any], *keys: str) -> Any:
    """Value of the first key holding something other than None or ''."""
    for key in keys:
        value = record.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def text(record: Dict[str, Any], *keys: str) -> Optional[str]:
    value = first_present(record, *keys)
    return str(value).strip() if value is not None else None


def as_list(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, dict)]


def parse_number(value: Any) -> Optional[float]:
    """
    Parses quantities and prices, e.g. ``"1,299.00"`` -> ``1299.0``.
    Anything that is not a number becomes None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        return None
    cleaned = value.replace(",", "").strip()
    if not cleaned:
        return None
    try:
        number = float(cleaned)
    except ValueError:
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number


def line_total(quantity: Optional[float], unit_price: Optional[float]) -> Optional[float]:
    if quantity is not None and unit_price is not None:
        return round(quantity * unit_price, 2)
    return unit_price


def parse_date(value: Optional[str]) -> datetime:
    """Sort key for upstream dates; missing or unreadable dates sort as the epoch."""
    if not value:
        return EPOCH
    value = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return EPOCH
    # naive and aware datetimes cannot be compared
    return parsed.replace(tzinfo=None)


def normalize_status(token: Optional[str]) -> Optional[str]:
    if token is None:
        return None
    key = re.sub(r"[\s_\-]+", "", str(token).lower())
    if not key:
        return None
    return CANONICAL_STATUSES.get(key, token)


def newest_first(events: Sequence[ShipmentEvent]) -> List[ShipmentEvent]:
    return sorted(events, key=lambda ev: parse_date(ev.date), reverse=True)


def oldest_first(events: Sequence[ShipmentEvent]) -> List[ShipmentEvent]:
    return sorted(events, key=lambda ev: parse_date(ev.date))


def fallback_event(status: Optional[str], date: Optional[str]) -> ShipmentEvent:
    return ShipmentEvent(
        date=date,
        status=status or DEFAULT_EVENT_STATUS,
        remarks=PENDING_SCANS_REMARK,
    )


def build_timeline(ship: Dict[str, Any]) -> List[ShipmentEvent]:
    """Milestone events of one shipment, in timeline (not date) order."""
    events: List[ShipmentEvent] = []
    for key, label in MILESTONES_BEFORE_TRANSIT:
        date = text(ship, key)
        if date:
            events.append(ShipmentEvent(date=date, status=label))

    transporter_status = text(ship, "transporter_status", "transporterStatus")
    updated_date = text(ship, "updated_date", "updatedDate")
    if transporter_status or updated_date:
        events.append(ShipmentEvent(
            date=updated_date,
            status=normalize_status(transporter_status) or "in transit",
            remarks=text(ship, "remarks", "transporter_remarks"),
        ))

    for key, label in MILESTONES_AFTER_TRANSIT:
        date = text(ship, key)
        if date:
            events.append(ShipmentEvent(date=date, status=label))
    return events


def build_items(ship: Dict[str, Any]) -> List[LineItem]:
    items = []
    for it in as_list(ship.get("items")):
        quantity = parse_number(first_present(it, "order_qty", "deliveryQty", "shippedQty", "qty"))
        unit_price = parse_number(first_present(it, "price", "unitPrice"))
        items.append(LineItem(
            sku=text(it, "sku", "itemCode"),
            name=text(it, "itemName", "name"),
            quantity=quantity,
            unit_price=unit_price,
            line_total=line_total(quantity, unit_price),
            image_url=text(it, "imageUrl", "image_url"),
        ))
    return items


def best_date(*records: Dict[str, Any]) -> Optional[str]:
    for record in records:
        date = text(record, "updated_date", "order_date", "orderDate", "created_date", "createdDate")
        if date:
            return date
    return None


def shipments_of(order: Dict[str, Any]) -> List[Dict[str, Any]]:
    return as_list(order.get("shipDetail")) or as_list(order.get("shipdetail"))


def summarize_shipment(order: Dict[str, Any], ship: Dict[str, Any], body: Dict[str, Any]) -> ShipmentSummary:
    status = text(order, "status") or text(ship, "status") or text(body, "responseMessage") or "Unknown"
    timeline = build_timeline(ship)
    if not timeline:
        timeline = [fallback_event(status, best_date(ship, order))]
    eta_min = text(ship, "expdeldate_min")
    eta_max = text(ship, "expdeldate_max")
    return ShipmentSummary(
        order_number=text(order, "orderNo", "order_no", "orderNumber"),
        status=status,
        status_label=normalize_status(status),
        courier=text(ship, "transporter", "obExtTransporterName"),
        tracking_number=text(ship, "tracking_number", "trackingNumber", "awbNo"),
        tracking_url=text(ship, "tracking_url", "trackingUrl"),
        eta=eta_max or eta_min,
        eta_min=eta_min,
        eta_max=eta_max,
        invoice_number=text(ship, "invoiceNo", "invoice_no") or text(order, "invoiceNo", "invoice_no"),
        timeline=oldest_first(timeline),
        items=build_items(ship),
    )


def map_order_shipment(body: Dict[str, Any], identifier: str, expand: bool) -> Tuple[ShipmentSummary, List[ShipmentSummary]]:
    orders = as_list(body.get("orders"))
    pairs = []
    for order in orders if expand else orders[:1]:
        ships = shipments_of(order) or [{}]
        for ship in ships if expand else ships[:1]:
            pairs.append((order, ship))
    if not pairs:
        pairs = [({}, {})]
    summaries = [summarize_shipment(order, ship, body) for order, ship in pairs]
    return summaries[0], summaries


def map_status_line(body: Dict[str, Any], identifier: str, expand: bool) -> Tuple[ShipmentSummary, List[ShipmentSummary]]:
    lines = as_list(body.get("response")) or as_list(body.get("responselist"))
    summaries = []
    for line in lines or [{}]:
        status = text(line, "orderStatus", "status") or text(body, "responseMessage") or "Unknown"
        summaries.append(ShipmentSummary(
            order_number=text(line, "orderNo", "order_no"),
            status=status,
            status_label=normalize_status(status),
            invoice_number=text(line, "invoiceNo", "invoice_no"),
            timeline=[fallback_event(status, best_date(line))],
        ))
    primary = next(
        (s for s in summaries if s.order_number and s.order_number.upper() == identifier.upper()),
        summaries[0],
    )
    return primary, summaries


def map_unknown(body: Dict[str, Any], identifier: str, expand: bool) -> Tuple[ShipmentSummary, List[ShipmentSummary]]:
    status = text(body, "responseMessage") or "Unknown"
    summary = ShipmentSummary(
        status=status,
        status_label=normalize_status(status),
        timeline=[fallback_event(None, None)],
    )
    return summary, [summary]


MAPPERS: Dict[ResponseShape, Callable[[Dict[str, Any], str, bool], Tuple[ShipmentSummary, List[ShipmentSummary]]]] = {
    ResponseShape.ORDER_SHIPMENT: map_order_shipment,
    ResponseShape.STATUS_LINE: map_status_line,
    ResponseShape.UNKNOWN: map_unknown,
}


def detect_shape(body: Dict[str, Any]) -> ResponseShape:
    if isinstance(body.get("orders"), list):
        return ResponseShape.ORDER_SHIPMENT
    if isinstance(body.get("response"), list) or isinstance(body.get("responselist"), list):
        return ResponseShape.STATUS_LINE
    return ResponseShape.UNKNOWN


def normalize(
    identifier: str,
    body: Dict[str, Any],
    *,
    expand: bool = False,
    attempt: Optional[str] = None,
) -> TrackingResult:
    """
    Builds the canonical result for one successful upstream body.

    ``events`` on the result are newest first. With ``expand`` every
    order/shipment in the body is listed under ``shipments`` (each timeline
    oldest first) and the first one also fills the top-level fields.
    """
    shape = detect_shape(body)
    logger.debug(f"{identifier}: upstream body detected as {shape.value}")
    primary, summaries = MAPPERS[shape](body, identifier, expand)

    return TrackingResult(
        identifier=identifier,
        order_number=primary.order_number or identifier,
        status=primary.status,
        status_label=primary.status_label,
        courier=primary.courier,
        tracking_number=primary.tracking_number,
        tracking_url=primary.tracking_url,
        eta=primary.eta,
        eta_min=primary.eta_min,
        eta_max=primary.eta_max,
        invoice_number=primary.invoice_number,
        events=newest_first(primary.timeline),
        items=primary.items,
        shipments=summaries if expand else None,
        attempt=attempt,
        raw_upstream=body,
    )
