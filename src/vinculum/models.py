from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Dict, Any, Literal


class TrackingQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    identifier: str = Field(..., min_length=1, description="Order number or delivery number")
    location_hint: Optional[str] = Field(None, description="Warehouse/site code filter")

    @field_validator("identifier", mode="before")
    def strip_identifier(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("location_hint", mode="before")
    def blank_location_is_none(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v


class UpstreamResponse(BaseModel):
    http_status: int = Field(..., description="HTTP status returned by the gateway")
    body: Dict[str, Any] = Field(default_factory=dict, description="Parsed JSON object, or {'raw': text}")

    @property
    def response_code(self) -> Any:
        return self.body.get("responseCode")

    @property
    def response_message(self) -> Optional[str]:
        message = self.body.get("responseMessage")
        return str(message) if message is not None else None

    @property
    def http_ok(self) -> bool:
        return 200 <= self.http_status < 300

    @property
    def succeeded(self) -> bool:
        if not self.http_ok:
            return False
        if "responseCode" not in self.body:
            return True
        try:
            return float(self.response_code) == 0
        except (TypeError, ValueError):
            return False


class AttemptRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    endpoint: str = Field(..., description="URL the attempt was sent to")
    label: str = Field(..., description="Shape label of the attempt")
    outcome: Literal["http_error", "rejected", "network_error"]
    http_status: Optional[int] = Field(None, alias="httpStatus")
    response_code: Optional[Any] = Field(None, alias="responseCode")
    response_message: Optional[str] = Field(None, alias="responseMessage")
    error: Optional[str] = Field(None, description="Transport error text for network failures")


class ShipmentEvent(BaseModel):
    date: Optional[str] = Field(None, description="Upstream-native date-time text")
    status: str = Field(..., description="Event label, e.g. 'Packed'")
    remarks: Optional[str] = None


class LineItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sku: Optional[str] = None
    name: Optional[str] = None
    quantity: Optional[float] = None
    unit_price: Optional[float] = Field(None, alias="unitPrice")
    line_total: Optional[float] = Field(None, alias="lineTotal")
    image_url: Optional[str] = Field(None, alias="imageUrl")


class ShipmentSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_number: Optional[str] = Field(None, alias="orderNumber")
    status: str
    status_label: Optional[str] = Field(None, alias="statusLabel")
    courier: Optional[str] = None
    tracking_number: Optional[str] = Field(None, alias="trackingNumber")
    tracking_url: Optional[str] = Field(None, alias="trackingUrl")
    eta: Optional[str] = None
    eta_min: Optional[str] = Field(None, alias="etaMin")
    eta_max: Optional[str] = Field(None, alias="etaMax")
    invoice_number: Optional[str] = Field(None, alias="invoiceNumber")
    timeline: List[ShipmentEvent] = Field(default_factory=list, description="Oldest first")
    items: List[LineItem] = Field(default_factory=list)


class TrackingResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    identifier: str = Field(..., description="Identifier the caller looked up")
    order_number: Optional[str] = Field(None, alias="orderNumber")
    status: str
    status_label: Optional[str] = Field(None, alias="statusLabel")
    courier: Optional[str] = None
    tracking_number: Optional[str] = Field(None, alias="trackingNumber")
    tracking_url: Optional[str] = Field(None, alias="trackingUrl")
    eta: Optional[str] = None
    eta_min: Optional[str] = Field(None, alias="etaMin")
    eta_max: Optional[str] = Field(None, alias="etaMax")
    invoice_number: Optional[str] = Field(None, alias="invoiceNumber")
    events: List[ShipmentEvent] = Field(..., min_length=1, description="Newest first")
    items: List[LineItem] = Field(default_factory=list)
    shipments: Optional[List[ShipmentSummary]] = Field(None, description="Every order/shipment, multi-order output only")
    attempt: Optional[str] = Field(None, description="Label of the shape that succeeded")
    raw_upstream: Dict[str, Any] = Field(default_factory=dict, alias="rawUpstream")

    def to_response(self) -> Dict[str, Any]:
        exclude = {"shipments"} if self.shipments is None else None
        return self.model_dump(by_alias=True, exclude=exclude)
