"""Pydantic request/response schemas for the order review and payment API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands.
"""

from datetime import date
from typing import Annotated, Literal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class CustomizationLineSchema(BaseModel):
    label: str
    amount: float = Field(ge=0)


class CustomizationSchema(BaseModel):
    placement: str | None = None
    size: str | None = None
    color: str | None = None
    style: str | None = None
    options: dict = {}


class SubmissionItemSchema(BaseModel):
    product_ref: str | None = None
    title: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    base_price: float = Field(ge=0)
    customization_lines: list[CustomizationLineSchema] = []
    design_assets: list[str] = Field(min_length=1)
    customization: CustomizationSchema | None = None


# ---------------------------------------------------------------------------
# Order review requests
# ---------------------------------------------------------------------------
class SubmitOrderReviewRequest(BaseModel):
    items: list[SubmissionItemSchema] = Field(min_length=1)
    subtotal: float = Field(ge=0)
    shipping: float = Field(ge=0, default=0.0)
    tax: float = Field(ge=0, default=0.0)
    total: float = Field(ge=0)
    currency: str = "USD"
    customer_notes: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [
                        {
                            "title": "Embroidered cap",
                            "quantity": 2,
                            "base_price": 20.0,
                            "customization_lines": [{"label": "Front logo", "amount": 5.0}],
                            "design_assets": ["s3://designs/logo.png"],
                            "customization": {"placement": "front", "color": "navy"},
                        }
                    ],
                    "subtotal": 50.0,
                    "shipping": 5.0,
                    "tax": 0.0,
                    "total": 55.0,
                }
            ]
        }
    }


class ApproveAction(BaseModel):
    action: Literal["approve"]
    notes: str | None = None


class RejectAction(BaseModel):
    action: Literal["reject"]
    notes: str = Field(min_length=1)


class UploadPictureReplyAction(BaseModel):
    action: Literal["upload_picture_reply"]
    item_id: str
    image: str = Field(min_length=1)
    notes: str | None = None


class AddNoteAction(BaseModel):
    action: Literal["add_note"]
    notes: str = Field(min_length=1)


AdminActionRequest = Annotated[
    ApproveAction | RejectAction | UploadPictureReplyAction | AddNoteAction,
    Field(discriminator="action"),
]


class ConfirmationSchema(BaseModel):
    item_id: str
    confirmed: bool
    notes: str | None = None


class SubmitConfirmationsRequest(BaseModel):
    confirmations: list[ConfirmationSchema] = Field(min_length=1)


class ReuploadDesignRequest(BaseModel):
    item_id: str
    design_assets: list[str] = Field(min_length=1)
    notes: str | None = None


class MarkShippedRequest(BaseModel):
    carrier: str = Field(min_length=1)
    tracking_number: str = Field(min_length=1)
    tracking_url: str | None = None
    estimated_delivery: date | None = None


# ---------------------------------------------------------------------------
# Order review responses
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str = "ok"


class OrderReviewIdResponse(BaseModel):
    order_review_id: str


class AdminActionResponse(BaseModel):
    order_review_id: str
    order_status: str
    reply_id: str | None = None


class ConfirmationResultResponse(BaseModel):
    order_review_id: str
    verdict: str
    order_status: str
    awaiting_item_ids: list[str] = []


class DesignRevisionResultResponse(BaseModel):
    order_review_id: str
    revision_id: str
    order_status: str


class PricingResponse(BaseModel):
    subtotal: float
    shipping: float
    tax: float
    total: float
    currency: str


class OrderItemResponse(BaseModel):
    item_id: str
    product_ref: str
    title: str
    quantity: int
    base_price: float
    customization_lines: list[dict] = []
    customization_total: float
    unit_total: float
    line_total: float
    design_assets: list[str]
    customization: dict = {}


class AdminDecisionResponse(BaseModel):
    decision: str
    notes: str | None = None
    actor_id: str
    decided_at: str | None = None


class PictureReplyResponse(BaseModel):
    reply_id: str
    item_id: str
    image: str
    notes: str | None = None
    uploaded_by: str
    uploaded_at: str | None = None


class CustomerConfirmationResponse(BaseModel):
    item_id: str
    reply_id: str
    confirmed: bool
    notes: str | None = None
    confirmed_at: str | None = None


class DesignRevisionResponse(BaseModel):
    revision_id: str
    item_id: str
    design_assets: list[str]
    notes: str | None = None
    uploaded_at: str | None = None


class OrderReviewResponse(BaseModel):
    order_review_id: str
    customer_id: str
    order_number: str | None = None
    status: str
    allowed_actions: list[str] = []
    awaiting_item_ids: list[str] = []
    items: list[OrderItemResponse]
    pricing: PricingResponse
    customer_notes: str | None = None
    admin_notes: str | None = None
    admin_decisions: list[AdminDecisionResponse] = []
    picture_replies: list[PictureReplyResponse] = []
    customer_confirmations: list[CustomerConfirmationResponse] = []
    design_revisions: list[DesignRevisionResponse] = []
    payment_provider: str | None = None
    provider_transaction_id: str | None = None
    amount_paid: float | None = None
    shipping_carrier: str | None = None
    tracking_number: str | None = None
    tracking_url: str | None = None
    estimated_delivery: str | None = None
    submitted_at: str | None = None
    reviewed_at: str | None = None
    picture_reply_uploaded_at: str | None = None
    customer_confirmed_at: str | None = None
    paid_at: str | None = None
    shipped_at: str | None = None
    delivered_at: str | None = None


class OrderReviewSummaryResponse(BaseModel):
    order_review_id: str
    customer_id: str
    status: str
    order_number: str | None = None
    item_count: int = 0
    total: float | None = None
    currency: str = "USD"
    reply_count: int = 0
    submitted_at: str | None = None
    updated_at: str | None = None


class OrderReviewListResponse(BaseModel):
    order_reviews: list[OrderReviewSummaryResponse]


class TimelineEntryResponse(BaseModel):
    event_type: str
    description: str
    from_status: str | None = None
    to_status: str | None = None
    actor_id: str | None = None
    notes: str | None = None
    occurred_at: str | None = None


class TimelineResponse(BaseModel):
    order_review_id: str
    entries: list[TimelineEntryResponse]


# ---------------------------------------------------------------------------
# Payment requests
# ---------------------------------------------------------------------------
class CaptureRequest(BaseModel):
    provider_transaction_id: str


class RecordRefundRequest(BaseModel):
    provider_refund_id: str
    amount: float = Field(gt=0)
    reason: str | None = None


class ResolveAnomalyRequest(BaseModel):
    resolution_notes: str = Field(min_length=1)


class ConfigureGatewayRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Card declined"


# ---------------------------------------------------------------------------
# Payment responses
# ---------------------------------------------------------------------------
class CheckoutResponse(BaseModel):
    provider: str
    provider_transaction_id: str
    status: str
    approval_url: str | None = None


class ReconciliationResponse(BaseModel):
    outcome: str
    accepted: bool
    provider: str
    provider_transaction_id: str | None = None
    provider_status: str | None = None
    order_review_id: str | None = None
    order_status: str | None = None
    order_number: str | None = None
    payment_record_id: str | None = None
    anomaly_id: str | None = None
    anomaly_kind: str | None = None


class RefundAmendmentResponse(BaseModel):
    provider_refund_id: str
    amount: float
    reason: str | None = None
    refunded_at: str | None = None


class PaymentRecordResponse(BaseModel):
    payment_record_id: str
    order_review_id: str
    order_number: str | None = None
    customer_id: str
    provider: str
    provider_transaction_id: str
    amount: float
    currency: str
    fees: float
    net_amount: float
    status: str
    source: str | None = None
    refunded_amount: float = 0.0
    refunds: list[RefundAmendmentResponse] = []
    processed_at: str | None = None


class PaymentRecordListResponse(BaseModel):
    payment_records: list[PaymentRecordResponse]


class RefundResultResponse(BaseModel):
    payment_record_id: str
    applied: bool
    status: str
    refunded_amount: float


class AnomalyResponse(BaseModel):
    anomaly_id: str
    kind: str
    status: str
    provider: str
    provider_transaction_id: str
    order_correlation_id: str | None = None
    amount: float | None = None
    currency: str | None = None
    detail: str | None = None
    recorded_at: str | None = None
    resolved_at: str | None = None
    resolved_by: str | None = None
    resolution_notes: str | None = None


class AnomalyListResponse(BaseModel):
    anomalies: list[AnomalyResponse]


class CheckoutRequest(BaseModel):
    order_review_id: str
