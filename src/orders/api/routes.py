"""FastAPI routes for order reviews and payments.

Thin adapters that translate HTTP requests into domain commands.
No business logic — just schema→command→response translation. Every
command that targets an existing order goes through ``process_for_order``
so it runs inside that order's critical section.
"""

import json

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from protean.utils.globals import current_domain

from orders.api.schemas import (
    AdminActionRequest,
    AdminActionResponse,
    AdminDecisionResponse,
    AnomalyListResponse,
    AnomalyResponse,
    ApproveAction,
    CaptureRequest,
    CheckoutRequest,
    CheckoutResponse,
    ConfigureGatewayRequest,
    ConfirmationResultResponse,
    CustomerConfirmationResponse,
    DesignRevisionResponse,
    DesignRevisionResultResponse,
    MarkShippedRequest,
    OrderItemResponse,
    OrderReviewIdResponse,
    OrderReviewListResponse,
    OrderReviewResponse,
    OrderReviewSummaryResponse,
    PaymentRecordListResponse,
    PaymentRecordResponse,
    PictureReplyResponse,
    PricingResponse,
    ReconciliationResponse,
    RecordRefundRequest,
    RefundAmendmentResponse,
    RefundResultResponse,
    RejectAction,
    ResolveAnomalyRequest,
    ReuploadDesignRequest,
    StatusResponse,
    SubmitConfirmationsRequest,
    SubmitOrderReviewRequest,
    TimelineEntryResponse,
    TimelineResponse,
    UploadPictureReplyAction,
)
from orders.gateway import get_gateway
from orders.gateway.fake_adapter import FakeGateway
from orders.gateway.port import MalformedWebhook, WebhookRejected
from orders.payment.anomaly import ReconciliationAnomaly
from orders.payment.anomaly_resolution import ResolveAnomaly
from orders.payment.checkout import ensure_can_settle, start_checkout
from orders.payment.payment_record import PaymentRecord, PaymentSource
from orders.payment.reconciliation import ReconciliationResult, reconcile
from orders.payment.refund import RecordRefund
from orders.projections.order_review_summary import OrderReviewSummary
from orders.projections.order_review_timeline import OrderReviewTimeline
from orders.review.admin_review import AddAdminNote, ApproveOrderReview, RejectOrderReview
from orders.review.auth import AuthContext, Permission, Role
from orders.review.confirmation import SubmitCustomerConfirmations
from orders.review.errors import ActionNotPermitted
from orders.review.fulfillment import MarkDelivered, MarkProductionReady, MarkShipped, StartProduction
from orders.review.guard import process_for_order
from orders.review.order_review import OrderReview
from orders.review.picture_reply import UploadPictureReply
from orders.review.redesign import ReuploadDesign
from orders.review.state_machine import allowed_triggers
from orders.review.submission import SubmitOrderForReview
from orders.utils.logging import current_env

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Caller identity
# ---------------------------------------------------------------------------
def get_auth_context(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> AuthContext:
    """Resolve the caller once per request from the gateway-injected headers."""
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=401, detail="X-User-Id and X-User-Role headers are required")
    return AuthContext.for_role(x_user_id, x_user_role)


def _ensure_can_view(review_customer_id, auth: AuthContext) -> None:
    if auth.role == Role.CUSTOMER and str(review_customer_id) != auth.user_id:
        raise ActionNotPermitted(auth.user_id, "view this order", "order belongs to another customer")


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def _load_review(order_review_id: str) -> OrderReview:
    return current_domain.repository_for(OrderReview).get(order_review_id)


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------
def _item_response(item) -> OrderItemResponse:
    customization = item.customization
    return OrderItemResponse(
        item_id=str(item.id),
        product_ref=item.product_ref,
        title=item.title,
        quantity=item.quantity,
        base_price=item.unit_price.base_price,
        customization_lines=json.loads(item.unit_price.customization_lines or "[]"),
        customization_total=item.unit_price.customization_total or 0.0,
        unit_total=item.unit_price.unit_total,
        line_total=item.line_total,
        design_assets=item.asset_refs,
        customization={
            "placement": customization.placement,
            "size": customization.size,
            "color": customization.color,
            "style": customization.style,
            "options": json.loads(customization.options or "{}"),
        }
        if customization
        else {},
    )


def _review_response(review: OrderReview) -> OrderReviewResponse:
    return OrderReviewResponse(
        order_review_id=str(review.id),
        customer_id=str(review.customer_id),
        order_number=review.order_number,
        status=review.status,
        allowed_actions=sorted(trigger.value for trigger in allowed_triggers(review.status)),
        awaiting_item_ids=sorted(review.awaiting_replies()),
        items=[_item_response(item) for item in review.items],
        pricing=PricingResponse(
            subtotal=review.pricing.subtotal,
            shipping=review.pricing.shipping,
            tax=review.pricing.tax,
            total=review.pricing.total,
            currency=review.pricing.currency,
        ),
        customer_notes=review.customer_notes,
        admin_notes=review.admin_notes,
        admin_decisions=[
            AdminDecisionResponse(
                decision=d.decision,
                notes=d.notes,
                actor_id=str(d.actor_id),
                decided_at=_iso(d.decided_at),
            )
            for d in review.admin_decisions
        ],
        picture_replies=[
            PictureReplyResponse(
                reply_id=str(r.id),
                item_id=str(r.item_id),
                image=r.image,
                notes=r.notes,
                uploaded_by=str(r.uploaded_by),
                uploaded_at=_iso(r.uploaded_at),
            )
            for r in review.picture_replies
        ],
        customer_confirmations=[
            CustomerConfirmationResponse(
                item_id=str(c.item_id),
                reply_id=str(c.reply_id),
                confirmed=c.confirmed,
                notes=c.notes,
                confirmed_at=_iso(c.confirmed_at),
            )
            for c in review.customer_confirmations
        ],
        design_revisions=[
            DesignRevisionResponse(
                revision_id=str(rev.id),
                item_id=str(rev.item_id),
                design_assets=json.loads(rev.design_assets),
                notes=rev.notes,
                uploaded_at=_iso(rev.uploaded_at),
            )
            for rev in review.design_revisions
        ],
        payment_provider=review.payment_provider,
        provider_transaction_id=review.provider_transaction_id,
        amount_paid=review.amount_paid,
        shipping_carrier=review.shipping_carrier,
        tracking_number=review.tracking_number,
        tracking_url=review.tracking_url,
        estimated_delivery=review.estimated_delivery,
        submitted_at=_iso(review.submitted_at),
        reviewed_at=_iso(review.reviewed_at),
        picture_reply_uploaded_at=_iso(review.picture_reply_uploaded_at),
        customer_confirmed_at=_iso(review.customer_confirmed_at),
        paid_at=_iso(review.paid_at),
        shipped_at=_iso(review.shipped_at),
        delivered_at=_iso(review.delivered_at),
    )


def _summary_response(summary: OrderReviewSummary) -> OrderReviewSummaryResponse:
    return OrderReviewSummaryResponse(
        order_review_id=str(summary.order_review_id),
        customer_id=str(summary.customer_id),
        status=summary.status,
        order_number=summary.order_number,
        item_count=summary.item_count or 0,
        total=summary.total,
        currency=summary.currency or "USD",
        reply_count=summary.reply_count or 0,
        submitted_at=_iso(summary.submitted_at),
        updated_at=_iso(summary.updated_at),
    )


def _record_response(record: PaymentRecord) -> PaymentRecordResponse:
    return PaymentRecordResponse(
        payment_record_id=str(record.id),
        order_review_id=str(record.order_review_id),
        order_number=record.order_number,
        customer_id=str(record.customer_id),
        provider=record.provider,
        provider_transaction_id=record.provider_transaction_id,
        amount=record.amount,
        currency=record.currency,
        fees=record.fees or 0.0,
        net_amount=record.net_amount or 0.0,
        status=record.status,
        source=record.source,
        refunded_amount=record.refunded_amount or 0.0,
        refunds=[
            RefundAmendmentResponse(
                provider_refund_id=r.provider_refund_id,
                amount=r.amount,
                reason=r.reason,
                refunded_at=_iso(r.refunded_at),
            )
            for r in record.refunds
        ],
        processed_at=_iso(record.processed_at),
    )


def _anomaly_response(anomaly: ReconciliationAnomaly) -> AnomalyResponse:
    return AnomalyResponse(
        anomaly_id=str(anomaly.id),
        kind=anomaly.kind,
        status=anomaly.status,
        provider=anomaly.provider,
        provider_transaction_id=anomaly.provider_transaction_id,
        order_correlation_id=anomaly.order_correlation_id,
        amount=anomaly.amount,
        currency=anomaly.currency,
        detail=anomaly.detail,
        recorded_at=_iso(anomaly.recorded_at),
        resolved_at=_iso(anomaly.resolved_at),
        resolved_by=str(anomaly.resolved_by) if anomaly.resolved_by else None,
        resolution_notes=anomaly.resolution_notes,
    )


def _reconciliation_response(result: ReconciliationResult) -> ReconciliationResponse:
    return ReconciliationResponse(
        outcome=result.outcome.value,
        accepted=result.accepted,
        provider=result.provider,
        provider_transaction_id=result.provider_transaction_id,
        provider_status=result.provider_status,
        order_review_id=result.order_review_id,
        order_status=result.order_status,
        order_number=result.order_number,
        payment_record_id=result.payment_record_id,
        anomaly_id=result.anomaly_id,
        anomaly_kind=result.anomaly_kind,
    )


# ---------------------------------------------------------------------------
# Order Review Router
# ---------------------------------------------------------------------------
order_review_router = APIRouter(prefix="/order-reviews", tags=["order-reviews"])


@order_review_router.post("", status_code=201, response_model=OrderReviewIdResponse)
async def submit_order_review(
    body: SubmitOrderReviewRequest,
    auth: AuthContext = Depends(get_auth_context),
) -> OrderReviewIdResponse:
    command = SubmitOrderForReview(
        customer_id=auth.user_id,
        items=json.dumps([item.model_dump() for item in body.items]),
        subtotal=body.subtotal,
        shipping=body.shipping,
        tax=body.tax,
        total=body.total,
        currency=body.currency,
        customer_notes=body.customer_notes,
        actor_role=auth.role.value,
    )
    result = current_domain.process(command, asynchronous=False)
    return OrderReviewIdResponse(order_review_id=result)


@order_review_router.get("", response_model=OrderReviewListResponse)
async def list_order_reviews(
    customer_id: str | None = None,
    auth: AuthContext = Depends(get_auth_context),
) -> OrderReviewListResponse:
    """List a customer's order reviews, newest first."""
    customer_id = customer_id or auth.user_id
    _ensure_can_view(customer_id, auth)
    summaries = (
        current_domain.repository_for(OrderReviewSummary)._dao.query.filter(customer_id=customer_id).all().items
    )
    summaries = sorted(summaries, key=lambda s: _iso(s.submitted_at) or "", reverse=True)
    return OrderReviewListResponse(order_reviews=[_summary_response(s) for s in summaries])


@order_review_router.get("/admin/queue", response_model=OrderReviewListResponse)
async def admin_queue(
    status: str | None = None,
    auth: AuthContext = Depends(get_auth_context),
) -> OrderReviewListResponse:
    """All order reviews, optionally narrowed to one status, oldest first."""
    auth.require(Permission.REVIEW, "view the review queue")
    query = current_domain.repository_for(OrderReviewSummary)._dao.query
    summaries = (query.filter(status=status) if status else query).all().items
    summaries = sorted(summaries, key=lambda s: _iso(s.submitted_at) or "")
    return OrderReviewListResponse(order_reviews=[_summary_response(s) for s in summaries])


@order_review_router.get("/{order_review_id}", response_model=OrderReviewResponse)
async def get_order_review(
    order_review_id: str,
    auth: AuthContext = Depends(get_auth_context),
) -> OrderReviewResponse:
    review = _load_review(order_review_id)
    _ensure_can_view(review.customer_id, auth)
    return _review_response(review)


@order_review_router.get("/{order_review_id}/timeline", response_model=TimelineResponse)
async def get_order_review_timeline(
    order_review_id: str,
    auth: AuthContext = Depends(get_auth_context),
) -> TimelineResponse:
    review = _load_review(order_review_id)
    _ensure_can_view(review.customer_id, auth)
    entries = (
        current_domain.repository_for(OrderReviewTimeline)._dao.query.filter(order_review_id=order_review_id).all().items
    )
    entries = sorted(entries, key=lambda e: _iso(e.occurred_at) or "")
    return TimelineResponse(
        order_review_id=order_review_id,
        entries=[
            TimelineEntryResponse(
                event_type=e.event_type,
                description=e.description,
                from_status=e.from_status,
                to_status=e.to_status,
                actor_id=str(e.actor_id) if e.actor_id else None,
                notes=e.notes,
                occurred_at=_iso(e.occurred_at),
            )
            for e in entries
        ],
    )


@order_review_router.post("/{order_review_id}/admin-actions", response_model=AdminActionResponse)
async def admin_action(
    order_review_id: str,
    body: AdminActionRequest,
    auth: AuthContext = Depends(get_auth_context),
) -> AdminActionResponse:
    """Apply one admin action: approve, reject, upload_picture_reply or add_note."""
    actor = {"order_review_id": order_review_id, "actor_id": auth.user_id, "actor_role": auth.role.value}
    reply_id = None
    if isinstance(body, ApproveAction):
        process_for_order(order_review_id, ApproveOrderReview(notes=body.notes, **actor))
    elif isinstance(body, RejectAction):
        process_for_order(order_review_id, RejectOrderReview(notes=body.notes, **actor))
    elif isinstance(body, UploadPictureReplyAction):
        reply_id = process_for_order(
            order_review_id,
            UploadPictureReply(item_id=body.item_id, image=body.image, notes=body.notes, **actor),
        )
    else:
        process_for_order(order_review_id, AddAdminNote(notes=body.notes, **actor))

    return AdminActionResponse(
        order_review_id=order_review_id,
        order_status=_load_review(order_review_id).status,
        reply_id=reply_id,
    )


@order_review_router.post("/{order_review_id}/confirmations", response_model=ConfirmationResultResponse)
async def submit_confirmations(
    order_review_id: str,
    body: SubmitConfirmationsRequest,
    auth: AuthContext = Depends(get_auth_context),
) -> ConfirmationResultResponse:
    command = SubmitCustomerConfirmations(
        order_review_id=order_review_id,
        confirmations=json.dumps([c.model_dump() for c in body.confirmations]),
        actor_id=auth.user_id,
        actor_role=auth.role.value,
    )
    outcome = process_for_order(order_review_id, command)
    return ConfirmationResultResponse(
        order_review_id=order_review_id,
        verdict=outcome.verdict.value,
        order_status=outcome.status,
        awaiting_item_ids=list(outcome.awaiting_item_ids),
    )


@order_review_router.post("/{order_review_id}/design", response_model=DesignRevisionResultResponse)
async def reupload_design(
    order_review_id: str,
    body: ReuploadDesignRequest,
    auth: AuthContext = Depends(get_auth_context),
) -> DesignRevisionResultResponse:
    command = ReuploadDesign(
        order_review_id=order_review_id,
        item_id=body.item_id,
        design_assets=json.dumps(body.design_assets),
        notes=body.notes,
        actor_id=auth.user_id,
        actor_role=auth.role.value,
    )
    revision_id = process_for_order(order_review_id, command)
    return DesignRevisionResultResponse(
        order_review_id=order_review_id,
        revision_id=revision_id,
        order_status=_load_review(order_review_id).status,
    )


@order_review_router.put("/{order_review_id}/production/ready", response_model=StatusResponse)
async def mark_production_ready(
    order_review_id: str,
    auth: AuthContext = Depends(get_auth_context),
) -> StatusResponse:
    command = MarkProductionReady(order_review_id=order_review_id, actor_id=auth.user_id, actor_role=auth.role.value)
    process_for_order(order_review_id, command)
    return StatusResponse()


@order_review_router.put("/{order_review_id}/production/start", response_model=StatusResponse)
async def start_production(
    order_review_id: str,
    auth: AuthContext = Depends(get_auth_context),
) -> StatusResponse:
    command = StartProduction(order_review_id=order_review_id, actor_id=auth.user_id, actor_role=auth.role.value)
    process_for_order(order_review_id, command)
    return StatusResponse()


@order_review_router.put("/{order_review_id}/ship", response_model=StatusResponse)
async def mark_shipped(
    order_review_id: str,
    body: MarkShippedRequest,
    auth: AuthContext = Depends(get_auth_context),
) -> StatusResponse:
    command = MarkShipped(
        order_review_id=order_review_id,
        carrier=body.carrier,
        tracking_number=body.tracking_number,
        tracking_url=body.tracking_url,
        estimated_delivery=body.estimated_delivery.isoformat() if body.estimated_delivery else None,
        actor_id=auth.user_id,
        actor_role=auth.role.value,
    )
    process_for_order(order_review_id, command)
    return StatusResponse()


@order_review_router.put("/{order_review_id}/deliver", response_model=StatusResponse)
async def mark_delivered(
    order_review_id: str,
    auth: AuthContext = Depends(get_auth_context),
) -> StatusResponse:
    command = MarkDelivered(order_review_id=order_review_id, actor_id=auth.user_id, actor_role=auth.role.value)
    process_for_order(order_review_id, command)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/webhook/{provider}", response_model=ReconciliationResponse)
async def payment_webhook(provider: str, request: Request) -> ReconciliationResponse:
    """Receive a provider notification and funnel it into reconciliation.

    Returns 200 once the notification is durably handled, anomalies
    included, so the provider stops retrying. Only an unverifiable
    signature is refused. Events that carry no payment state are
    acknowledged as ``ignored``.
    """
    gateway = get_gateway(provider)
    raw = (await request.body()).decode("utf-8")
    try:
        transaction = gateway.parse_webhook(raw, request.headers)
    except WebhookRejected as exc:
        logger.warning("webhook_signature_rejected", provider=provider, reason=str(exc))
        raise HTTPException(status_code=401, detail="Invalid webhook signature") from None
    except MalformedWebhook as exc:
        logger.warning("webhook_malformed", provider=provider, reason=str(exc))
        raise HTTPException(status_code=422, detail="Malformed webhook payload") from None

    if transaction is None:
        return ReconciliationResponse(outcome="ignored", accepted=True, provider=provider)

    logger.info(
        "webhook_received",
        provider=provider,
        provider_transaction_id=transaction.provider_transaction_id,
        status=transaction.status,
    )
    return _reconciliation_response(reconcile(transaction, PaymentSource.WEBHOOK))


@payment_router.post("/{provider}/checkout", status_code=201, response_model=CheckoutResponse)
async def checkout(
    provider: str,
    body: CheckoutRequest,
    auth: AuthContext = Depends(get_auth_context),
) -> CheckoutResponse:
    session = start_checkout(body.order_review_id, provider, auth)
    return CheckoutResponse(
        provider=session.provider,
        provider_transaction_id=session.provider_transaction_id,
        status=session.status,
        approval_url=session.approval_url,
    )


@payment_router.post("/{provider}/capture", response_model=ReconciliationResponse)
async def capture_payment(
    provider: str,
    body: CaptureRequest,
    auth: AuthContext = Depends(get_auth_context),
) -> ReconciliationResponse:
    """Capture an approved charge on the customer's return from the provider."""
    gateway = get_gateway(provider)
    ensure_can_settle(gateway.fetch(body.provider_transaction_id), auth)
    transaction = gateway.capture(body.provider_transaction_id)
    logger.info(
        "payment_capture_requested",
        provider=provider,
        provider_transaction_id=body.provider_transaction_id,
        requested_by=auth.user_id,
    )
    return _reconciliation_response(reconcile(transaction, PaymentSource.CAPTURE))


@payment_router.post("/{provider}/transactions/{provider_transaction_id}/sync", response_model=ReconciliationResponse)
async def sync_transaction(
    provider: str,
    provider_transaction_id: str,
    auth: AuthContext = Depends(get_auth_context),
) -> ReconciliationResponse:
    """Poll the provider for a transaction's current state and reconcile it."""
    transaction = get_gateway(provider).fetch(provider_transaction_id)
    ensure_can_settle(transaction, auth)
    logger.info(
        "payment_sync_requested",
        provider=provider,
        provider_transaction_id=provider_transaction_id,
        requested_by=auth.user_id,
    )
    return _reconciliation_response(reconcile(transaction, PaymentSource.POLL))


@payment_router.get("/records", response_model=PaymentRecordListResponse)
async def list_payment_records(
    order_review_id: str | None = None,
    auth: AuthContext = Depends(get_auth_context),
) -> PaymentRecordListResponse:
    filters = {}
    if order_review_id:
        filters["order_review_id"] = order_review_id
    if not auth.has(Permission.REFUND):
        filters["customer_id"] = auth.user_id
    query = current_domain.repository_for(PaymentRecord)._dao.query
    records = (query.filter(**filters) if filters else query).all().items
    return PaymentRecordListResponse(payment_records=[_record_response(r) for r in records])


@payment_router.post("/records/{payment_record_id}/refunds", response_model=RefundResultResponse)
async def record_refund(
    payment_record_id: str,
    body: RecordRefundRequest,
    auth: AuthContext = Depends(get_auth_context),
) -> RefundResultResponse:
    command = RecordRefund(
        payment_record_id=payment_record_id,
        provider_refund_id=body.provider_refund_id,
        amount=body.amount,
        reason=body.reason,
        actor_id=auth.user_id,
        actor_role=auth.role.value,
    )
    applied = process_for_order(payment_record_id, command)
    record = current_domain.repository_for(PaymentRecord).get(payment_record_id)
    return RefundResultResponse(
        payment_record_id=payment_record_id,
        applied=applied,
        status=record.status,
        refunded_amount=record.refunded_amount or 0.0,
    )


@payment_router.get("/anomalies", response_model=AnomalyListResponse)
async def list_anomalies(
    status: str | None = None,
    auth: AuthContext = Depends(get_auth_context),
) -> AnomalyListResponse:
    auth.require(Permission.RESOLVE_ANOMALY, "view payment anomalies")
    query = current_domain.repository_for(ReconciliationAnomaly)._dao.query
    anomalies = (query.filter(status=status) if status else query).all().items
    return AnomalyListResponse(anomalies=[_anomaly_response(a) for a in anomalies])


@payment_router.put("/anomalies/{anomaly_id}/resolve", response_model=AnomalyResponse)
async def resolve_anomaly(
    anomaly_id: str,
    body: ResolveAnomalyRequest,
    auth: AuthContext = Depends(get_auth_context),
) -> AnomalyResponse:
    command = ResolveAnomaly(
        anomaly_id=anomaly_id,
        resolution_notes=body.resolution_notes,
        actor_id=auth.user_id,
        actor_role=auth.role.value,
    )
    current_domain.process(command, asynchronous=False)
    return _anomaly_response(current_domain.repository_for(ReconciliationAnomaly).get(anomaly_id))


@payment_router.post("/gateway/{provider}/configure", response_model=StatusResponse)
async def configure_gateway(
    provider: str,
    body: ConfigureGatewayRequest,
    auth: AuthContext = Depends(get_auth_context),
) -> StatusResponse:
    """Flip the fake gateway between succeeding and declining (admins, non-production only)."""
    auth.require(Permission.REVIEW, "configure payment gateways")
    if current_env() == "production":
        raise HTTPException(status_code=403, detail="Gateway configuration is disabled in production")
    gateway = get_gateway(provider)
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=409, detail=f"The {provider} gateway is not a fake adapter")
    gateway.configure(should_succeed=body.should_succeed, failure_reason=body.failure_reason)
    return StatusResponse()
