"""
Occasion admission: turn a validated purchase request into a paid, persisted
ticket booking.

STATE MACHINE
=============

  RECEIVED -> VALIDATED -> CAPACITY_CHECKED -> PAYMENT_AUTHORIZED
           -> BOOKING_PERSISTED -> NOTIFIED | NOTIFY_FAILED

  Early exits:
    REPLAYED                 the idempotency key already produced a booking;
                             that booking is returned, nothing is charged
    REJECTED                 unknown/inactive occasion, not enough capacity
                             (before or after payment; after payment the
                             charge is refunded first)
    PAYMENT_FAILED           declined or provider error, nothing charged
    PAYMENT_UNKNOWN          gateway timed out, the charge may exist
    RECONCILIATION_REQUIRED  charged, but no booking could be written

Resources:
  The session used for lookup and the capacity read is closed before the
  gateway is called, so no database lock is ever held across the payment.
  Persistence uses a fresh session and the conditional commit in
  booking_service, which is the only thing that actually enforces capacity.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from venue_booking.core.errors import (
    CapacityExceeded,
    OccasionNotFound,
    PaymentFailed,
    PaymentOutcomeUnknown,
    PersistenceFailure,
)
from venue_booking.core.logging import get_logger
from venue_booking.core.metrics import (
    admission_latency,
    record_admission,
    record_refund,
    reconciliation_required,
    tickets_sold,
)
from venue_booking.models.booking import Booking
from venue_booking.schemas.booking import OccasionPurchaseRequest
from venue_booking.services.booking_service import commit_ticket_booking, find_replayed_booking
from venue_booking.services.capacity_service import remaining_capacity
from venue_booking.services.email_service import notify_safely
from venue_booking.services.interfaces.notifier import Notifier, TicketPurchaseNotice
from venue_booking.services.interfaces.payment import ChargeRequest, ChargeResult, PaymentGateway
from venue_booking.services.links import LinkConfig, guest_list_url
from venue_booking.services.occasion_service import get_occasion_by_share_token

logger = get_logger(__name__)


class AdmissionState(str, Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    CAPACITY_CHECKED = "capacity_checked"
    PAYMENT_AUTHORIZED = "payment_authorized"
    BOOKING_PERSISTED = "booking_persisted"
    NOTIFIED = "notified"
    NOTIFY_FAILED = "notify_failed"
    REJECTED = "rejected"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_UNKNOWN = "payment_unknown"
    RECONCILIATION_REQUIRED = "reconciliation_required"
    REPLAYED = "replayed"


@dataclass(frozen=True)
class AdmissionConfig:
    currency: str = "AUD"
    location_id: str = ""
    location_ids: dict[str, str] = field(default_factory=dict)
    links: LinkConfig = field(default_factory=LinkConfig)

    @classmethod
    def from_settings(cls, settings) -> "AdmissionConfig":
        return cls(
            currency=settings.PAYMENT_CURRENCY,
            location_id=settings.SQUARE_LOCATION_ID,
            location_ids=dict(settings.SQUARE_LOCATION_IDS),
            links=LinkConfig.from_settings(settings),
        )

    def location_for(self, venue: str) -> str:
        return self.location_ids.get(venue) or self.location_id


@dataclass
class AdmissionResult:
    booking_id: int
    reference_code: str
    guest_list_token: str
    payment_id: Optional[str]
    state: AdmissionState


def refund_idempotency_key(payment_id: str) -> str:
    """One refund per payment, however many times we try."""
    return str(uuid.uuid5(uuid.NAMESPACE_OID, f"refund:{payment_id}"))


class OccasionAdmissionService:
    """
    Runs one purchase attempt end to end.

    Collaborators are injected: a session factory (one short session per
    phase), the payment gateway and the notifier.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        gateway: PaymentGateway,
        notifier: Notifier,
        config: AdmissionConfig,
    ):
        self._session_factory = session_factory
        self._gateway = gateway
        self._notifier = notifier
        self._config = config

    async def admit(
        self,
        request: OccasionPurchaseRequest,
        site_origin: Optional[str] = None,
    ) -> AdmissionResult:
        attempt_id = uuid.uuid4().hex
        log = logger.bind(attempt_id=attempt_id, share_token=request.share_token)
        started = time.perf_counter()

        log.info("occasion_admission_state", state=AdmissionState.RECEIVED.value)
        # Shape and required fields were checked by the request schema
        log.info(
            "occasion_admission_state",
            state=AdmissionState.VALIDATED.value,
            tickets=request.ticket_quantity,
        )

        try:
            occasion, replayed = await self._check_capacity(log, request)
        except OccasionNotFound as e:
            self._finish(log, AdmissionState.REJECTED, started, reason=e.code.value)
            raise
        except CapacityExceeded as e:
            self._finish(
                log, AdmissionState.REJECTED, started,
                reason=e.code.value, remaining=e.remaining,
            )
            raise

        if replayed is not None:
            self._finish(log, AdmissionState.REPLAYED, started, booking_id=replayed.id)
            return AdmissionResult(
                booking_id=replayed.id,
                reference_code=replayed.reference_code,
                guest_list_token=replayed.guest_list_token,
                payment_id=replayed.payment_reference,
                state=AdmissionState.REPLAYED,
            )

        charge = await self._charge(log, occasion, request, started)
        booking = await self._persist(log, occasion, request, charge, started)

        tickets_sold.labels(venue=occasion.venue).inc(request.ticket_quantity)
        log.info(
            "occasion_admission_state",
            state=AdmissionState.BOOKING_PERSISTED.value,
            booking_id=booking.id,
            reference_code=booking.reference_code,
        )

        notice = TicketPurchaseNotice(
            customer_name=request.customer_name,
            customer_email=request.customer_email,
            customer_phone=request.customer_phone,
            reference_code=booking.reference_code,
            occasion_name=occasion.occasion_name or "",
            occasion_date=occasion.booking_date,
            venue=occasion.venue,
            ticket_quantity=request.ticket_quantity,
            ticket_price_cents=occasion.ticket_price_cents,
            total_amount_cents=booking.total_amount_cents,
            guest_list_url=guest_list_url(self._config.links, booking.guest_list_token, site_origin),
            organiser_name=occasion.customer_name,
        )
        notified = await notify_safely("ticket_purchased", self._notifier.ticket_purchased(notice))
        state = AdmissionState.NOTIFIED if notified else AdmissionState.NOTIFY_FAILED

        self._finish(log, state, started, booking_id=booking.id)
        log.info(
            "occasion_admitted",
            booking_id=booking.id,
            occasion_id=occasion.id,
            tickets=request.ticket_quantity,
            payment_id=charge.payment_id if charge else None,
        )
        return AdmissionResult(
            booking_id=booking.id,
            reference_code=booking.reference_code,
            guest_list_token=booking.guest_list_token,
            payment_id=charge.payment_id if charge else None,
            state=state,
        )

    async def _check_capacity(
        self, log, request: OccasionPurchaseRequest
    ) -> tuple[Booking, Optional[Booking]]:
        async with self._session_factory() as db:
            occasion = await get_occasion_by_share_token(db, request.share_token)
            if request.idempotency_key:
                existing = await find_replayed_booking(
                    db, occasion.id, idempotency_key=request.idempotency_key
                )
                if existing is not None:
                    return occasion, existing
            remaining = await remaining_capacity(db, occasion.id)

        if request.ticket_quantity > remaining:
            raise CapacityExceeded(remaining, request.ticket_quantity)

        log.info(
            "occasion_admission_state",
            state=AdmissionState.CAPACITY_CHECKED.value,
            occasion_id=occasion.id,
            remaining=remaining,
        )
        return occasion, None

    async def _charge(
        self, log, occasion: Booking, request: OccasionPurchaseRequest, started: float
    ) -> Optional[ChargeResult]:
        amount_cents = occasion.ticket_price_cents * request.ticket_quantity
        if amount_cents == 0:
            log.info("occasion_payment_not_required", occasion_id=occasion.id)
            return None

        charge_request = ChargeRequest(
            source_id=request.payment_token,
            amount_cents=amount_cents,
            currency=self._config.currency,
            idempotency_key=request.idempotency_key or str(uuid.uuid4()),
            location_id=self._config.location_for(occasion.venue),
            reference_id=f"occasion-{occasion.id}",
            note=f"{occasion.occasion_name or 'Occasion'} x{request.ticket_quantity}",
        )
        try:
            charge = await self._gateway.charge(charge_request)
        except PaymentOutcomeUnknown:
            self._finish(
                log, AdmissionState.PAYMENT_UNKNOWN, started,
                idempotency_key=charge_request.idempotency_key,
            )
            raise
        except PaymentFailed as e:
            log.warning("occasion_payment_declined", error=e.message)
            self._finish(log, AdmissionState.PAYMENT_FAILED, started)
            raise

        log.info(
            "occasion_admission_state",
            state=AdmissionState.PAYMENT_AUTHORIZED.value,
            payment_id=charge.payment_id,
            amount_cents=charge.amount_cents,
        )
        return charge

    async def _persist(
        self,
        log,
        occasion: Booking,
        request: OccasionPurchaseRequest,
        charge: Optional[ChargeResult],
        started: float,
    ) -> Booking:
        try:
            async with self._session_factory() as db:
                booking = await commit_ticket_booking(
                    db,
                    occasion,
                    customer_name=request.customer_name,
                    customer_email=request.customer_email,
                    customer_phone=request.customer_phone,
                    ticket_quantity=request.ticket_quantity,
                    payment_reference=charge.payment_id if charge else None,
                    payment_status="paid" if charge else "not_required",
                    idempotency_key=request.idempotency_key,
                )
                await db.commit()
                return booking
        except (CapacityExceeded, OccasionNotFound) as e:
            # Lost the race after the read-time check
            if charge is not None:
                await self._refund(log, occasion, charge, started, e)
            self._finish(log, AdmissionState.REJECTED, started, reason=e.code.value)
            raise
        except Exception as e:
            if charge is None:
                log.error("occasion_booking_persist_failed", error=repr(e))
                raise
            self._unreconciled(log, occasion, charge, started, e)
            raise PersistenceFailure(charge.payment_id) from e

    async def _refund(self, log, occasion: Booking, charge: ChargeResult, started: float, cause) -> None:
        try:
            refund_id = await self._gateway.refund(
                charge.payment_id,
                charge.amount_cents,
                self._config.currency,
                refund_idempotency_key(charge.payment_id),
            )
        except PaymentFailed as e:
            record_refund(False)
            self._unreconciled(log, occasion, charge, started, e)
            raise PersistenceFailure(charge.payment_id) from cause

        record_refund(True)
        log.warning(
            "occasion_payment_refunded",
            payment_id=charge.payment_id,
            refund_id=refund_id,
            reason=cause.code.value,
        )

    def _unreconciled(self, log, occasion: Booking, charge: ChargeResult, started: float, error) -> None:
        reconciliation_required.inc()
        log.critical(
            "occasion_charge_unreconciled",
            occasion_id=occasion.id,
            payment_id=charge.payment_id,
            amount_cents=charge.amount_cents,
            error=repr(error),
        )
        self._finish(log, AdmissionState.RECONCILIATION_REQUIRED, started)

    def _finish(self, log, state: AdmissionState, started: float, **fields) -> None:
        admission_latency.observe(time.perf_counter() - started)
        record_admission(state.value)
        log.info("occasion_admission_state", state=state.value, terminal=True, **fields)
