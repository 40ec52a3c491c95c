"""
Composition layer: the only place that reads Settings and builds adapters.
Tests replace these through app.dependency_overrides.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from venue_booking.core.config import get_settings
from venue_booking.core.errors import ConfigurationMissing
from venue_booking.db.session import get_session_factory
from venue_booking.services.admission_service import AdmissionConfig, OccasionAdmissionService
from venue_booking.services.email_service import EmailDefaults, EmailNotifier, ResendEmailClient
from venue_booking.services.interfaces.notifier import Notifier
from venue_booking.services.interfaces.payment import PaymentGateway
from venue_booking.services.links import LinkConfig
from venue_booking.services.payment_service import SquarePaymentGateway


def get_link_config() -> LinkConfig:
    return LinkConfig.from_settings(get_settings())


def get_email_defaults() -> EmailDefaults:
    return EmailDefaults.from_settings(get_settings())


def get_payment_gateway() -> PaymentGateway:
    settings = get_settings()
    if not settings.payments_configured:
        raise ConfigurationMissing("Square configuration missing")
    return SquarePaymentGateway(
        access_token=settings.SQUARE_ACCESS_TOKEN,
        base_url=settings.SQUARE_API_BASE_URL,
        api_version=settings.SQUARE_API_VERSION,
        timeout=settings.PAYMENT_TIMEOUT_SECONDS,
    )


def get_email_client() -> ResendEmailClient:
    settings = get_settings()
    return ResendEmailClient(
        api_key=settings.RESEND_API_KEY,
        api_url=settings.RESEND_API_URL,
        timeout=settings.EMAIL_TIMEOUT_SECONDS,
    )


def get_notifier(
    client: ResendEmailClient = Depends(get_email_client),
    defaults: EmailDefaults = Depends(get_email_defaults),
) -> Notifier:
    return EmailNotifier(client, defaults)


def get_admission_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: Notifier = Depends(get_notifier),
) -> OccasionAdmissionService:
    return OccasionAdmissionService(
        session_factory=session_factory,
        gateway=gateway,
        notifier=notifier,
        config=AdmissionConfig.from_settings(get_settings()),
    )
