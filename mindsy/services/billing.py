"""Mirror Stripe subscription state onto user profiles."""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import stripe
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from mindsy.config import get_settings
from mindsy.db.models import Profile, SubscriptionTier, Usage

settings = get_settings()
logger = logging.getLogger(__name__)

SUPPORTED_WEBHOOK_EVENTS = [
    "checkout.session.completed",
    "customer.subscription.updated",
    "customer.subscription.deleted",
    "invoice.payment_succeeded",
    "invoice.payment_failed",
]

ACTIVE_SUBSCRIPTION_STATUSES = {"active", "trialing"}


class InvalidWebhook(ValueError):
    """Payload or signature could not be verified."""


@dataclass
class WebhookResult:
    """Outcome of handling one event."""

    success: bool
    event_type: str
    user_id: Optional[str] = None
    details: dict = field(default_factory=dict)
    error: Optional[str] = None


def tier_for_status(status: Optional[str]) -> SubscriptionTier:
    """Active and trialing subscriptions get the paid tier."""
    if status in ACTIVE_SUBSCRIPTION_STATUSES:
        return SubscriptionTier.STUDENT
    return SubscriptionTier.FREE


def _timestamp(value: Optional[int]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _field(obj: Any, key: str) -> Any:
    try:
        return obj[key]
    except (KeyError, TypeError):
        return None


class StripeGateway:
    """The few Stripe API calls the webhook needs."""

    def __init__(self, api_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        self.api_key = api_key or settings.stripe_secret_key
        self.webhook_secret = webhook_secret or settings.stripe_webhook_secret

    def construct_event(self, payload: bytes, signature: str) -> dict:
        """Verify the signature header and decode the event body."""
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError as e:
            raise InvalidWebhook("Invalid payload") from e
        except stripe.SignatureVerificationError as e:
            raise InvalidWebhook(f"Invalid signature: {e}") from e
        # Handlers read the event as a plain dict
        return json.loads(payload)

    def _retrieve_subscription(self, subscription_id: str) -> dict:
        subscription = stripe.Subscription.retrieve(subscription_id, api_key=self.api_key)
        return {
            "id": _field(subscription, "id"),
            "customer": _field(subscription, "customer"),
            "status": _field(subscription, "status"),
            "current_period_start": _field(subscription, "current_period_start"),
            "current_period_end": _field(subscription, "current_period_end"),
        }

    async def retrieve_subscription(self, subscription_id: str) -> dict:
        return await run_in_threadpool(self._retrieve_subscription, subscription_id)

    def _customer_email(self, customer_id: str) -> Optional[str]:
        customer = stripe.Customer.retrieve(customer_id, api_key=self.api_key)
        return _field(customer, "email")

    async def customer_email(self, customer_id: str) -> Optional[str]:
        return await run_in_threadpool(self._customer_email, customer_id)


class BillingService:
    """Applies webhook events to ``profiles`` and ``usage``."""

    async def _profile_by(self, db: AsyncSession, **criteria) -> Optional[Profile]:
        query = select(Profile)
        for column, value in criteria.items():
            query = query.where(getattr(Profile, column) == value)
        result = await db.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def _update_profile(self, db: AsyncSession, user_id: str, **values) -> Profile:
        profile = await db.get(Profile, user_id)
        if profile is None:
            profile = Profile(id=user_id)
            db.add(profile)
        for key, value in values.items():
            setattr(profile, key, value)
        profile.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return profile

    async def _reset_usage(self, db: AsyncSession, user_id: str):
        month_year = datetime.now(timezone.utc).strftime("%Y-%m")
        usage = await db.get(Usage, (user_id, month_year))
        if usage is None:
            db.add(Usage(user_id=user_id, month_year=month_year, summaries_count=0, total_minutes=0))
        else:
            usage.summaries_count = 0
            usage.total_minutes = 0
        await db.flush()

    async def _user_for_session(
        self, db: AsyncSession, session: dict, gateway: StripeGateway
    ) -> Optional[str]:
        if session.get("client_reference_id"):
            return session["client_reference_id"]

        customer_id = session.get("customer")
        if not customer_id:
            return None
        email = await gateway.customer_email(customer_id)
        if not email:
            logger.error(f"No email on Stripe customer {customer_id}")
            return None
        profile = await self._profile_by(db, email=email)
        return profile.id if profile else None

    async def checkout_completed(
        self, db: AsyncSession, session: dict, gateway: StripeGateway
    ) -> WebhookResult:
        event_type = "checkout.session.completed"
        customer_id = session.get("customer")
        subscription_id = session.get("subscription")
        if not customer_id:
            return WebhookResult(False, event_type, error="No customer ID in session")

        user_id = await self._user_for_session(db, session, gateway)
        if not user_id:
            return WebhookResult(False, event_type, error="Could not find user")

        period_end = None
        if subscription_id:
            try:
                subscription = await gateway.retrieve_subscription(subscription_id)
                period_end = _timestamp(subscription.get("current_period_end"))
            except stripe.StripeError as e:
                logger.warning(f"Could not retrieve subscription {subscription_id}: {e}")

        await self._update_profile(
            db,
            user_id,
            subscription_tier=SubscriptionTier.STUDENT,
            stripe_customer_id=customer_id,
            stripe_subscription_id=subscription_id,
            subscription_period_start=datetime.now(timezone.utc),
            subscription_period_end=period_end,
        )
        await self._reset_usage(db, user_id)

        return WebhookResult(
            True,
            event_type,
            user_id=user_id,
            details={
                "tier": SubscriptionTier.STUDENT.value,
                "customer_id": customer_id,
                "subscription_id": subscription_id,
                "usage_reset": True,
            },
        )

    async def subscription_updated(
        self,
        db: AsyncSession,
        subscription: dict,
        event_type: str = "customer.subscription.updated",
    ) -> WebhookResult:
        profile = await self._profile_by(db, stripe_customer_id=subscription.get("customer"))
        if profile is None:
            return WebhookResult(False, event_type, error="User not found")

        tier = tier_for_status(subscription.get("status"))
        await self._update_profile(
            db,
            profile.id,
            subscription_tier=tier,
            stripe_subscription_id=subscription.get("id"),
            subscription_period_start=_timestamp(subscription.get("current_period_start")),
            subscription_period_end=_timestamp(subscription.get("current_period_end")),
        )
        return WebhookResult(
            True,
            event_type,
            user_id=profile.id,
            details={
                "tier": tier.value,
                "status": subscription.get("status"),
                "subscription_id": subscription.get("id"),
            },
        )

    async def subscription_deleted(self, db: AsyncSession, subscription: dict) -> WebhookResult:
        event_type = "customer.subscription.deleted"
        profile = await self._profile_by(db, stripe_customer_id=subscription.get("customer"))
        if profile is None:
            return WebhookResult(False, event_type, error="User not found")

        cancelled_at = datetime.now(timezone.utc)
        await self._update_profile(
            db,
            profile.id,
            subscription_tier=SubscriptionTier.FREE,
            subscription_period_end=cancelled_at,
        )
        return WebhookResult(
            True,
            event_type,
            user_id=profile.id,
            details={"tier": SubscriptionTier.FREE.value, "cancelled_at": cancelled_at.isoformat()},
        )

    async def invoice_paid(
        self, db: AsyncSession, invoice: dict, gateway: StripeGateway
    ) -> WebhookResult:
        event_type = "invoice.payment_succeeded"
        subscription_id = invoice.get("subscription")
        if not subscription_id:
            return WebhookResult(
                True, event_type, details={"note": "Invoice not related to subscription"}
            )
        try:
            subscription = await gateway.retrieve_subscription(subscription_id)
        except stripe.StripeError as e:
            logger.error(f"Could not retrieve subscription {subscription_id}: {e}")
            return WebhookResult(False, event_type, error=str(e))
        return await self.subscription_updated(db, subscription, event_type=event_type)

    async def invoice_failed(self, invoice: dict) -> WebhookResult:
        if invoice.get("subscription"):
            logger.warning(f"Payment failed for subscription {invoice['subscription']}")
        return WebhookResult(
            True,
            "invoice.payment_failed",
            details={
                "subscription_id": invoice.get("subscription"),
                "amount": invoice.get("amount_due"),
                "note": "Payment failure logged - Stripe will retry automatically",
            },
        )

    async def handle_event(
        self, db: AsyncSession, event: dict, gateway: StripeGateway
    ) -> WebhookResult:
        """Dispatch a verified event to its handler."""
        event_type = event.get("type", "")
        obj = (event.get("data") or {}).get("object") or {}

        if event_type not in SUPPORTED_WEBHOOK_EVENTS:
            return WebhookResult(True, event_type, details={"note": "Event type not handled"})

        if event_type == "checkout.session.completed":
            result = await self.checkout_completed(db, obj, gateway)
        elif event_type == "customer.subscription.updated":
            result = await self.subscription_updated(db, obj)
        elif event_type == "customer.subscription.deleted":
            result = await self.subscription_deleted(db, obj)
        elif event_type == "invoice.payment_succeeded":
            result = await self.invoice_paid(db, obj, gateway)
        else:
            result = await self.invoice_failed(obj)

        if result.success:
            logger.info(f"Processed {event_type} (user={result.user_id})")
        else:
            logger.error(f"Failed to process {event_type}: {result.error}")
        return result


# Singleton instance
billing_service = BillingService()
