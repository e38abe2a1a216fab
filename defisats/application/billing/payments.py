"""
Use cases: Subscription payments over Lightning.

Input: CreateInvoiceCommand / user id and payment id
Output: Payment entities, ProviderStatus list
Side effects: Creates invoices at a provider, stores payments, upgrades
    the user's plan once an invoice settles, sends a notification.
Failure cases: FreePlanNotPurchasableError (400), PaymentNotFoundError (404),
    PaymentAlreadyPaidError (409), NoPaymentProviderError (502).
"""

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from defisats.application.billing.dtos import CreateInvoiceCommand, ProviderStatus
from defisats.domain.accounts.plans import PLANS, Plan, get_plan
from defisats.domain.accounts.ports import UserRepository
from defisats.domain.billing.entities import Payment, PaymentStatus
from defisats.domain.billing.errors import (
    FreePlanNotPurchasableError,
    NoPaymentProviderError,
    PaymentAlreadyPaidError,
    PaymentNotFoundError,
    PaymentProviderError,
)
from defisats.domain.billing.ports import PaymentProvider, PaymentRepository
from defisats.domain.notifications.dispatcher import NotificationDispatcher
from defisats.domain.notifications.entities import NotificationType

logger = logging.getLogger(__name__)


def _owned_payment(payment_repo: PaymentRepository, user_id: UUID, payment_id: UUID) -> Payment:
    payment = payment_repo.get_by_id(payment_id)
    if payment is None or payment.user_id != user_id:
        raise PaymentNotFoundError(str(payment_id))
    return payment


class CreateInvoiceUseCase:
    """Issues a Lightning invoice for a paid plan, trying providers in order."""

    def __init__(
        self,
        payment_repo: PaymentRepository,
        providers: list[PaymentProvider],
        expiry_seconds: int = 3600,
    ) -> None:
        self._payment_repo = payment_repo
        self._providers = providers
        self._expiry_seconds = expiry_seconds

    def execute(self, command: CreateInvoiceCommand) -> Payment:
        plan = get_plan(command.plan_type)
        if not plan.is_paid:
            raise FreePlanNotPurchasableError(plan.plan_type.value)

        description = f"DefiSats Hub {plan.plan_type.value} plan"
        for provider in self._providers:
            try:
                invoice = provider.create_invoice(plan.price_sats, description, self._expiry_seconds)
            except PaymentProviderError as exc:
                logger.warning("Provider %s failed to create invoice: %s", provider.name, exc.reason)
                continue

            payment = self._payment_repo.add(Payment(
                id=uuid4(),
                user_id=command.user_id,
                plan_type=plan.plan_type,
                amount_sats=invoice.amount_sats,
                status=PaymentStatus.PENDING,
                provider=invoice.provider,
                payment_hash=invoice.payment_hash,
                payment_request=invoice.payment_request,
                description=description,
                expires_at=invoice.expires_at,
                created_at=datetime.now(timezone.utc),
            ))
            logger.info("Invoice %s created via %s for user %s", payment.id, provider.name, command.user_id)
            return payment

        raise NoPaymentProviderError()


class CheckPaymentUseCase:
    """Polls the issuing provider and settles or expires the payment."""

    def __init__(
        self,
        payment_repo: PaymentRepository,
        user_repo: UserRepository,
        providers: list[PaymentProvider],
        dispatcher: Optional[NotificationDispatcher] = None,
    ) -> None:
        self._payment_repo = payment_repo
        self._user_repo = user_repo
        self._providers = {p.name: p for p in providers}
        self._dispatcher = dispatcher

    def execute(self, user_id: UUID, payment_id: UUID) -> Payment:
        payment = _owned_payment(self._payment_repo, user_id, payment_id)
        if payment.status is not PaymentStatus.PENDING:
            return payment

        now = datetime.now(timezone.utc)
        expired = payment.is_expired(now)
        provider = self._providers.get(payment.provider)

        paid = False
        if provider is None:
            logger.warning("Provider %s of payment %s is no longer configured", payment.provider, payment.id)
        else:
            try:
                paid = provider.is_paid(payment.payment_hash)
            except PaymentProviderError:
                if not expired:
                    raise
                logger.info("Provider lookup failed for expired payment %s", payment.id)

        if paid:
            return self._settle(payment, now)
        if expired:
            logger.info("Payment %s expired", payment.id)
            return self._payment_repo.update(replace(payment, status=PaymentStatus.EXPIRED))
        return payment

    def _settle(self, payment: Payment, now: datetime) -> Payment:
        payment = self._payment_repo.update(replace(payment, status=PaymentStatus.PAID, paid_at=now))
        user = self._user_repo.get_by_id(payment.user_id)
        if user is not None:
            self._user_repo.update(replace(user, plan_type=payment.plan_type))
        logger.info("Payment %s settled; user %s upgraded to %s", payment.id, payment.user_id, payment.plan_type.value)

        if self._dispatcher is not None:
            self._dispatcher.dispatch(
                payment.user_id,
                NotificationType.PAYMENT,
                "Payment received",
                f"Your {payment.plan_type.value} plan is now active.",
                {"payment_id": str(payment.id), "amount_sats": payment.amount_sats},
            )
        return payment


class ListPaymentsUseCase:
    def __init__(self, payment_repo: PaymentRepository) -> None:
        self._payment_repo = payment_repo

    def execute(self, user_id: UUID) -> list[Payment]:
        return self._payment_repo.list_for_user(user_id)


class RetryPaymentUseCase:
    """Replaces an unpaid invoice with a fresh one for the same plan."""

    def __init__(self, payment_repo: PaymentRepository, create_invoice: CreateInvoiceUseCase) -> None:
        self._payment_repo = payment_repo
        self._create_invoice = create_invoice

    def execute(self, user_id: UUID, payment_id: UUID) -> Payment:
        payment = _owned_payment(self._payment_repo, user_id, payment_id)
        if payment.status is PaymentStatus.PAID:
            raise PaymentAlreadyPaidError(str(payment.id))
        if payment.status is PaymentStatus.PENDING:
            self._payment_repo.update(replace(payment, status=PaymentStatus.FAILED))
        return self._create_invoice.execute(CreateInvoiceCommand(user_id=user_id, plan_type=payment.plan_type))


class ProvidersStatusUseCase:
    def __init__(self, providers: list[PaymentProvider]) -> None:
        self._providers = providers

    def execute(self) -> list[ProviderStatus]:
        return [ProviderStatus(name=p.name, available=p.is_available()) for p in self._providers]


class PricingUseCase:
    """Lists every plan with its price and included automations."""

    def execute(self) -> list[Plan]:
        return list(PLANS.values())
