"""Stripe Connect service - Custom accounts and lesson payments on connected accounts"""

import io
import logging
from typing import Any, Optional

import stripe
from fastapi import HTTPException
from fastapi.concurrency import run_in_threadpool

from ..config import STRIPE_API_VERSION, STRIPE_SECRET_KEY

logger = logging.getLogger(__name__)

# Document type -> where the uploaded file is attached on the individual
DOCUMENT_ATTACHMENTS = {
    "identity_document": ("document", "front"),
    "identity_document_back": ("document", "back"),
    "additional_document": ("additional_document", "front"),
    "additional_document_back": ("additional_document", "back"),
}


class StripeConnectService:
    """Service for Stripe Connect API operations"""

    def __init__(self, api_key: Optional[str] = STRIPE_SECRET_KEY, api_version: Optional[str] = STRIPE_API_VERSION):
        self.api_key = api_key
        self.api_version = api_version

        if not self.api_key:
            logger.warning("STRIPE_SECRET_KEY not set; payment endpoints will fail until configured")
        else:
            logger.info("Stripe Connect client initialized")

    def is_available(self) -> bool:
        """Check if Stripe is configured"""
        return bool(self.api_key)

    async def _call(self, method, *args, **kwargs) -> Any:
        """Run a blocking SDK call off the event loop"""
        if not self.is_available():
            raise HTTPException(status_code=503, detail="Payment processing is not configured")

        kwargs["api_key"] = self.api_key
        if self.api_version:
            kwargs["stripe_version"] = self.api_version
        return await run_in_threadpool(method, *args, **kwargs)

    # ============================================================================
    # ACCOUNTS
    # ============================================================================

    async def create_custom_account(self, community_id: str, country: str, business_type: str) -> Any:
        account = await self._call(
            stripe.Account.create,
            type="custom",
            country=country,
            business_type=business_type,
            capabilities={
                "card_payments": {"requested": True},
                "transfers": {"requested": True},
            },
            tos_acceptance={"service_agreement": "full"},
            metadata={"community_id": community_id},
        )
        logger.info(f"✅ Created Stripe custom account {account['id']} for community {community_id}")
        return account

    async def retrieve_account(self, account_id: str) -> Any:
        return await self._call(stripe.Account.retrieve, account_id)

    async def delete_account(self, account_id: str) -> None:
        await self._call(stripe.Account.delete, account_id)
        logger.info(f"🗑️ Deleted Stripe account {account_id}")

    async def update_account(self, account_id: str, **params) -> Any:
        return await self._call(stripe.Account.modify, account_id, **params)

    async def create_external_account(self, account_id: str, external_account: dict) -> Any:
        return await self._call(
            stripe.Account.create_external_account, account_id, external_account=external_account
        )

    async def upload_identity_document(
        self, account_id: str, file_name: str, content: bytes, document_type: str, purpose: str
    ) -> Any:
        """Upload a file with Stripe Files and attach it to the individual's verification"""
        handle = io.BytesIO(content)
        handle.name = file_name
        stripe_file = await self._call(stripe.File.create, purpose=purpose, file=handle)

        attachment = DOCUMENT_ATTACHMENTS.get(document_type)
        if attachment:
            field, side = attachment
            await self.update_account(
                account_id, individual={"verification": {field: {side: stripe_file["id"]}}}
            )
        logger.info(f"📎 Uploaded {document_type} ({stripe_file['id']}) for account {account_id}")
        return stripe_file

    # ============================================================================
    # PAYMENT INTENTS
    # ============================================================================

    async def create_payment_intent(
        self,
        connected_account_id: str,
        amount_cents: int,
        currency: str,
        metadata: dict,
        description: Optional[str] = None,
        receipt_email: Optional[str] = None,
    ) -> Any:
        params: dict[str, Any] = {
            "amount": amount_cents,
            "currency": currency,
            "metadata": metadata,
            "automatic_payment_methods": {"enabled": True},
            "stripe_account": connected_account_id,
        }
        if description:
            params["description"] = description
        if receipt_email:
            params["receipt_email"] = receipt_email
        return await self._call(stripe.PaymentIntent.create, **params)

    async def cancel_payment_intent(self, connected_account_id: str, payment_intent_id: str) -> Any:
        return await self._call(
            stripe.PaymentIntent.cancel, payment_intent_id, stripe_account=connected_account_id
        )

    async def confirm_payment_intent(
        self, connected_account_id: str, payment_intent_id: str, payment_method: Optional[str] = None
    ) -> Any:
        params: dict[str, Any] = {"stripe_account": connected_account_id}
        if payment_method:
            params["payment_method"] = payment_method
        return await self._call(stripe.PaymentIntent.confirm, payment_intent_id, **params)


def payment_intent_id_from_secret(client_secret: str) -> str:
    """`pi_123_secret_abc` -> `pi_123`"""
    intent_id, separator, _ = client_secret.partition("_secret_")
    if not separator or not intent_id.startswith("pi_"):
        raise ValueError("Invalid payment client secret")
    return intent_id


class StripePaymentConfirmer:
    """
    confirm-payment for server-side callers: confirms the intent behind a client
    secret on the connected account with a saved payment method.
    """

    def __init__(self, service: "StripeConnectService", payment_method: Optional[str] = None):
        self.service = service
        self.payment_method = payment_method

    async def confirm(self, client_secret: str, stripe_account_id: str) -> bool:
        try:
            intent_id = payment_intent_id_from_secret(client_secret)
            intent = await self.service.confirm_payment_intent(
                stripe_account_id, intent_id, payment_method=self.payment_method
            )
        except (ValueError, stripe.StripeError) as e:
            logger.error(f"❌ Payment confirmation failed: {e}")
            return False

        status = intent.get("status")
        logger.info(f"💳 Payment intent {intent_id} is {status}")
        return status in ("succeeded", "processing", "requires_capture")


# Global instance
stripe_service = StripeConnectService()
