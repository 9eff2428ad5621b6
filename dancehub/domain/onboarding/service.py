"""Onboarding service - Stripe Custom account provisioning, step updates and verification"""

import logging
from typing import Any, Optional

import stripe
from fastapi import HTTPException, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...auth import AuthUser
from ...config import MAX_DOCUMENT_SIZE_BYTES
from ...models import Community
from ...services.stripe_service import StripeConnectService
from .gateway import ACCOUNT_EXISTS_ERROR
from .repository import CommunityRepository
from .schemas import CreateAccountRequest, StepUpdateRequest

logger = logging.getLogger(__name__)

ALLOWED_DOCUMENT_TYPES = ("image/jpeg", "image/jpg", "image/png", "application/pdf")

REQUIREMENT_MESSAGES = {
    "individual.verification.document": "Government-issued photo ID required",
    "individual.verification.additional_document": "Additional identity document required",
    "company.verification.document": "Business verification document required",
    "company.license": "Business license required",
    "company.tax_id": "Business tax ID required",
    "company.address": "Business address verification required",
    "individual.address": "Personal address verification required",
    "individual.dob": "Date of birth required",
    "individual.email": "Email verification required",
    "individual.first_name": "First name required",
    "individual.last_name": "Last name required",
    "individual.phone": "Phone number required",
    "individual.ssn_last_4": "Last 4 digits of SSN required",
    "company.name": "Company name required",
    "company.phone": "Company phone number required",
    "company.directors_provided": "Company directors information required",
    "company.executives_provided": "Company executives information required",
    "company.owners_provided": "Company owners information required",
    "external_account": "Bank account information required",
    "individual.id_number": "ID number required",
    "company.tax_id_registrar": "Tax ID registrar required",
}


def requirement_category(code: str) -> str:
    if code.startswith("individual."):
        return "personal"
    if code.startswith("company."):
        return "business"
    if "external_account" in code:
        return "banking"
    return "other"


def describe_requirements(codes: Optional[list]) -> list[dict]:
    return [
        {"code": code, "message": REQUIREMENT_MESSAGES.get(code, code), "category": requirement_category(code)}
        for code in codes or []
    ]


def is_fully_verified(account: Any) -> bool:
    requirements = account.get("requirements") or {}
    return bool(
        account.get("charges_enabled")
        and account.get("payouts_enabled")
        and account.get("details_submitted")
        and not requirements.get("currently_due")
        and not requirements.get("past_due")
    )


def suggested_next_step(account: Any) -> str:
    """The wizard step that should be worked on next, judged from what Stripe still lacks"""
    if not account.get("business_type"):
        return "business_info"

    individual = account.get("individual") or {}
    external_accounts = (account.get("external_accounts") or {}).get("data") or []
    currently_due = (account.get("requirements") or {}).get("currently_due") or []

    if not individual.get("first_name"):
        return "personal_info"
    if not external_accounts:
        return "bank_account"
    if any("verification.document" in code for code in currently_due):
        return "documents"
    if not is_fully_verified(account):
        return "verification"
    return "complete"


def stripe_http_error(e: stripe.StripeError, fallback: str) -> HTTPException:
    status_code = getattr(e, "http_status", None) or 500
    return HTTPException(status_code=status_code, detail=e.user_message or fallback)


class StripeAccountService:
    """Service layer for Stripe Custom account onboarding"""

    def __init__(self, db: Session, stripe_client: StripeConnectService):
        self.db = db
        self.stripe = stripe_client
        self.repo = CommunityRepository()

    # ============================================================================
    # COMMUNITY
    # ============================================================================

    def get_community(self, slug: str) -> Community:
        community = self.repo.get_by_slug(self.db, slug)
        if not community:
            raise HTTPException(status_code=404, detail="Community not found")
        return community

    # ============================================================================
    # ACCOUNT LIFECYCLE
    # ============================================================================

    async def create_account(self, data: CreateAccountRequest, user: AuthUser) -> dict:
        """Create a Custom account for a community the user owns"""
        community = self.repo.get_owned(self.db, data.communityId, user.id)
        if not community:
            raise HTTPException(status_code=404, detail="Community not found or unauthorized")

        if community.stripe_account_id:
            try:
                await self.stripe.retrieve_account(community.stripe_account_id)
            except stripe.StripeError as e:
                logger.warning(
                    f"⚠️ Stored account {community.stripe_account_id} no longer resolves, clearing it: {e}"
                )
                self.repo.set_stripe_account(self.db, community, None)
            else:
                raise HTTPException(status_code=400, detail=ACCOUNT_EXISTS_ERROR)

        try:
            account = await self.stripe.create_custom_account(
                community.id, data.country, data.businessType
            )
        except stripe.StripeError as e:
            logger.error(f"❌ Stripe account creation failed for {community.id}: {e}")
            raise stripe_http_error(e, "Failed to create Stripe account") from e

        try:
            self.repo.set_stripe_account(self.db, community, account["id"], onboarding_type="custom")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Could not store account {account['id']}, deleting it from Stripe: {e}")
            try:
                await self.stripe.delete_account(account["id"])
            except stripe.StripeError as delete_error:
                logger.error(f"❌ Failed to delete orphaned account {account['id']}: {delete_error}")
            raise HTTPException(status_code=500, detail="Failed to create Stripe account") from e

        return {
            "accountId": account["id"],
            "country": account.get("country") or data.country,
            "businessType": account.get("business_type") or data.businessType,
            "currentStep": 1,
            "message": "Stripe account created successfully. Ready for custom onboarding.",
        }

    async def _get_owned_account(self, account_id: str, user: AuthUser) -> Any:
        """Retrieve the account and check it belongs to a community the user owns"""
        try:
            account = await self.stripe.retrieve_account(account_id)
        except stripe.StripeError as e:
            logger.warning(f"⚠️ Stripe account {account_id} not retrievable: {e}")
            raise HTTPException(status_code=404, detail="Stripe account not found") from e

        community_id = (account.get("metadata") or {}).get("community_id")
        if not community_id:
            raise HTTPException(status_code=400, detail="Account not linked to community")

        community = self.repo.get_by_id(self.db, community_id)
        if not community or community.created_by != user.id:
            raise HTTPException(status_code=403, detail="Not authorized to manage this account")
        return account

    async def get_status(self, account_id: str, user: AuthUser) -> dict:
        account = await self._get_owned_account(account_id, user)
        requirements = account.get("requirements") or {}
        fully_verified = is_fully_verified(account)
        needs_attention = bool(requirements.get("currently_due") or requirements.get("past_due"))

        bank_accounts = [
            {
                "id": external["id"],
                "last4": external.get("last4"),
                "bank_name": external.get("bank_name"),
                "currency": external.get("currency"),
                "default_for_currency": external.get("default_for_currency"),
            }
            for external in (account.get("external_accounts") or {}).get("data") or []
            if external.get("object") == "bank_account"
        ]

        return {
            "accountId": account["id"],
            "chargesEnabled": bool(account.get("charges_enabled")),
            "payoutsEnabled": bool(account.get("payouts_enabled")),
            "detailsSubmitted": bool(account.get("details_submitted")),
            "businessType": account.get("business_type"),
            "country": account.get("country"),
            "defaultCurrency": account.get("default_currency"),
            "isFullyVerified": fully_verified,
            "needsAttention": needs_attention,
            "requiresVerification": not fully_verified,
            "suggestedNextStep": suggested_next_step(account),
            "requirements": {
                "currentlyDue": describe_requirements(requirements.get("currently_due")),
                "pastDue": describe_requirements(requirements.get("past_due")),
                "eventuallyDue": describe_requirements(requirements.get("eventually_due")),
                "pendingVerification": describe_requirements(requirements.get("pending_verification")),
                "currentDeadline": requirements.get("current_deadline"),
                "disabledReason": requirements.get("disabled_reason"),
            },
            "bankAccounts": bank_accounts,
        }

    async def update_step(self, account_id: str, data: StepUpdateRequest, user: AuthUser) -> dict:
        """Push one wizard step to Stripe"""
        await self._get_owned_account(account_id, user)
        payload = data.payload or {}

        if data.step == "business_info":
            params = self._business_info_params(payload)
        elif data.step == "personal_info":
            params = self._personal_info_params(payload)
        elif data.step == "bank_account":
            await self._add_bank_account(account_id, payload)
            params = {}
        else:
            raise HTTPException(status_code=400, detail="Invalid step provided")

        if params:
            try:
                await self.stripe.update_account(account_id, **params)
            except stripe.StripeError as e:
                logger.error(f"❌ Updating {data.step} on {account_id} failed: {e}")
                raise HTTPException(
                    status_code=400, detail=f"Failed to update account: {e.user_message or str(e)}"
                ) from e

        logger.info(f"✅ {data.step} saved for account {account_id}")
        account = await self.stripe.retrieve_account(account_id)
        requirements = account.get("requirements") or {}
        return {
            "success": True,
            "accountId": account_id,
            "step": data.step,
            "requirements": {
                "currentlyDue": requirements.get("currently_due") or [],
                "pastDue": requirements.get("past_due") or [],
                "eventuallyDue": requirements.get("eventually_due") or [],
            },
            "chargesEnabled": bool(account.get("charges_enabled")),
            "payoutsEnabled": bool(account.get("payouts_enabled")),
            "detailsSubmitted": bool(account.get("details_submitted")),
            "message": f"{data.step} updated successfully",
        }

    @staticmethod
    def _business_info_params(payload: dict) -> dict:
        business_type = payload.get("type") or "individual"
        entity_key = "individual" if business_type == "individual" else "company"
        entity: dict[str, Any] = {}

        name = (payload.get("name") or "").strip()
        if name:
            if business_type == "individual":
                first_name, _, last_name = name.partition(" ")
                entity["first_name"] = first_name
                if last_name:
                    entity["last_name"] = last_name
            else:
                entity["name"] = name
        if payload.get("address"):
            entity["address"] = payload["address"]
        if payload.get("phone"):
            entity["phone"] = payload["phone"]

        params: dict[str, Any] = {"business_type": business_type}
        business_profile = {}
        if payload.get("website"):
            business_profile["url"] = payload["website"]
        if payload.get("mcc"):
            business_profile["mcc"] = payload["mcc"]
        if business_profile:
            params["business_profile"] = business_profile
        if entity:
            params[entity_key] = entity
        return params

    @staticmethod
    def _personal_info_params(payload: dict) -> dict:
        fields = ("first_name", "last_name", "email", "phone", "dob", "address", "ssn_last_4")
        individual = {field: payload[field] for field in fields if payload.get(field)}
        return {"individual": individual} if individual else {}

    async def _add_bank_account(self, account_id: str, payload: dict) -> None:
        holder = {
            "object": "bank_account",
            "account_holder_name": payload.get("account_holder_name"),
            "account_holder_type": payload.get("account_holder_type") or "individual",
        }

        if payload.get("routing_number") and payload.get("account_number"):
            external_account = {
                **holder,
                "country": payload.get("country") or "US",
                "currency": payload.get("currency") or "usd",
                "routing_number": payload["routing_number"],
                "account_number": payload["account_number"],
            }
        elif payload.get("iban") or payload.get("account_number"):
            # IBAN goes in account_number; no routing number outside the US
            external_account = {
                **holder,
                "country": payload.get("country"),
                "currency": payload.get("currency"),
                "account_number": payload.get("iban") or payload["account_number"],
            }
        else:
            raise HTTPException(
                status_code=400,
                detail="Invalid bank account information. Please provide either routing_number + "
                "account_number (US) or IBAN (international).",
            )

        try:
            await self.stripe.create_external_account(account_id, external_account)
        except stripe.StripeError as e:
            logger.error(f"❌ Adding bank account to {account_id} failed: {e}")
            raise HTTPException(
                status_code=400, detail=f"Failed to create bank account: {e.user_message or str(e)}"
            ) from e

    async def verify(self, account_id: str, user: AuthUser) -> dict:
        """Final verification: fails while Stripe still has currently-due or past-due requirements"""
        account = await self._get_owned_account(account_id, user)
        requirements = account.get("requirements") or {}
        outstanding = (requirements.get("currently_due") or []) + (requirements.get("past_due") or [])

        if outstanding:
            missing = ", ".join(REQUIREMENT_MESSAGES.get(code, code) for code in outstanding)
            logger.info(f"ℹ️ Account {account_id} still needs: {missing}")
            raise HTTPException(
                status_code=400,
                detail=f"Account verification incomplete. Missing: {missing}",
            )

        if is_fully_verified(account):
            return {
                "success": True,
                "verified": True,
                "accountId": account_id,
                "message": "Account is fully verified and ready to accept payments!",
            }

        return {
            "success": True,
            "verified": False,
            "accountId": account_id,
            "status": "pending_review",
            "message": "All requirements completed. Account is under review by Stripe.",
        }

    async def upload_document(
        self, account_id: str, file: UploadFile, document_type: str, purpose: str, user: AuthUser
    ) -> dict:
        if not document_type:
            raise HTTPException(status_code=400, detail="Document type is required")
        if file.content_type not in ALLOWED_DOCUMENT_TYPES:
            raise HTTPException(status_code=400, detail="Invalid file type. Allowed types: JPEG, PNG, PDF")

        content = await file.read()
        if len(content) > MAX_DOCUMENT_SIZE_BYTES:
            raise HTTPException(status_code=400, detail="File size too large. Maximum size is 10MB")

        await self._get_owned_account(account_id, user)

        try:
            stripe_file = await self.stripe.upload_identity_document(
                account_id, file.filename or "document", content, document_type, purpose
            )
        except stripe.StripeError as e:
            logger.error(f"❌ Document upload for {account_id} failed: {e}")
            raise stripe_http_error(e, "Failed to upload document") from e

        return {"fileId": stripe_file["id"], "url": stripe_file.get("url")}
