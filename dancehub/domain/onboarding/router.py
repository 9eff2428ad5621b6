"""Onboarding router - FastAPI endpoints for community lookup and Stripe Custom accounts"""

import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from ...auth import AuthUser, get_current_user
from ...database import get_db
from ...services.stripe_service import StripeConnectService, stripe_service
from .schemas import CreateAccountRequest, StepUpdateRequest
from .service import StripeAccountService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stripe/custom-account", tags=["Stripe Onboarding"])
community_router = APIRouter(prefix="/community", tags=["Communities"])


def get_stripe_service() -> StripeConnectService:
    """Dependency for the Stripe client; overridden in tests"""
    return stripe_service


def get_account_service(
    db: Session = Depends(get_db),
    stripe_client: StripeConnectService = Depends(get_stripe_service),
) -> StripeAccountService:
    """Dependency injection for StripeAccountService"""
    return StripeAccountService(db, stripe_client)


@community_router.get("/{slug}")
async def get_community(slug: str, service: StripeAccountService = Depends(get_account_service)):
    """Get a community's public record, including its Stripe account id"""
    community = service.get_community(slug)
    return {
        "id": community.id,
        "slug": community.slug,
        "name": community.name,
        "status": community.status,
        "stripe_account_id": community.stripe_account_id,
    }


@router.post("/create")
async def create_custom_account(
    data: CreateAccountRequest,
    current_user: AuthUser = Depends(get_current_user),
    service: StripeAccountService = Depends(get_account_service),
):
    """Create a Stripe Custom account for the community"""
    logger.info(f"🏦 Account creation requested for community {data.communityId} by {current_user.id}")
    return await service.create_account(data, current_user)


@router.get("/{account_id}/status")
async def get_account_status(
    account_id: str,
    current_user: AuthUser = Depends(get_current_user),
    service: StripeAccountService = Depends(get_account_service),
):
    """Get verification status and outstanding requirements"""
    return await service.get_status(account_id, current_user)


@router.put("/{account_id}/update")
async def update_account_step(
    account_id: str,
    data: StepUpdateRequest,
    current_user: AuthUser = Depends(get_current_user),
    service: StripeAccountService = Depends(get_account_service),
):
    """Save one onboarding step (business_info, personal_info or bank_account)"""
    return await service.update_step(account_id, data, current_user)


@router.post("/{account_id}/verify")
async def verify_account(
    account_id: str,
    current_user: AuthUser = Depends(get_current_user),
    service: StripeAccountService = Depends(get_account_service),
):
    """Final verification check before the wizard closes"""
    return await service.verify(account_id, current_user)


@router.post("/{account_id}/upload-document")
async def upload_document(
    account_id: str,
    file: UploadFile = File(...),
    documentType: str = Form(...),
    purpose: str = Form("identity_document"),
    current_user: AuthUser = Depends(get_current_user),
    service: StripeAccountService = Depends(get_account_service),
):
    """Upload an identity document and attach it to the account"""
    return await service.upload_document(account_id, file, documentType, purpose, current_user)
