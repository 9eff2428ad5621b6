"""
Collaborators the onboarding wizard depends on, and the step payloads it sends them.

`DanceHubApiClient` implements `OnboardingGateway` over HTTP; tests use in-memory fakes.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

from ...shared.validators import normalize_iban
from .schemas import (
    AccountStatus,
    BusinessInfo,
    CommunityInfo,
    InternationalBankAccount,
    OnboardingData,
    OnboardingStep,
    PersonalInfo,
    USBankAccount,
)

ACCOUNT_EXISTS_ERROR = "Community already has a Stripe account"


@dataclass(frozen=True)
class UploadFile:
    """A file picked by the user for the documents step"""

    file_name: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


class OnboardingGateway(Protocol):
    async def create_payment_account(self, community_id: str, country: str, business_type: str) -> str:
        """Returns the new account id; raises GatewayError carrying ACCOUNT_EXISTS_ERROR on a duplicate"""
        ...

    async def get_community(self, community_slug: str) -> CommunityInfo: ...

    async def get_account_status(self, account_id: str, timeout: Optional[float] = None) -> AccountStatus: ...

    async def update_account_step(
        self, account_id: str, step: str, payload: dict, current_step: Optional[int] = None
    ) -> None: ...

    async def verify_account(self, account_id: str) -> None: ...

    async def upload_document(self, account_id: str, file: UploadFile, document_type: str, purpose: str) -> str:
        """Returns the url of the stored document"""
        ...


# ============================================================================
# STEP PAYLOADS
# ============================================================================


def business_info_payload(info: BusinessInfo) -> dict:
    return {
        "type": info.business_type,
        "name": info.legal_business_name,
        "address": info.business_address.to_stripe(),
        "phone": info.business_phone,
        "website": info.business_website or "",
        "mcc": info.mcc_code,
    }


def personal_info_payload(info: PersonalInfo) -> dict:
    return {
        "first_name": info.first_name,
        "last_name": info.last_name,
        "email": info.email,
        "phone": info.phone,
        "dob": {
            "day": info.date_of_birth.day,
            "month": info.date_of_birth.month,
            "year": info.date_of_birth.year,
        },
        "address": info.address.to_stripe(),
        "ssn_last_4": info.ssn_last_4,
    }


def bank_account_payload(account) -> dict:
    if isinstance(account, InternationalBankAccount):
        # The IBAN travels as account_number, without a routing number
        return {
            "account_holder_name": account.account_holder_name,
            "account_holder_type": "individual",
            "account_number": normalize_iban(account.iban),
            "country": account.country,
            "currency": account.currency,
        }
    if isinstance(account, USBankAccount):
        return {
            "account_holder_name": account.account_holder_name,
            "account_holder_type": "individual",
            "account_number": account.account_number,
            "routing_number": account.routing_number,
            "account_type": account.account_type,
            "country": account.country,
            "currency": account.currency,
        }
    raise TypeError(f"Unsupported bank account: {type(account).__name__}")


def step_payload(step: int, data: OnboardingData) -> dict:
    if step == OnboardingStep.BUSINESS_INFO:
        return business_info_payload(data.business_info)
    if step == OnboardingStep.PERSONAL_INFO:
        return personal_info_payload(data.personal_info)
    if step == OnboardingStep.BANK_ACCOUNT:
        return bank_account_payload(data.bank_account)
    raise ValueError(f"Step {step} is not saved to the payment account")
