"""Onboarding domain schemas - Pydantic models for the wizard aggregate and the account API"""

from enum import IntEnum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class OnboardingStep(IntEnum):
    BUSINESS_INFO = 1
    PERSONAL_INFO = 2
    BANK_ACCOUNT = 3
    DOCUMENTS = 4
    VERIFICATION = 5


FINAL_STEP = OnboardingStep.VERIFICATION

STEP_CATALOGUE = {
    OnboardingStep.BUSINESS_INFO: ("Business Information", "Tell us about your dance community"),
    OnboardingStep.PERSONAL_INFO: ("Personal Information", "Your personal details for verification"),
    OnboardingStep.BANK_ACCOUNT: ("Bank Account", "Where you'll receive payments"),
    OnboardingStep.DOCUMENTS: ("Document Upload", "Verify your identity"),
    OnboardingStep.VERIFICATION: ("Verification", "Final review and verification"),
}

# Names used by the update-account-step call
STEP_NAMES = {
    OnboardingStep.BUSINESS_INFO: "business_info",
    OnboardingStep.PERSONAL_INFO: "personal_info",
    OnboardingStep.BANK_ACCOUNT: "bank_account",
}


class WizardModel(BaseModel):
    """camelCase on the wire, snake_case in Python, immutable once built"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Address(WizardModel):
    line1: str = ""
    line2: Optional[str] = None
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = "US"

    def to_stripe(self) -> dict:
        return {
            "line1": self.line1,
            "line2": self.line2 or "",
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
        }


class BusinessInfo(WizardModel):
    business_type: Literal["individual", "company"] = "individual"
    legal_business_name: str = ""
    business_address: Address = Field(default_factory=Address)
    business_phone: str = ""
    business_website: Optional[str] = None
    mcc_code: str = "8299"  # Educational services


class DateOfBirth(WizardModel):
    day: int = 1
    month: int = 1
    year: int = 1990


class PersonalInfo(WizardModel):
    first_name: str = ""
    last_name: str = ""
    date_of_birth: DateOfBirth = Field(default_factory=DateOfBirth)
    address: Address = Field(default_factory=Address)
    phone: str = ""
    email: str = ""
    ssn_last_4: str = Field(default="", alias="ssnLast4")


class USBankAccount(WizardModel):
    kind: Literal["us"] = "us"
    account_number: str = ""
    routing_number: str = ""
    account_holder_name: str = ""
    account_type: Optional[Literal["checking", "savings"]] = "checking"
    country: str = "US"
    currency: Literal["usd"] = "usd"


class InternationalBankAccount(WizardModel):
    kind: Literal["international"] = "international"
    iban: str = ""
    account_holder_name: str = ""
    country: str = ""
    currency: str = "eur"


BankAccount = Annotated[Union[USBankAccount, InternationalBankAccount], Field(discriminator="kind")]


def empty_bank_account_for(country: str) -> Union[USBankAccount, InternationalBankAccount]:
    """The bank account shape is chosen by the account holder's country"""
    if (country or "US").upper() == "US":
        return USBankAccount()
    return InternationalBankAccount(country=country.upper())


class DocumentInfo(WizardModel):
    type: str
    purpose: str
    file_name: Optional[str] = None
    uploaded: bool = False
    url: Optional[str] = None


class OnboardingData(WizardModel):
    account_id: Optional[str] = None
    business_info: BusinessInfo = Field(default_factory=BusinessInfo)
    personal_info: PersonalInfo = Field(default_factory=PersonalInfo)
    bank_account: BankAccount = Field(default_factory=USBankAccount)
    documents: list[DocumentInfo] = Field(default_factory=list)


class Requirement(BaseModel):
    code: str
    message: str
    category: str = "other"


def _coerce_requirement(value: Any) -> Any:
    # Older payloads list bare requirement codes
    if isinstance(value, str):
        return {
            "code": value,
            "message": value.replace("_", " ").replace(".", " ").title(),
            "category": "other",
        }
    return value


class AccountRequirements(WizardModel):
    currently_due: list[Requirement] = Field(default_factory=list)
    past_due: list[Requirement] = Field(default_factory=list)
    eventually_due: list[Requirement] = Field(default_factory=list)
    pending_verification: list[Requirement] = Field(default_factory=list)
    current_deadline: Optional[int] = None
    disabled_reason: Optional[str] = None

    @field_validator(
        "currently_due", "past_due", "eventually_due", "pending_verification", mode="before"
    )
    @classmethod
    def coerce_requirements(cls, v):
        if v is None:
            return []
        return [_coerce_requirement(item) for item in v]


class AccountStatus(WizardModel):
    account_id: Optional[str] = None
    charges_enabled: bool = False
    payouts_enabled: bool = False
    details_submitted: bool = False
    requirements: AccountRequirements = Field(default_factory=AccountRequirements)
    is_fully_verified: bool = False
    needs_attention: bool = False
    requires_verification: bool = True
    suggested_next_step: str = "business_info"

    @property
    def verification_complete(self) -> bool:
        return (
            self.charges_enabled
            and self.payouts_enabled
            and not self.requirements.currently_due
            and not self.requirements.past_due
        )

    @property
    def verification_required(self) -> bool:
        """Still needs the verify-account call before the wizard can finish"""
        return bool(
            self.requirements.currently_due
            or self.requirements.past_due
            or not self.charges_enabled
            or not self.payouts_enabled
        )


class CommunityInfo(BaseModel):
    id: str
    slug: str
    name: str
    status: str = "active"
    stripe_account_id: Optional[str] = None


# ============================================================================
# API REQUEST SCHEMAS
# ============================================================================


class CreateAccountRequest(BaseModel):
    """Schema for provisioning a Stripe Custom account"""

    communityId: str
    country: str = "US"
    businessType: Literal["individual", "company"] = "individual"

    @field_validator("communityId")
    @classmethod
    def validate_community_id(cls, v: str) -> str:
        if not v:
            raise ValueError("Community ID is required")
        return v

    @field_validator("country")
    @classmethod
    def validate_country(cls, v: str) -> str:
        if not v or len(v) != 2:
            raise ValueError("country must be a two-letter ISO code")
        return v.upper()


class StepUpdateRequest(BaseModel):
    """Schema for persisting one onboarding step"""

    step: str
    payload: dict = Field(default_factory=dict)
    currentStep: Optional[int] = None
