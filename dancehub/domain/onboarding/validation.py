"""
Per-step field validation for the onboarding wizard.

`validate(step, data, context)` is pure: it reads the step's sub-object of the
aggregate and returns a map of field name -> message. An empty map is the only
state in which the wizard lets the step advance.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Optional

from ...shared.validators import (
    calculate_age,
    is_digits,
    is_valid_email,
    is_valid_iban,
    is_valid_phone,
    is_valid_routing_number,
    is_valid_ssn_last_4,
    is_valid_website,
    postal_code_error,
)
from .schemas import (
    Address,
    BusinessInfo,
    DocumentInfo,
    InternationalBankAccount,
    OnboardingData,
    OnboardingStep,
    PersonalInfo,
    USBankAccount,
)

MINIMUM_AGE = 18
MAXIMUM_AGE = 120

# (type, purpose) pairs that must be uploaded before the documents step can advance
REQUIRED_DOCUMENTS = (("identity_document", "identity_document"),)


@dataclass(frozen=True)
class ValidationContext:
    today: date = field(default_factory=date.today)


@dataclass(frozen=True)
class ValidationResult:
    field_errors: dict[str, str] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.field_errors


def _validate_address(address: Address, errors: dict[str, str]) -> None:
    if not address.line1.strip():
        errors["line1"] = "Address line 1 is required"
    if not address.city.strip():
        errors["city"] = "City is required"
    if not address.state:
        errors["state"] = "State/Province is required"
    if not address.country:
        errors["country"] = "Country is required"

    if not address.postal_code.strip():
        errors["postal_code"] = "Postal code is required"
    else:
        message = postal_code_error(address.postal_code, address.country)
        if message:
            errors["postal_code"] = message


def validate_business_info(info: BusinessInfo, context: ValidationContext) -> dict[str, str]:
    errors: dict[str, str] = {}

    if not info.legal_business_name.strip():
        errors["legal_business_name"] = "Business name is required"

    _validate_address(info.business_address, errors)

    if not info.business_phone.strip():
        errors["business_phone"] = "Business phone is required"
    elif not is_valid_phone(info.business_phone):
        errors["business_phone"] = "Invalid phone number format"

    # Website is optional; only a present value is checked
    if info.business_website and info.business_website.strip():
        if not is_valid_website(info.business_website):
            errors["business_website"] = "Invalid website URL"

    return errors


def validate_personal_info(info: PersonalInfo, context: ValidationContext) -> dict[str, str]:
    errors: dict[str, str] = {}

    if not info.first_name.strip():
        errors["first_name"] = "First name is required"
    if not info.last_name.strip():
        errors["last_name"] = "Last name is required"

    dob = info.date_of_birth
    try:
        age = calculate_age(dob.day, dob.month, dob.year, context.today)
    except ValueError:
        errors["date_of_birth"] = "Please enter a valid date of birth"
    else:
        if age < MINIMUM_AGE:
            errors["date_of_birth"] = "You must be at least 18 years old"
        elif age > MAXIMUM_AGE:
            errors["date_of_birth"] = "Please enter a valid date of birth"

    _validate_address(info.address, errors)

    if not info.phone.strip():
        errors["phone"] = "Phone number is required"
    elif not is_valid_phone(info.phone):
        errors["phone"] = "Invalid phone number format"

    if not info.email.strip():
        errors["email"] = "Email is required"
    elif not is_valid_email(info.email):
        errors["email"] = "Invalid email format"

    if not info.ssn_last_4.strip():
        errors["ssn_last_4"] = "Last 4 digits of SSN are required"
    elif not is_valid_ssn_last_4(info.ssn_last_4):
        errors["ssn_last_4"] = "Must be exactly 4 digits"

    return errors


def validate_bank_account(account, context: ValidationContext) -> dict[str, str]:
    errors: dict[str, str] = {}

    if not account.account_holder_name.strip():
        errors["account_holder_name"] = "Account holder name is required"

    if isinstance(account, USBankAccount):
        if not account.routing_number.strip():
            errors["routing_number"] = "Routing number is required"
        elif len(account.routing_number) != 9 or not is_digits(account.routing_number):
            errors["routing_number"] = "Routing number must be exactly 9 digits"
        elif not is_valid_routing_number(account.routing_number):
            errors["routing_number"] = "Invalid routing number"

        if not account.account_number.strip():
            errors["account_number"] = "Account number is required"
        elif len(account.account_number) < 4 or len(account.account_number) > 17:
            errors["account_number"] = "Account number must be between 4 and 17 digits"
        elif not is_digits(account.account_number):
            errors["account_number"] = "Account number must contain only digits"

        if not account.account_type:
            errors["account_type"] = "Account type is required"

    elif isinstance(account, InternationalBankAccount):
        if not account.iban.strip():
            errors["iban"] = "IBAN is required"
        elif not is_valid_iban(account.iban):
            errors["iban"] = "Invalid IBAN format"

        if not account.country:
            errors["country"] = "Country is required"
        if not account.currency:
            errors["currency"] = "Currency is required"

    return errors


def is_document_uploaded(documents: list[DocumentInfo], doc_type: str, purpose: str) -> bool:
    return any(doc.uploaded for doc in documents if doc.type == doc_type and doc.purpose == purpose)


def validate_documents(documents: list[DocumentInfo], context: ValidationContext) -> dict[str, str]:
    if all(is_document_uploaded(documents, t, p) for t, p in REQUIRED_DOCUMENTS):
        return {}
    return {"documents": "Please upload all required documents"}


def validate(
    step: int, data: OnboardingData, context: Optional[ValidationContext] = None
) -> ValidationResult:
    """Validate one step of the aggregate. No side effects, no network calls."""
    context = context or ValidationContext()
    step = OnboardingStep(step)

    validators: dict[OnboardingStep, Callable[[], dict[str, str]]] = {
        OnboardingStep.BUSINESS_INFO: lambda: validate_business_info(data.business_info, context),
        OnboardingStep.PERSONAL_INFO: lambda: validate_personal_info(data.personal_info, context),
        OnboardingStep.BANK_ACCOUNT: lambda: validate_bank_account(data.bank_account, context),
        OnboardingStep.DOCUMENTS: lambda: validate_documents(data.documents, context),
        OnboardingStep.VERIFICATION: dict,
    }
    return ValidationResult(field_errors=validators[step]())
