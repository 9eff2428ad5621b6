import asyncio
import json
from datetime import date

import pytest

from dancehub.domain.onboarding.gateway import ACCOUNT_EXISTS_ERROR
from dancehub.domain.onboarding.progress import InMemoryProgressStore, storage_key
from dancehub.domain.onboarding.schemas import (
    AccountRequirements,
    AccountStatus,
    InternationalBankAccount,
    OnboardingStep,
    USBankAccount,
)
from dancehub.domain.onboarding.wizard import OnboardingWizard, can_finish, verification_status
from dancehub.shared.errors import GatewayError

from .fakes import (
    COMMUNITY_ID,
    COMMUNITY_SLUG,
    FakeOnboardingGateway,
    id_document,
    valid_business_info,
    valid_personal_info,
    valid_us_bank_account,
)

TODAY = date(2024, 6, 1)


@pytest.fixture
def gateway():
    return FakeOnboardingGateway()


@pytest.fixture
def store():
    return InMemoryProgressStore()


@pytest.fixture
def completed():
    return []


@pytest.fixture
def wizard(gateway, store, notifier, completed):
    async def on_complete(account_id):
        completed.append(account_id)

    return OnboardingWizard(
        COMMUNITY_ID,
        COMMUNITY_SLUG,
        gateway,
        store=store,
        notifier=notifier,
        on_complete=on_complete,
        autosave_delay=0.01,
        today=lambda: TODAY,
    )


async def walk_to(wizard, step):
    """Fill in and save every step before `step`"""
    fillers = {
        OnboardingStep.BUSINESS_INFO: lambda: wizard.update_data(business_info=valid_business_info()),
        OnboardingStep.PERSONAL_INFO: lambda: wizard.update_data(personal_info=valid_personal_info()),
        OnboardingStep.BANK_ACCOUNT: lambda: wizard.update_data(bank_account=valid_us_bank_account()),
    }
    while wizard.current_step < step:
        current = OnboardingStep(wizard.current_step)
        if current == OnboardingStep.DOCUMENTS:
            assert await wizard.upload_document(id_document())
        else:
            fillers[current]()
        assert await wizard.next(), wizard.field_errors


async def test_full_onboarding(wizard, gateway, store, notifier, completed):
    await wizard.open()

    wizard.update_data(business_info=valid_business_info())
    assert await wizard.next()
    assert gateway.create_calls == [(COMMUNITY_ID, "US", "individual")]
    assert wizard.data.account_id == "acct_test_1"
    assert wizard.current_step == OnboardingStep.PERSONAL_INFO

    wizard.update_data(personal_info=valid_personal_info())
    assert await wizard.next()
    assert len(gateway.create_calls) == 1

    wizard.update_data(bank_account=valid_us_bank_account())
    assert await wizard.next()
    assert [call[1] for call in gateway.step_calls] == ["business_info", "personal_info", "bank_account"]
    assert all(call[0] == "acct_test_1" for call in gateway.step_calls)

    assert wizard.current_step == OnboardingStep.DOCUMENTS
    assert not wizard.can_proceed()
    assert await wizard.upload_document(id_document())
    assert wizard.can_proceed()
    assert await wizard.next()

    assert wizard.current_step == OnboardingStep.VERIFICATION
    saved = json.loads(store.values[storage_key(COMMUNITY_ID)])
    assert saved["currentStep"] == 5
    assert saved["completedSteps"] == [1, 2, 3, 4]

    assert await wizard.check_verification_status() == "complete"
    assert await wizard.finish()

    assert gateway.verify_calls == []
    assert store.values == {}
    assert completed[-1] == "acct_test_1"
    assert not wizard.is_open
    assert "Stripe onboarding completed successfully!" in notifier.of_level("success")


async def test_step_payloads(wizard, gateway):
    await wizard.open()
    await walk_to(wizard, OnboardingStep.DOCUMENTS)

    business = gateway.step_calls[0][2]
    assert business["type"] == "individual"
    assert business["name"] == "Salsa Club SF"
    assert business["address"]["postal_code"] == "94105"

    personal = gateway.step_calls[1][2]
    assert personal["dob"] == {"day": 15, "month": 1, "year": 1999}
    assert personal["ssn_last_4"] == "1234"

    bank = gateway.step_calls[2][2]
    assert bank["routing_number"] == "021000021"
    assert bank["account_number"] == "1234567890123"
    assert gateway.step_calls[2][3] == 3


async def test_invalid_step_does_not_reach_network(wizard, gateway, notifier):
    await wizard.open()

    assert not await wizard.next()

    assert wizard.current_step == 1
    assert "legal_business_name" in wizard.field_errors
    assert gateway.create_calls == []
    assert notifier.of_level("error") == ["Please fix the validation errors"]


async def test_failed_step_save_keeps_input(wizard, gateway, notifier):
    await wizard.open()
    gateway.step_error = GatewayError("Failed to update account: Invalid phone number", 400)
    wizard.update_data(business_info=valid_business_info())

    assert not await wizard.next()

    assert wizard.current_step == 1
    assert wizard.data.business_info.legal_business_name == "Salsa Club SF"
    assert wizard.data.account_id == "acct_test_1"
    assert "Failed to update account: Invalid phone number" in notifier.of_level("error")

    # Retrying does not create a second account
    gateway.step_error = None
    assert await wizard.next()
    assert len(gateway.create_calls) == 1


async def test_provisioning_failure_is_retryable(wizard, gateway, notifier):
    await wizard.open()
    gateway.create_error = GatewayError("Stripe is unavailable", 503)
    wizard.update_data(business_info=valid_business_info())

    assert not await wizard.next()
    assert notifier.of_level("error") == ["Stripe is unavailable"]
    assert wizard.data.account_id is None

    gateway.create_error = None
    assert await wizard.next()
    assert wizard.data.account_id == "acct_test_1"


async def test_existing_account_is_adopted_on_create(wizard, gateway, notifier):
    gateway.community = gateway.community.model_copy(update={"stripe_account_id": "acct_existing"})
    gateway.create_error = GatewayError(ACCOUNT_EXISTS_ERROR, 400)
    await wizard.open()
    # Not live at open time, so it was not adopted then
    assert wizard.data.account_id is None

    wizard.update_data(business_info=valid_business_info())
    assert await wizard.next()

    assert wizard.data.account_id == "acct_existing"
    assert "Using existing Stripe account" in notifier.of_level("success")


async def test_open_adopts_live_account(gateway, store, notifier):
    gateway.community = gateway.community.model_copy(update={"stripe_account_id": "acct_live"})
    gateway.live_accounts.add("acct_live")
    wizard = OnboardingWizard(COMMUNITY_ID, COMMUNITY_SLUG, gateway, store=store, notifier=notifier)

    await wizard.open()

    assert wizard.data.account_id == "acct_live"
    assert notifier.of_level("success") == ["Loaded existing Stripe account"]


async def test_resume_after_reload(wizard, gateway, store, notifier):
    await wizard.open()
    await walk_to(wizard, OnboardingStep.BANK_ACCOUNT)
    wizard.close()

    reopened = OnboardingWizard(
        COMMUNITY_ID, COMMUNITY_SLUG, gateway, store=store, notifier=notifier, today=lambda: TODAY
    )
    await reopened.open()

    assert reopened.current_step == OnboardingStep.BANK_ACCOUNT
    assert reopened.completed_steps == {1, 2}
    assert reopened.data.personal_info.first_name == "Maria"
    assert reopened.data.account_id == "acct_test_1"


async def test_close_flushes_pending_autosave(wizard, store):
    await wizard.open()
    wizard.update_data(business_info=valid_business_info())
    wizard.close()

    saved = json.loads(store.values[storage_key(COMMUNITY_ID)])
    assert saved["data"]["businessInfo"]["legalBusinessName"] == "Salsa Club SF"


async def test_result_after_close_is_ignored(wizard, gateway, notifier):
    await wizard.open()
    wizard.update_data(business_info=valid_business_info())
    gateway.step_gate = asyncio.Event()

    pending = asyncio.create_task(wizard.next())
    while not gateway.step_calls:
        await asyncio.sleep(0)
    wizard.close()
    gateway.step_gate.set()

    assert await pending is False
    assert wizard.current_step == 1
    assert "Business information saved successfully!" not in notifier.of_level("success")


async def test_navigation(wizard):
    await wizard.open()
    assert not wizard.jump_to(3)

    await walk_to(wizard, OnboardingStep.BANK_ACCOUNT)
    assert wizard.previous() == 2
    assert wizard.jump_to(1)
    assert wizard.jump_to(3)
    assert wizard.progress_percentage == 40
    assert [s["status"] for s in wizard.steps()] == ["completed", "completed", "current", "locked", "locked"]


async def test_copy_business_address(wizard):
    await wizard.open()
    wizard.update_data(business_info=valid_business_info())
    wizard.copy_business_address_to_personal()
    assert wizard.data.personal_info.address == wizard.data.business_info.business_address


def test_update_data_rejects_unknown_fields(wizard):
    with pytest.raises(ValueError):
        wizard.update_data(nickname="salsa")


async def test_upload_rejects_bad_files(wizard, gateway, notifier):
    await wizard.open()
    await walk_to(wizard, OnboardingStep.DOCUMENTS)

    assert not await wizard.upload_document(id_document("notes.txt", "text/plain"))
    assert not await wizard.upload_document(id_document("huge.pdf", "application/pdf", 10 * 1024 * 1024 + 1))
    assert gateway.uploads == []
    assert notifier.of_level("error") == [
        "Please upload a JPEG, PNG, or PDF file",
        "File size must be less than 10MB",
    ]


async def test_new_upload_replaces_old_one(wizard):
    await wizard.open()
    await walk_to(wizard, OnboardingStep.DOCUMENTS)

    assert await wizard.upload_document(id_document("front.png"))
    assert await wizard.upload_document(id_document("front-retake.jpg", "image/jpeg"))
    assert [d.file_name for d in wizard.data.documents] == ["front-retake.jpg"]

    wizard.remove_document("identity_document", "identity_document")
    assert wizard.data.documents == []
    assert not await wizard.next()


async def test_finish_runs_verification_when_required(wizard, gateway, store):
    gateway.status = AccountStatus(
        charges_enabled=False,
        payouts_enabled=False,
        requirements=AccountRequirements(pending_verification=["individual.verification.document"]),
    )
    await wizard.open()
    await walk_to(wizard, OnboardingStep.VERIFICATION)

    assert await wizard.check_verification_status() == "pending"
    assert await wizard.finish()
    assert gateway.verify_calls == ["acct_test_1"]


async def test_failed_verification_keeps_wizard_open(wizard, gateway, store, notifier, completed):
    gateway.status = AccountStatus(
        requirements=AccountRequirements(currently_due=["individual.verification.document"])
    )
    gateway.verify_error = GatewayError("Account verification incomplete", 400)
    await wizard.open()
    await walk_to(wizard, OnboardingStep.VERIFICATION)
    completed.clear()

    assert not await wizard.finish()

    assert wizard.is_open
    assert wizard.current_step == OnboardingStep.VERIFICATION
    assert "Verification failed" in notifier.of_level("error")
    assert storage_key(COMMUNITY_ID) in store.values
    assert completed == []


def test_verification_status():
    assert verification_status(AccountStatus(charges_enabled=True, payouts_enabled=True)) == "complete"
    incomplete = AccountStatus(requirements=AccountRequirements(past_due=["external_account"]))
    assert verification_status(incomplete) == "incomplete"
    assert not can_finish(incomplete)


def test_select_bank_country_switches_shape(wizard):
    wizard.update_data(bank_account=valid_us_bank_account())

    wizard.select_bank_country("de")

    assert isinstance(wizard.data.bank_account, InternationalBankAccount)
    assert wizard.data.bank_account.country == "DE"
    assert wizard.data.bank_account.account_holder_name == valid_us_bank_account().account_holder_name

    wizard.select_bank_country("US")
    assert isinstance(wizard.data.bank_account, USBankAccount)


async def test_failing_completion_callback_still_closes(gateway, store, notifier):
    async def on_complete(account_id):
        raise RuntimeError("community refresh failed")

    wizard = OnboardingWizard(
        COMMUNITY_ID,
        COMMUNITY_SLUG,
        gateway,
        store=store,
        notifier=notifier,
        on_complete=on_complete,
        autosave_delay=0.01,
        today=lambda: TODAY,
    )
    await wizard.open()
    await walk_to(wizard, OnboardingStep.VERIFICATION)

    assert await wizard.finish()
    assert not wizard.is_open
    assert storage_key(COMMUNITY_ID) not in store.values


async def test_going_back_is_saved(wizard, store):
    await wizard.open()
    await walk_to(wizard, OnboardingStep.BANK_ACCOUNT)

    wizard.previous()
    await asyncio.sleep(0.05)
    assert json.loads(store.values[storage_key(COMMUNITY_ID)])["currentStep"] == 2

    assert wizard.jump_to(OnboardingStep.BUSINESS_INFO)
    wizard.close()
    assert json.loads(store.values[storage_key(COMMUNITY_ID)])["currentStep"] == 1
