"""
Stripe Custom-account onboarding wizard.

The wizard is a five-step state machine over an immutable `OnboardingData`
aggregate. UI layers call the transition methods and subscribe to changes;
every remote failure is turned into a notification at this boundary and the
wizard stays on the step it was on.

Closing the wizard keeps the persisted progress. Network calls that are still
in flight when it closes complete, but their results are dropped.
"""

import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Awaitable, Callable, Optional

from ...config import MAX_DOCUMENT_SIZE_BYTES, ONBOARDING_AUTOSAVE_DELAY_SECONDS
from ...shared.errors import DanceHubError, GatewayError, PersistenceError
from ...shared.notifications import LoggingNotifier, Notifier
from .gateway import OnboardingGateway, UploadFile, step_payload
from .progress import Debouncer, InMemoryProgressStore, ProgressState, ProgressStore, ProgressTracker
from .provisioning import AccountProvisioner, AlreadyExists, Created, Failed
from .schemas import (
    FINAL_STEP,
    STEP_CATALOGUE,
    STEP_NAMES,
    AccountStatus,
    DocumentInfo,
    OnboardingData,
    OnboardingStep,
    empty_bank_account_for,
)
from .validation import REQUIRED_DOCUMENTS, ValidationContext, is_document_uploaded, validate

logger = logging.getLogger(__name__)

ACCEPTED_DOCUMENT_FORMATS = ("image/jpeg", "image/jpg", "image/png", "application/pdf")

DOCUMENT_TYPES = {
    ("identity_document", "identity_document"): "Government-issued ID",
}

STEP_SAVED_MESSAGES = {
    OnboardingStep.BUSINESS_INFO: "Business information saved successfully!",
    OnboardingStep.PERSONAL_INFO: "Personal information saved successfully!",
    OnboardingStep.BANK_ACCOUNT: "Bank account information saved successfully!",
}

STEP_SAVE_FAILED_MESSAGES = {
    OnboardingStep.BUSINESS_INFO: "Failed to save business information",
    OnboardingStep.PERSONAL_INFO: "Failed to save personal information",
    OnboardingStep.BANK_ACCOUNT: "Failed to save bank account information",
}

MISSING_ACCOUNT_MESSAGE = "Account ID is missing. Please go back to the previous step."


def verification_status(status: AccountStatus) -> str:
    """complete, incomplete or pending, as shown on the verification step"""
    if status.verification_complete:
        return "complete"
    if status.requirements.currently_due or status.requirements.past_due:
        return "incomplete"
    if status.requirements.pending_verification:
        return "pending"
    return "complete"


def can_finish(status: AccountStatus) -> bool:
    return verification_status(status) in ("complete", "pending")


class OnboardingWizard:
    """Orchestrates validation, provisioning, step-saves and progress for one community"""

    def __init__(
        self,
        community_id: str,
        community_slug: str,
        gateway: OnboardingGateway,
        store: Optional[ProgressStore] = None,
        notifier: Optional[Notifier] = None,
        on_complete: Optional[Callable[[str], Awaitable[None]]] = None,
        autosave_delay: float = ONBOARDING_AUTOSAVE_DELAY_SECONDS,
        today: Callable[[], date] = date.today,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.community_id = community_id
        self.community_slug = community_slug
        self.gateway = gateway
        self.notifier = notifier or LoggingNotifier()
        self.on_complete = on_complete
        self.today = today

        self.tracker = ProgressTracker(community_id, store or InMemoryProgressStore(), now=now)
        self.provisioner = AccountProvisioner(
            gateway, community_id, community_slug, on_account_created=on_complete
        )

        self.data = OnboardingData()
        self.field_errors: dict[str, str] = {}
        self.account_status: Optional[AccountStatus] = None
        self.is_open = False
        self.is_loading = False
        self.finished = False

        self._generation = 0
        self._step_lock = asyncio.Lock()
        self._observers: list[Callable[["OnboardingWizard"], None]] = []
        self._autosave = Debouncer(autosave_delay, self.save_progress)

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def subscribe(self, callback: Callable[["OnboardingWizard"], None]) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it"""
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _changed(self) -> None:
        for callback in list(self._observers):
            callback(self)

    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation or not self.is_open

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def current_step(self) -> int:
        return self.tracker.current_step

    @property
    def completed_steps(self) -> set[int]:
        return self.tracker.completed_steps

    @property
    def progress_percentage(self) -> float:
        return self.tracker.progress_percentage()

    def step_status(self, step: int) -> str:
        return self.tracker.step_status(step)

    def steps(self) -> list[dict]:
        return [
            {"id": int(step), "title": title, "description": description, "status": self.step_status(step)}
            for step, (title, description) in STEP_CATALOGUE.items()
        ]

    def can_proceed(self) -> bool:
        if self.current_step == OnboardingStep.DOCUMENTS:
            return all(is_document_uploaded(self.data.documents, t, p) for t, p in REQUIRED_DOCUMENTS)
        return validate(self.current_step, self.data, self._context()).is_valid

    def _context(self) -> ValidationContext:
        return ValidationContext(today=self.today())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Restore saved progress, then adopt the community's account if it is still live"""
        self._generation += 1
        generation = self._generation
        self.is_open = True
        self.finished = False

        restored = self.tracker.restore()
        self.data = restored or OnboardingData()
        self._changed()

        existing = await self.provisioner.find_existing_account()
        if self._is_stale(generation):
            return

        if existing:
            self.data = self.data.model_copy(update={"account_id": existing})
            self.notifier.success("Loaded existing Stripe account")
        elif self.data.account_id:
            stale_id = self.data.account_id
            live = await self.provisioner.is_account_live(stale_id)
            if self._is_stale(generation):
                return
            if not live:
                logger.info(f"ℹ️ Dropping saved account {stale_id} for {self.community_id}")
                self.data = self.data.model_copy(update={"account_id": None})
        self._changed()

    def close(self) -> None:
        """Tear down in-memory state; the last edit is still written to the progress store"""
        if self.is_open and not self.finished:
            self._autosave.flush()
        self._autosave.cancel()
        self._generation += 1
        self.is_open = False
        self.is_loading = False
        self.data = OnboardingData()
        self.field_errors = {}
        self.account_status = None
        self.tracker.state = ProgressState()
        self._changed()

    def save_progress(self) -> None:
        self.tracker.persist(self.data)

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def update_data(self, **changes) -> None:
        """
        Replace whole sub-objects of the aggregate, e.g. update_data(business_info=info).
        Schedules a debounced autosave.
        """
        unknown = set(changes) - set(OnboardingData.model_fields)
        if unknown:
            raise ValueError(f"Unknown onboarding fields: {', '.join(sorted(unknown))}")

        self.data = OnboardingData.model_validate({**self.data.model_dump(), **changes})
        self._autosave.trigger()
        self._changed()

    def copy_business_address_to_personal(self) -> None:
        """'Same as business address' on the personal info step"""
        address = self.data.business_info.business_address
        personal = self.data.personal_info.model_copy(update={"address": address})
        self.update_data(personal_info=personal)

    def select_bank_country(self, country: str) -> None:
        """Switch the bank account form between the US and IBAN shapes, keeping the holder name"""
        holder = self.data.bank_account.account_holder_name
        account = empty_bank_account_for(country).model_copy(update={"account_holder_name": holder})
        self.update_data(bank_account=account)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def next(self) -> bool:
        """
        Validate, provision (step 1), save the step remotely and advance.

        Returns:
            True when the wizard moved to the next step
        """
        async with self._step_lock:
            generation = self._generation
            step = OnboardingStep(self.current_step)
            if step == FINAL_STEP:
                return False

            result = validate(step, self.data, self._context())
            self.field_errors = dict(result.field_errors)
            if not result.is_valid:
                if step == OnboardingStep.DOCUMENTS:
                    self.notifier.error("Please upload all required documents")
                else:
                    self.notifier.error("Please fix the validation errors")
                self._changed()
                return False

            self.is_loading = True
            self._changed()
            try:
                saved = await self._save_step(step, generation)
            finally:
                if not self._is_stale(generation):
                    self.is_loading = False

            if not saved or self._is_stale(generation):
                self._changed()
                return False

            self.tracker.advance()
            self._autosave.cancel()
            self.save_progress()
            self._changed()
            return True

    async def _save_step(self, step: OnboardingStep, generation: int) -> bool:
        try:
            if step == OnboardingStep.BUSINESS_INFO:
                account_id = await self._ensure_account(generation)
                if account_id is None:
                    return False
            else:
                account_id = self.data.account_id
                if not account_id:
                    self.notifier.error(MISSING_ACCOUNT_MESSAGE)
                    return False

            if step not in STEP_NAMES:
                return True

            payload = step_payload(step, self.data)
            try:
                await self.gateway.update_account_step(
                    account_id, STEP_NAMES[step], payload, current_step=int(step)
                )
            except GatewayError as e:
                logger.error(f"❌ Saving {STEP_NAMES[step]} for {account_id} failed: {e.message}")
                raise PersistenceError(e.message or STEP_SAVE_FAILED_MESSAGES[step]) from e

            if self._is_stale(generation):
                return False
            self.notifier.success(STEP_SAVED_MESSAGES[step])
            return True
        except DanceHubError as e:
            if not self._is_stale(generation):
                self.notifier.error(e.message)
            return False

    async def _ensure_account(self, generation: int) -> Optional[str]:
        if self.data.account_id:
            return self.data.account_id

        result = await self.provisioner.provision(self.data.business_info)
        if self._is_stale(generation):
            return None

        if isinstance(result, Failed):
            self.notifier.error(result.reason)
            return None

        self.data = self.data.model_copy(update={"account_id": result.account_id})
        if isinstance(result, Created):
            self.notifier.success("Stripe account created successfully!")
        elif isinstance(result, AlreadyExists):
            self.notifier.success("Using existing Stripe account")
        self.save_progress()
        return result.account_id

    def previous(self) -> int:
        step = self.tracker.retreat()
        self.field_errors = {}
        self._autosave.trigger()
        self._changed()
        return step

    def jump_to(self, step: int) -> bool:
        if not self.tracker.jump_to(step):
            return False
        self.field_errors = {}
        self._autosave.trigger()
        self._changed()
        return True

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def upload_document(
        self, file: UploadFile, document_type: str = "identity_document", purpose: str = "identity_document"
    ) -> bool:
        """Upload an identity document; a new upload replaces the earlier one of the same kind"""
        if not self.data.account_id:
            self.notifier.error(MISSING_ACCOUNT_MESSAGE)
            return False
        if file.content_type not in ACCEPTED_DOCUMENT_FORMATS:
            self.notifier.error("Please upload a JPEG, PNG, or PDF file")
            return False
        if file.size > MAX_DOCUMENT_SIZE_BYTES:
            self.notifier.error("File size must be less than 10MB")
            return False

        generation = self._generation
        try:
            url = await self.gateway.upload_document(self.data.account_id, file, document_type, purpose)
        except GatewayError as e:
            logger.error(f"❌ Document upload failed for {self.data.account_id}: {e.message}")
            if not self._is_stale(generation):
                self.notifier.error(e.message or "Failed to upload document")
            return False

        if self._is_stale(generation):
            return False

        document = DocumentInfo(
            type=document_type, purpose=purpose, file_name=file.file_name, uploaded=True, url=url
        )
        others = [d for d in self.data.documents if not (d.type == document_type and d.purpose == purpose)]
        self.update_data(documents=[*others, document])
        title = DOCUMENT_TYPES.get((document_type, purpose), "Document")
        self.notifier.success(f"{title} uploaded successfully!")
        return True

    def remove_document(self, document_type: str, purpose: str) -> None:
        documents = [
            d for d in self.data.documents if not (d.type == document_type and d.purpose == purpose)
        ]
        self.update_data(documents=documents)
        self.notifier.success("Document removed")

    # ------------------------------------------------------------------
    # Verification and finish
    # ------------------------------------------------------------------

    async def check_verification_status(self) -> Optional[str]:
        if not self.data.account_id:
            self.notifier.error("Account ID is missing")
            return None

        generation = self._generation
        try:
            status = await self.gateway.get_account_status(self.data.account_id)
        except GatewayError as e:
            logger.error(f"❌ Status check failed for {self.data.account_id}: {e.message}")
            if not self._is_stale(generation):
                self.notifier.error("Failed to check verification status")
            return None

        if self._is_stale(generation):
            return None
        self.account_status = status
        self._changed()
        return verification_status(status)

    async def finish(self) -> bool:
        """
        Verify the account if it still needs it, clear saved progress and report completion.
        Any failure leaves the wizard open on the verification step.
        """
        async with self._step_lock:
            generation = self._generation
            if self.current_step != FINAL_STEP:
                return False

            account_id = self.data.account_id
            if not account_id:
                self.notifier.error("No account ID available")
                return False

            self.is_loading = True
            self._changed()
            try:
                status = await self.gateway.get_account_status(account_id)
                if self._is_stale(generation):
                    return False
                self.account_status = status

                if status.verification_required:
                    try:
                        await self.gateway.verify_account(account_id)
                    except GatewayError as e:
                        logger.error(f"❌ Verification failed for {account_id}: {e.message}")
                        if not self._is_stale(generation):
                            self.notifier.error("Verification failed")
                        return False
            except GatewayError as e:
                logger.error(f"❌ Completing onboarding for {account_id} failed: {e.message}")
                if not self._is_stale(generation):
                    self.notifier.error("Failed to complete onboarding")
                return False
            finally:
                if not self._is_stale(generation):
                    self.is_loading = False
                    self._changed()

            if self._is_stale(generation):
                return False

            self._autosave.cancel()
            self.tracker.mark_step_completed(FINAL_STEP)
            self.tracker.clear()
            self.finished = True
            self.notifier.success("Stripe onboarding completed successfully!")
            logger.info(f"🎉 Onboarding finished for community {self.community_id} ({account_id})")

        if self.on_complete is not None:
            try:
                await self.on_complete(account_id)
            except Exception as e:
                logger.error(f"❌ Completion callback for {self.community_id} failed: {e}")
        self.close()
        return True
