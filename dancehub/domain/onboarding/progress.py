"""
Onboarding progress: which step the user is on, which steps are done,
and the resume blob that lets a wizard survive a reload.

The blob is stored per community under `stripe-onboarding-{communityId}` as
`{data, currentStep, completedSteps, timestamp}`.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from ...cache import Cache, cache
from ...config import ONBOARDING_PROGRESS_TTL_SECONDS
from .schemas import FINAL_STEP, OnboardingData, OnboardingStep

logger = logging.getLogger(__name__)

STORAGE_KEY_PREFIX = "stripe-onboarding-"


def storage_key(community_id: str) -> str:
    return f"{STORAGE_KEY_PREFIX}{community_id}"


# ============================================================================
# PERSISTENCE PORT
# ============================================================================


class ProgressStore(Protocol):
    """Key-value store for the resume blob. Values are opaque strings."""

    def load(self, key: str) -> Optional[str]: ...

    def save(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryProgressStore:
    """Process-local store, used when Redis is not configured and in tests"""

    def __init__(self):
        self.values: dict[str, str] = {}

    def load(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def save(self, key: str, value: str) -> None:
        self.values[key] = value

    def delete(self, key: str) -> None:
        self.values.pop(key, None)


class RedisProgressStore:
    """Durable store on top of the shared Redis cache; entries expire after the TTL"""

    def __init__(self, backend: Optional[Cache] = None, ttl: int = ONBOARDING_PROGRESS_TTL_SECONDS):
        self.backend = backend or cache
        self.ttl = ttl

    def load(self, key: str) -> Optional[str]:
        return self.backend.get_raw(key)

    def save(self, key: str, value: str) -> None:
        if not self.backend.set_raw(key, value, self.ttl):
            logger.warning(f"⚠️ Onboarding progress for {key} was not persisted")

    def delete(self, key: str) -> None:
        self.backend.delete(key)


def default_progress_store() -> ProgressStore:
    """Redis when it is reachable, otherwise an in-memory store"""
    if cache.is_available():
        return RedisProgressStore()
    logger.info("ℹ️ Redis unavailable, onboarding progress kept in memory")
    return InMemoryProgressStore()


# ============================================================================
# PROGRESS STATE
# ============================================================================


@dataclass
class ProgressState:
    current_step: int = OnboardingStep.BUSINESS_INFO
    completed_steps: set[int] = field(default_factory=set)


class ProgressTracker:
    """
    Step bookkeeping for one community's onboarding session.

    completed_steps only ever grows; retreating or jumping back never
    un-completes a step.
    """

    def __init__(
        self,
        community_id: str,
        store: ProgressStore,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.community_id = community_id
        self.store = store
        self.now = now
        self.state = ProgressState()

    @property
    def key(self) -> str:
        return storage_key(self.community_id)

    @property
    def current_step(self) -> int:
        return self.state.current_step

    @property
    def completed_steps(self) -> set[int]:
        return set(self.state.completed_steps)

    def mark_step_completed(self, step: int) -> None:
        self.state.completed_steps.add(int(step))

    def can_enter(self, step: int) -> bool:
        if step < OnboardingStep.BUSINESS_INFO or step > FINAL_STEP:
            return False
        return (
            step == OnboardingStep.BUSINESS_INFO
            or (step - 1) in self.state.completed_steps
            or step <= self.state.current_step
        )

    def advance(self) -> int:
        self.mark_step_completed(self.state.current_step)
        if self.state.current_step < FINAL_STEP:
            self.state.current_step += 1
        return self.state.current_step

    def retreat(self) -> int:
        if self.state.current_step > OnboardingStep.BUSINESS_INFO:
            self.state.current_step -= 1
        return self.state.current_step

    def jump_to(self, step: int) -> bool:
        if not self.can_enter(step):
            return False
        self.state.current_step = step
        return True

    def progress_percentage(self) -> float:
        return len(self.state.completed_steps) / len(OnboardingStep) * 100

    def step_status(self, step: int) -> str:
        """completed, current, available or locked, as the step indicator shows it"""
        if step in self.state.completed_steps:
            return "completed"
        if step == self.state.current_step:
            return "current"
        if self.can_enter(step):
            return "available"
        return "locked"

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def persist(self, data: OnboardingData) -> None:
        blob = {
            "data": data.model_dump(mode="json", by_alias=True),
            "currentStep": self.state.current_step,
            "completedSteps": sorted(self.state.completed_steps),
            "timestamp": self.now().isoformat(),
        }
        try:
            self.store.save(self.key, json.dumps(blob))
        except Exception as e:
            logger.error(f"❌ Failed to save onboarding progress for {self.community_id}: {e}")

    def restore(self) -> Optional[OnboardingData]:
        """
        Load saved progress into this tracker.

        Returns:
            The saved aggregate, or None when nothing usable was stored. Missing
            or corrupt blobs reset the tracker to step 1 and never raise.
        """
        self.state = ProgressState()

        try:
            raw = self.store.load(self.key)
        except Exception as e:
            logger.warning(f"⚠️ Could not read onboarding progress for {self.community_id}: {e}")
            return None

        if not raw:
            return None

        try:
            blob = json.loads(raw)
            data = OnboardingData.model_validate(blob["data"])
            current_step = int(blob.get("currentStep", OnboardingStep.BUSINESS_INFO))
            completed = {
                int(step)
                for step in blob.get("completedSteps") or []
                if OnboardingStep.BUSINESS_INFO <= int(step) <= FINAL_STEP
            }
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            logger.warning(f"⚠️ Ignoring unreadable onboarding progress for {self.community_id}: {e}")
            return None

        if not OnboardingStep.BUSINESS_INFO <= current_step <= FINAL_STEP:
            current_step = OnboardingStep.BUSINESS_INFO

        self.state = ProgressState(current_step=current_step, completed_steps=completed)
        logger.info(f"📂 Restored onboarding progress for {self.community_id} at step {current_step}")
        return data

    def clear(self) -> None:
        try:
            self.store.delete(self.key)
        except Exception as e:
            logger.error(f"❌ Failed to clear onboarding progress for {self.community_id}: {e}")


# ============================================================================
# AUTOSAVE
# ============================================================================


class Debouncer:
    """
    Runs `callback` once, `delay` seconds after the last trigger().

    Every trigger cancels the pending timer and arms a new one, so a burst
    of edits results in a single save.
    """

    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        self.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No event loop to schedule on; save right away
            self.callback()
            return
        self._handle = loop.call_later(self.delay, self._fire)

    def flush(self) -> None:
        """Run a pending callback now"""
        if self._handle is not None:
            self.cancel()
            self.callback()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self.callback()
