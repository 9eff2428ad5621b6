"""
Payment account provisioning.

An account is created at most once per community. When the server reports
that the community already owns one, the stored id is adopted: that is a
normal outcome (`AlreadyExists`), not a failure.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Union

from ...config import ACCOUNT_STATUS_TIMEOUT_SECONDS
from ...shared.errors import GatewayError, ProvisioningError
from .gateway import ACCOUNT_EXISTS_ERROR, OnboardingGateway
from .schemas import BusinessInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Created:
    account_id: str


@dataclass(frozen=True)
class AlreadyExists:
    account_id: str


@dataclass(frozen=True)
class Failed:
    reason: str


ProvisioningResult = Union[Created, AlreadyExists, Failed]


class AccountProvisioner:
    """Creates or recovers the Stripe account id for one community"""

    def __init__(
        self,
        gateway: OnboardingGateway,
        community_id: str,
        community_slug: str,
        on_account_created: Optional[Callable[[str], Awaitable[None]]] = None,
        status_timeout: float = ACCOUNT_STATUS_TIMEOUT_SECONDS,
    ):
        self.gateway = gateway
        self.community_id = community_id
        self.community_slug = community_slug
        self.on_account_created = on_account_created
        self.status_timeout = status_timeout

    async def provision(self, business: BusinessInfo) -> ProvisioningResult:
        """Call create-payment-account once and classify the outcome"""
        country = business.business_address.country or "US"
        logger.info(f"🏦 Creating Stripe account for community {self.community_id} ({country})")

        try:
            account_id = await self.gateway.create_payment_account(
                self.community_id, country, business.business_type
            )
        except GatewayError as e:
            if e.message == ACCOUNT_EXISTS_ERROR:
                return await self._recover_existing(e.message)
            logger.error(f"❌ Stripe account creation failed for {self.community_id}: {e.message}")
            return Failed(e.message or "Failed to create Stripe account")

        if self.on_account_created is not None:
            # The community record is updated before the user can abandon the flow
            try:
                await self.on_account_created(account_id)
            except Exception as e:
                logger.error(f"❌ Community update after account creation failed: {e}")

        logger.info(f"✅ Stripe account {account_id} created for community {self.community_id}")
        return Created(account_id)

    async def _recover_existing(self, reason: str) -> ProvisioningResult:
        logger.info(f"🔁 Community {self.community_id} already has an account, fetching it")
        try:
            community = await self.gateway.get_community(self.community_slug)
        except GatewayError as e:
            logger.warning(f"⚠️ Could not fetch existing account for {self.community_slug}: {e.message}")
            return Failed(reason)

        if community.stripe_account_id:
            return AlreadyExists(community.stripe_account_id)
        return Failed(reason)

    async def ensure_account(self, known_account_id: Optional[str], business: BusinessInfo) -> str:
        """
        Return the community's account id, creating the account when none is known.

        Raises:
            ProvisioningError: If creation failed and no existing account could be adopted
        """
        if known_account_id:
            return known_account_id

        result = await self.provision(business)
        if isinstance(result, Failed):
            raise ProvisioningError(result.reason)
        return result.account_id

    async def is_account_live(self, account_id: str) -> bool:
        """Status check bounded by status_timeout; any failure counts as not live"""
        try:
            await asyncio.wait_for(
                self.gateway.get_account_status(account_id, timeout=self.status_timeout),
                timeout=self.status_timeout,
            )
            return True
        except asyncio.TimeoutError:
            logger.warning(f"⚠️ Status check for {account_id} timed out after {self.status_timeout}s")
            return False
        except GatewayError as e:
            logger.info(f"ℹ️ Stored account {account_id} is no longer valid: {e.message}")
            return False

    async def find_existing_account(self) -> Optional[str]:
        """
        Look up the account id stored on the community and keep it only if it still
        resolves. Never raises: an unreachable or invalid account means "start fresh".
        """
        try:
            community = await self.gateway.get_community(self.community_slug)
        except GatewayError as e:
            logger.warning(f"⚠️ Could not load community {self.community_slug}: {e.message}")
            return None

        if not community.stripe_account_id:
            return None
        if await self.is_account_live(community.stripe_account_id):
            return community.stripe_account_id
        return None
