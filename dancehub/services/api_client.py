"""
HTTP adapter for the onboarding, availability and booking flows.

Talks to the DanceHub API routes with httpx. Non-2xx answers become
GatewayError carrying the server's `error` message, and so do 2xx answers
whose body does not have the expected shape.
"""

import logging
from contextlib import contextmanager
from typing import Any, Optional

import httpx

from ..config import DANCEHUB_API_URL
from ..domain.booking.schemas import BookingCreated
from ..domain.onboarding.gateway import UploadFile
from ..domain.onboarding.schemas import AccountStatus, CommunityInfo
from ..domain.scheduling.schemas import AvailabilitySlot
from ..shared.errors import GatewayError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


@contextmanager
def _response_shape(what: str):
    """A 2xx body that does not map to the expected shape is a gateway failure too"""
    try:
        yield
    except (KeyError, TypeError, AttributeError, ValueError) as e:
        logger.error(f"❌ Malformed {what} response: {str(e)}")
        raise GatewayError(f"Unexpected {what} response from DanceHub API") from e


def _slot_from_row(row: dict) -> AvailabilitySlot:
    return AvailabilitySlot(
        id=row.get("id"),
        date=row.get("availability_date") or row.get("date"),
        start_time=row["start_time"],
        end_time=row["end_time"],
        teacher_id=row.get("teacher_id"),
    )


class DanceHubApiClient:
    """
    Implements OnboardingGateway, AvailabilityGateway and BookingGateway.

    Args:
        base_url: API root, e.g. https://api.dancehub.example
        access_token: Bearer token of the signed-in user
        timeout: Default request timeout in seconds
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(
        self,
        base_url: str = DANCEHUB_API_URL,
        access_token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> dict:
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}

    async def _request(self, method: str, path: str, timeout: Optional[float] = None, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=timeout or self.timeout, transport=self.transport
            ) as http_client:
                response = await http_client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"❌ {method} {path} failed: {str(e)}")
            raise GatewayError(f"Could not reach DanceHub API: {str(e)}") from e

        if response.is_success:
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as e:
                logger.error(f"❌ {method} {path} returned a non-JSON body")
                raise GatewayError("Unexpected response from DanceHub API", response.status_code) from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        message = body.get("error") if isinstance(body, dict) else None
        logger.warning(f"⚠️ {method} {path} -> HTTP {response.status_code}: {message}")
        raise GatewayError(message or f"Request failed with status {response.status_code}", response.status_code)

    # ============================================================================
    # ONBOARDING
    # ============================================================================

    async def create_payment_account(self, community_id: str, country: str, business_type: str) -> str:
        result = await self._request(
            "POST",
            "/stripe/custom-account/create",
            json={"communityId": community_id, "country": country, "businessType": business_type},
        )
        with _response_shape("account"):
            return result["accountId"]

    async def get_community(self, community_slug: str) -> CommunityInfo:
        result = await self._request("GET", f"/community/{community_slug}")
        with _response_shape("community"):
            return CommunityInfo.model_validate(result)

    async def get_account_status(self, account_id: str, timeout: Optional[float] = None) -> AccountStatus:
        result = await self._request("GET", f"/stripe/custom-account/{account_id}/status", timeout=timeout)
        with _response_shape("account status"):
            return AccountStatus.model_validate(result)

    async def update_account_step(
        self, account_id: str, step: str, payload: dict, current_step: Optional[int] = None
    ) -> None:
        await self._request(
            "PUT",
            f"/stripe/custom-account/{account_id}/update",
            json={"step": step, "payload": payload, "currentStep": current_step},
        )

    async def verify_account(self, account_id: str) -> None:
        await self._request("POST", f"/stripe/custom-account/{account_id}/verify")

    async def upload_document(self, account_id: str, file: UploadFile, document_type: str, purpose: str) -> str:
        result = await self._request(
            "POST",
            f"/stripe/custom-account/{account_id}/upload-document",
            files={"file": (file.file_name, file.content, file.content_type)},
            data={"documentType": document_type, "purpose": purpose},
        )
        with _response_shape("upload"):
            return result.get("url") or ""

    # ============================================================================
    # AVAILABILITY
    # ============================================================================

    async def list_availability(
        self,
        community_slug: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        teacher_id: Optional[str] = None,
    ) -> list[AvailabilitySlot]:
        params = {
            key: value
            for key, value in (("startDate", start_date), ("endDate", end_date), ("teacher_id", teacher_id))
            if value
        }
        rows = await self._request("GET", f"/community/{community_slug}/teacher-availability", params=params)
        with _response_shape("availability"):
            return [_slot_from_row(row) for row in rows or []]

    async def add_availability_slot(
        self, community_slug: str, date: str, start_time: str, end_time: str
    ) -> AvailabilitySlot:
        row = await self._request(
            "POST",
            f"/community/{community_slug}/teacher-availability",
            json={"date": date, "start_time": start_time, "end_time": end_time},
        )
        with _response_shape("availability slot"):
            return _slot_from_row(row)

    async def delete_availability_slot(self, community_slug: str, slot_id: str) -> None:
        await self._request(
            "DELETE", f"/community/{community_slug}/teacher-availability", params={"slotId": slot_id}
        )

    # ============================================================================
    # BOOKING
    # ============================================================================

    async def create_booking(self, community_slug: str, lesson_id: str, request: dict) -> BookingCreated:
        result = await self._request(
            "POST", f"/community/{community_slug}/private-lessons/{lesson_id}/book", json=request
        )
        with _response_shape("booking"):
            return BookingCreated.model_validate(result)
