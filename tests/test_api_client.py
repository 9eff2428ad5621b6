import json

import httpx
import pytest

from dancehub.domain.onboarding.gateway import ACCOUNT_EXISTS_ERROR, UploadFile
from dancehub.domain.onboarding.wizard import OnboardingWizard
from dancehub.services.api_client import DanceHubApiClient
from dancehub.shared.errors import GatewayError

from .fakes import COMMUNITY_ID, COMMUNITY_SLUG, valid_business_info


def client_for(handler):
    return DanceHubApiClient(
        base_url="https://api.dancehub.test/", access_token="token-1", transport=httpx.MockTransport(handler)
    )


async def test_create_account_sends_bearer_token():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"accountId": "acct_1", "currentStep": 1})

    account_id = await client_for(handler).create_payment_account("community-1", "US", "individual")

    assert account_id == "acct_1"
    assert seen["url"] == "https://api.dancehub.test/stripe/custom-account/create"
    assert seen["auth"] == "Bearer token-1"
    assert seen["body"] == {"communityId": "community-1", "country": "US", "businessType": "individual"}


async def test_error_body_becomes_gateway_error():
    def handler(request):
        return httpx.Response(400, json={"error": ACCOUNT_EXISTS_ERROR})

    with pytest.raises(GatewayError) as exc_info:
        await client_for(handler).create_payment_account("community-1", "US", "individual")

    assert exc_info.value.message == ACCOUNT_EXISTS_ERROR
    assert exc_info.value.status_code == 400


async def test_non_json_error_body():
    def handler(request):
        return httpx.Response(502, text="Bad Gateway")

    with pytest.raises(GatewayError) as exc_info:
        await client_for(handler).verify_account("acct_1")
    assert exc_info.value.status_code == 502


async def test_transport_failure_becomes_gateway_error():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    with pytest.raises(GatewayError):
        await client_for(handler).get_community("salsa-club")


async def test_account_status_parsing():
    def handler(request):
        return httpx.Response(
            200,
            json={
                "accountId": "acct_1",
                "chargesEnabled": True,
                "payoutsEnabled": False,
                "detailsSubmitted": True,
                "requirements": {
                    "currentlyDue": [{"code": "external_account", "message": "Bank account information required", "category": "banking"}],
                    "pastDue": [],
                    "eventuallyDue": [],
                    "pendingVerification": [],
                    "currentDeadline": None,
                    "disabledReason": None,
                },
                "suggestedNextStep": "bank_account",
            },
        )

    status = await client_for(handler).get_account_status("acct_1")

    assert status.charges_enabled
    assert not status.payouts_enabled
    assert status.requirements.currently_due[0].code == "external_account"
    assert status.verification_required


async def test_availability_rows_map_to_slots():
    def handler(request):
        assert request.url.params["startDate"] == "2099-01-01"
        assert "teacher_id" not in request.url.params
        return httpx.Response(
            200,
            json=[
                {
                    "id": "slot-1",
                    "teacher_id": "owner-1",
                    "community_id": "community-1",
                    "availability_date": "2099-01-10",
                    "start_time": "10:00",
                    "end_time": "11:00",
                    "is_active": True,
                }
            ],
        )

    slots = await client_for(handler).list_availability("salsa-club", start_date="2099-01-01")

    assert slots[0].date == "2099-01-10"
    assert slots[0].id == "slot-1"


async def test_upload_is_multipart():
    def handler(request):
        assert request.headers["content-type"].startswith("multipart/form-data")
        assert b'name="documentType"' in request.content
        return httpx.Response(200, json={"fileId": "file_1", "url": "https://files.stripe.test/id.png"})

    url = await client_for(handler).upload_document(
        "acct_1", UploadFile("id.png", "image/png", b"\x89PNG"), "identity_document", "identity_document"
    )
    assert url == "https://files.stripe.test/id.png"


async def test_create_booking():
    def handler(request):
        assert request.url.path == "/community/salsa-club/private-lessons/lesson-1/book"
        return httpx.Response(
            200,
            json={
                "booking": {"id": "booking-1"},
                "clientSecret": "pi_1_secret_x",
                "stripeAccountId": "acct_connected",
                "price": 45.0,
            },
        )

    created = await client_for(handler).create_booking("salsa-club", "lesson-1", {"student_email": "a@b.co"})

    assert created.client_secret == "pi_1_secret_x"
    assert created.stripe_account_id == "acct_connected"
    assert created.price == 45.0


@pytest.mark.parametrize(
    "call",
    [
        lambda client: client.get_community("salsa-club"),
        lambda client: client.get_account_status("acct_1"),
        lambda client: client.list_availability("salsa-club"),
    ],
)
async def test_non_json_success_body_becomes_gateway_error(call):
    def handler(request):
        return httpx.Response(200, text="<html>maintenance</html>")

    with pytest.raises(GatewayError):
        await call(client_for(handler))


@pytest.mark.parametrize(
    "body, call",
    [
        ({"ok": True}, lambda client: client.create_payment_account("community-1", "US", "individual")),
        ({"accountId": "acct_1", "chargesEnabled": "sometimes"}, lambda client: client.get_account_status("acct_1")),
        ([{"id": "slot-1"}], lambda client: client.list_availability("salsa-club")),
        ({"booking": {}}, lambda client: client.create_booking("salsa-club", "lesson-1", {})),
        (["file_1"], lambda client: client.upload_document("acct_1", UploadFile("id.png", "image/png", b"x"), "t", "p")),
    ],
)
async def test_unexpected_body_shape_becomes_gateway_error(body, call):
    def handler(request):
        return httpx.Response(200, json=body)

    with pytest.raises(GatewayError) as exc_info:
        await call(client_for(handler))
    assert exc_info.value.message.startswith("Unexpected")


async def test_wizard_survives_garbled_api(notifier):
    def handler(request):
        if request.url.path == "/stripe/custom-account/create":
            return httpx.Response(200, json={"ok": True})
        return httpx.Response(200, text="<html>maintenance</html>")

    wizard = OnboardingWizard(COMMUNITY_ID, COMMUNITY_SLUG, client_for(handler), notifier=notifier)

    await wizard.open()
    assert wizard.data.account_id is None

    wizard.update_data(business_info=valid_business_info())
    assert not await wizard.next()
    assert wizard.current_step == 1
    assert notifier.of_level("error") == ["Unexpected account response from DanceHub API"]
    wizard.close()
