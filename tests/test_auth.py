import httpx
import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from dancehub import auth


@pytest.fixture
def auth_server(monkeypatch):
    """Point token verification at an in-process Supabase stand-in"""
    monkeypatch.setattr(auth, "SUPABASE_URL", "https://auth.dancehub.test/")
    monkeypatch.setattr(auth, "SUPABASE_ANON_KEY", "anon-key")

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/auth/v1/user"
        assert request.headers["apikey"] == "anon-key"
        if request.headers["Authorization"] == "Bearer good-token":
            return httpx.Response(200, json={"id": "user-1", "email": "maria@example.com"})
        return httpx.Response(401, json={"msg": "invalid JWT"})

    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        auth.httpx, "AsyncClient", lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs)
    )


def bearer(token):
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


async def test_current_user_from_token(auth_server):
    user = await auth.get_current_user(bearer("good-token"))
    assert user == auth.AuthUser(id="user-1", email="maria@example.com")


async def test_rejected_token(auth_server):
    with pytest.raises(HTTPException) as exc_info:
        await auth.get_current_user(bearer("expired-token"))
    assert exc_info.value.status_code == 401


async def test_missing_credentials():
    with pytest.raises(HTTPException) as exc_info:
        await auth.get_current_user(None)
    assert exc_info.value.detail == "Authentication required"


async def test_optional_user(auth_server):
    assert await auth.get_optional_user(None) is None
    assert await auth.get_optional_user(bearer("expired-token")) is None
    assert (await auth.get_optional_user(bearer("good-token"))).id == "user-1"
