import pytest
from datetime import timedelta
from jose import jwt

from app.core.config import settings
from app.core.errors import Unauthenticated
from app.utils.auth import (
    create_access_token,
    decode_access_token,
    extract_bearer_token,
    verify_access_token,
)
from app.websockets.auth import (
    CredentialVerifier,
    authenticate_websocket,
    extract_websocket_token,
    load_identity,
    verify_project_access,
)
from app.websockets.session import Identity


def make_loader(*identities: Identity):
    """메모리 사용자 목록에서 Identity를 찾는 로더"""
    by_id = {identity.user_id: identity for identity in identities}

    async def _load(user_id: str):
        return by_id.get(user_id)

    return _load


class TestAuthUtils:
    """토큰 유틸리티 테스트"""

    def test_jwt_token_creation_and_decode(self):
        """JWT 토큰 생성 및 디코딩 테스트"""
        token = create_access_token({"sub": "123", "email": "test@example.com"})

        decoded = decode_access_token(token)
        assert decoded is not None
        assert decoded["sub"] == "123"
        assert decoded["email"] == "test@example.com"
        assert decoded["type"] == "access"

    def test_invalid_token_decode(self):
        """잘못된 토큰 디코딩 테스트"""
        assert decode_access_token("invalid.token.here") is None

    def test_missing_token(self):
        with pytest.raises(Unauthenticated) as exc_info:
            verify_access_token(None)
        assert exc_info.value.reason == "missing_token"

    def test_expired_token(self):
        """만료된 토큰은 token_expired로 거부"""
        token = create_access_token({"sub": "123"}, expires_delta=timedelta(seconds=-1))

        with pytest.raises(Unauthenticated) as exc_info:
            verify_access_token(token)
        assert exc_info.value.reason == "token_expired"

    def test_forged_signature(self):
        """다른 키로 서명된 토큰 거부 테스트"""
        token = jwt.encode({"sub": "123"}, "not-the-secret", algorithm=settings.algorithm)

        with pytest.raises(Unauthenticated) as exc_info:
            verify_access_token(token)
        assert exc_info.value.reason == "invalid_token"

    def test_refresh_token_type_rejected(self):
        """액세스 토큰이 아닌 타입 거부 테스트"""
        token = jwt.encode({"sub": "123", "type": "refresh"}, settings.secret_key,
                           algorithm=settings.algorithm)

        with pytest.raises(Unauthenticated):
            verify_access_token(token)

    def test_id_claim_accepted_as_subject(self):
        """sub 대신 id 클레임을 쓰는 토큰 허용 테스트"""
        token = jwt.encode({"id": 99}, settings.secret_key, algorithm=settings.algorithm)

        payload = verify_access_token(token)
        assert payload["sub"] == "99"

    def test_token_without_subject_rejected(self):
        token = jwt.encode({"email": "x@example.com"}, settings.secret_key, algorithm=settings.algorithm)

        with pytest.raises(Unauthenticated):
            verify_access_token(token)

    def test_extract_bearer_token(self):
        assert extract_bearer_token("Bearer abc") == "abc"
        assert extract_bearer_token("Basic abc") is None
        assert extract_bearer_token("Bearer ") is None
        assert extract_bearer_token(None) is None


class TestCredentialVerifier:
    """연결 시점 자격 증명 검증 테스트"""

    @pytest.mark.asyncio
    async def test_verify_success(self, alice, auth_token_alice):
        """유효한 토큰은 사용자 신원으로 변환된다"""
        verifier = CredentialVerifier(identity_loader=make_loader(alice))

        identity = await verifier.verify(auth_token_alice)

        assert identity == alice

    @pytest.mark.asyncio
    async def test_unknown_user_rejected(self, bob, auth_token_alice):
        """토큰은 유효하지만 사용자가 없으면 거부"""
        verifier = CredentialVerifier(identity_loader=make_loader(bob))

        with pytest.raises(Unauthenticated) as exc_info:
            await verifier.verify(auth_token_alice)
        assert exc_info.value.reason == "user_not_found"

    @pytest.mark.asyncio
    async def test_load_identity_invalid_object_id(self):
        """ObjectId 형식이 아닌 ID는 DB 조회 없이 None"""
        assert await load_identity("not-an-object-id") is None

    @pytest.mark.asyncio
    async def test_verify_project_access_invalid_ids(self):
        """잘못된 프로젝트 ID로 접근 권한 확인 테스트"""
        assert await verify_project_access("invalid", "invalid") is False


class TestWebSocketTokenExtraction:
    """핸드셰이크 토큰 추출 테스트"""

    def test_header_has_priority(self, fake_websocket):
        websocket = fake_websocket(
            headers={"authorization": "Bearer from-header"},
            query_params={"token": "from-query"},
            cookies={"access_token": "from-cookie"},
        )
        assert extract_websocket_token(websocket) == "from-header"

    def test_query_then_cookie(self, fake_websocket):
        assert extract_websocket_token(fake_websocket(query_params={"token": "q"})) == "q"
        assert extract_websocket_token(fake_websocket(cookies={"access_token": "c"})) == "c"

    def test_no_token(self, fake_websocket):
        assert extract_websocket_token(fake_websocket()) is None


class TestAuthenticateWebSocket:
    """연결 수락 전 인증 테스트"""

    @pytest.mark.asyncio
    async def test_expired_token_closed_before_accept(self, fake_websocket, alice, expired_token_alice):
        """만료된 토큰은 accept 없이 4001로 닫힌다"""
        websocket = fake_websocket(query_params={"token": expired_token_alice})
        verifier = CredentialVerifier(identity_loader=make_loader(alice))

        identity = await authenticate_websocket(websocket, verifier)

        assert identity is None
        assert websocket.accepted is False
        assert websocket.closed is True
        assert websocket.close_code == settings.ws_auth_close_code
        assert websocket.close_reason == "token_expired"

    @pytest.mark.asyncio
    async def test_missing_token_closed(self, fake_websocket, alice):
        websocket = fake_websocket()

        identity = await authenticate_websocket(websocket, CredentialVerifier(make_loader(alice)))

        assert identity is None
        assert websocket.close_code == 4001
        assert websocket.close_reason == "missing_token"

    @pytest.mark.asyncio
    async def test_loader_failure_closes_with_internal_error(self, fake_websocket, auth_token_alice):
        """사용자 조회 중 예외는 1011로 닫힌다"""
        async def broken_loader(user_id):
            raise RuntimeError("database unavailable")

        websocket = fake_websocket(query_params={"token": auth_token_alice})

        identity = await authenticate_websocket(websocket, CredentialVerifier(broken_loader))

        assert identity is None
        assert websocket.close_code == 1011

    @pytest.mark.asyncio
    async def test_valid_token(self, fake_websocket, alice, auth_token_alice):
        websocket = fake_websocket(headers={"authorization": f"Bearer {auth_token_alice}"})

        identity = await authenticate_websocket(websocket, CredentialVerifier(make_loader(alice)))

        assert identity == alice
        assert websocket.closed is False
