from datetime import datetime, timedelta
from typing import Optional, Dict, Any

from jose import ExpiredSignatureError, JWTError, jwt

from app.core.config import settings
from app.core.errors import Unauthenticated


def create_access_token(data: Dict[str, Any],
                        expires_delta: Optional[timedelta] = None) -> str:
    """JWT 액세스 토큰 생성"""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(
            hours=settings.access_token_expire_hours)

    to_encode.update({"exp": expire, "type": "access"})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key,
                             algorithm=settings.algorithm)
    return encoded_jwt


def verify_access_token(token: Optional[str]) -> Dict[str, Any]:
    """
    JWT 액세스 토큰을 검증하고 payload를 반환합니다.

    Raises:
        Unauthenticated: 토큰 누락, 서명 불일치, 만료, 잘못된 타입인 경우
    """
    if not token:
        raise Unauthenticated("missing_token")

    try:
        payload = jwt.decode(token, settings.secret_key,
                             algorithms=[settings.algorithm])
    except ExpiredSignatureError as e:
        raise Unauthenticated("token_expired") from e
    except JWTError as e:
        raise Unauthenticated("invalid_token") from e

    # type 클레임이 있으면 액세스 토큰이어야 한다
    token_type = payload.get("type")
    if token_type is not None and token_type != "access":
        raise Unauthenticated("invalid_token")

    # 일부 발급자는 sub 대신 id 클레임을 쓴다
    subject = payload.get("sub") or payload.get("id")
    if not subject:
        raise Unauthenticated("invalid_token")

    payload["sub"] = str(subject)
    return payload


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """JWT 액세스 토큰 디코드 (실패 시 None)"""
    try:
        return verify_access_token(token)
    except Unauthenticated:
        return None


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Authorization 헤더에서 Bearer 토큰을 추출합니다."""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization.removeprefix("Bearer ").strip()
    return token or None
