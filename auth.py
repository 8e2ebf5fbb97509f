from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from errors import AuthError

bearer_scheme = HTTPBearer(auto_error=False)


class TokenIdentityProvider:
    """Signs and verifies bearer tokens carrying the user id."""

    def __init__(self, secret_key: str, max_age_seconds: int = 60 * 60 * 24 * 7):
        self.serializer = URLSafeTimedSerializer(secret_key, salt="loan-advisor-auth")
        self.max_age_seconds = max_age_seconds

    def issue_token(self, user_id: str) -> str:
        return self.serializer.dumps({"user_id": str(user_id)})

    def verify(self, token: Optional[str]) -> str:
        if not token:
            raise AuthError("No authorization header", code="missing_credential")

        try:
            data = self.serializer.loads(token, max_age=self.max_age_seconds)
        except SignatureExpired as e:
            raise AuthError("Authentication token has expired", code="expired_token") from e
        except BadSignature as e:
            raise AuthError("Invalid authorization", code="invalid_token") from e

        user_id = data.get("user_id") if isinstance(data, dict) else None
        if not user_id:
            raise AuthError("Invalid authorization", code="invalid_token")

        return str(user_id)


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    identity: TokenIdentityProvider = request.app.state.identity
    token = credentials.credentials if credentials else None
    return identity.verify(token)
