from datetime import datetime, timezone

import jwt
from django.conf import settings


def create_jwt_token(payload: dict, expires_in=None) -> str:
    """Create a signed JWT carrying ``payload`` and an expiry."""
    lifetime = expires_in or settings.JWT_ACCESS_TOKEN_LIFETIME
    issued_at = datetime.now(timezone.utc)
    claims = dict(payload)
    claims.update({
        'exp': issued_at + lifetime,
        'iat': issued_at,
    })
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_jwt_token(token: str) -> dict:
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


def token_for_user(user) -> str:
    return create_jwt_token({'user_id': user.id, 'phone_number': user.phone_number})
