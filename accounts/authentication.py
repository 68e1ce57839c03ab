# authentication.py
from rest_framework.authentication import BaseAuthentication
from rest_framework.exceptions import AuthenticationFailed
import jwt
from .models import User
from .utils import decode_jwt_token


class JWTAuthentication(BaseAuthentication):
    """
    Resolves the bidder identity from a Bearer token issued by the login service.
    """
    keyword = 'Bearer'

    def authenticate(self, request):
        auth = request.headers.get('Authorization')

        if not auth or not auth.startswith(f'{self.keyword} '):
            return None

        token = auth.split(' ', 1)[1].strip()

        try:
            payload = decode_jwt_token(token)
        except jwt.ExpiredSignatureError:
            raise AuthenticationFailed("Token expired")
        except jwt.InvalidTokenError:
            raise AuthenticationFailed("Invalid token")

        try:
            user = User.objects.get(id=payload["user_id"], is_active=True)
        except (KeyError, User.DoesNotExist):
            raise AuthenticationFailed("User not found")

        return (user, token)

    def authenticate_header(self, request):
        return self.keyword
