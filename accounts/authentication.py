from rest_framework import authentication, exceptions

from accounts.middleware import get_bearer_token
from accounts.services.auth_service import AuthService


class JWTAuthentication(authentication.BaseAuthentication):
    keyword = 'Bearer'

    def authenticate(self, request):
        token = get_bearer_token(request)
        if token is None:
            return None

        user = AuthService.get_user_from_token(token)
        if user is None:
            raise exceptions.AuthenticationFailed('Invalid or expired token')

        return user, token

    def authenticate_header(self, request):
        return self.keyword
