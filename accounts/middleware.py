from accounts.services.auth_service import AuthService


def get_bearer_token(request):
    header = request.META.get('HTTP_AUTHORIZATION', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


class JWTAuthenticationMiddleware:
    """Resolves an ``Authorization: Bearer`` token into ``request.user``."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        token = get_bearer_token(request)
        if token:
            user = AuthService.get_user_from_token(token)
            if user is not None:
                request.user = user
        return self.get_response(request)
