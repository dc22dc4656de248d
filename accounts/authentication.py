from http.cookies import SimpleCookie
from urllib.parse import parse_qs

from django.conf import settings
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken
from rest_framework_simplejwt.tokens import RefreshToken


class CookieJWTAuthentication(JWTAuthentication):
    """
    JWT authentication reading the token from the auth cookie first,
    then from the `Authorization: Bearer <token>` header.
    """

    def authenticate(self, request):
        raw_token = request.COOKIES.get(settings.AUTH_COOKIE_NAME)
        if raw_token:
            validated_token = self.get_validated_token(raw_token.encode())
            return self.get_user(validated_token), validated_token
        return super().authenticate(request)


def issue_tokens(user):
    """Refresh/access pair carrying the role and email claims."""
    refresh = RefreshToken.for_user(user)
    refresh["role"] = user.role
    refresh["email"] = user.email
    return {
        "refresh": str(refresh),
        "access": str(refresh.access_token),
    }


def set_auth_cookie(response, access_token):
    lifetime = settings.SIMPLE_JWT["ACCESS_TOKEN_LIFETIME"]
    response.set_cookie(
        settings.AUTH_COOKIE_NAME,
        access_token,
        max_age=int(lifetime.total_seconds()),
        httponly=True,
        secure=settings.AUTH_COOKIE_SECURE,
        samesite=settings.AUTH_COOKIE_SAMESITE,
    )
    return response


def token_from_scope(scope):
    """
    Raw JWT of a WebSocket connection: ?token= query parameter, then the
    auth cookie, then the Authorization header.
    """
    query = parse_qs(scope.get("query_string", b"").decode())
    if query.get("token"):
        return query["token"][0]

    headers = {name.decode().lower(): value.decode() for name, value in scope.get("headers", [])}
    if "cookie" in headers:
        cookie = SimpleCookie()
        cookie.load(headers["cookie"])
        if settings.AUTH_COOKIE_NAME in cookie:
            return cookie[settings.AUTH_COOKIE_NAME].value

    authorization = headers.get("authorization", "")
    if authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return None


def user_from_scope(scope):
    """The authenticated user of a WebSocket scope, or None."""
    raw_token = token_from_scope(scope)
    if not raw_token:
        return None
    authenticator = JWTAuthentication()
    try:
        validated_token = authenticator.get_validated_token(raw_token.encode())
        return authenticator.get_user(validated_token)
    except (InvalidToken, AuthenticationFailed):
        return None
