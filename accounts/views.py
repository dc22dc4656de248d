import logging

from django.conf import settings
from django.contrib.auth import authenticate, get_user_model
from django.contrib.auth.models import update_last_login
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, authentication_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from administration.events import emit
from smartfarm_backend.exceptions import Conflict, InvalidCredentials
from .authentication import issue_tokens, set_auth_cookie
from .serializers import LoginSerializer, RegisterSerializer, UserSerializer

logger = logging.getLogger(__name__)
User = get_user_model()


@api_view(["POST"])
@authentication_classes([])
@permission_classes([AllowAny])
def register(request):
    """
    POST /api/v1/auth/register/
    New accounts are farmers waiting for admin approval.
    """
    serializer = RegisterSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    if User.objects.filter(email__iexact=data["email"]).exists():
        raise Conflict("An account with this email already exists.")

    user = User.objects.create_user(
        username=data["email"],
        email=data["email"],
        password=data["password"],
        first_name=data.get("first_name", ""),
        last_name=data.get("last_name", ""),
        phone=data.get("phone", ""),
        city=data.get("city", ""),
        country=data.get("country", ""),
        role=User.ROLE_FARMER,
        status=User.STATUS_PENDING,
    )
    logger.info("Registered user %s (pending approval)", user.email)

    emit(
        User,
        "user.registered",
        userId=str(user.id),
        email=user.email,
        firstName=user.first_name,
        lastName=user.last_name,
        role=user.role,
        status=user.status,
    )
    return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


@api_view(["POST"])
@authentication_classes([])
@permission_classes([AllowAny])
def login(request):
    """
    POST /api/v1/auth/login/
    Returns the token pair and sets the auth cookie.
    """
    serializer = LoginSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    user = authenticate(
        request,
        email=serializer.validated_data["email"].strip().lower(),
        password=serializer.validated_data["password"],
    )
    if user is None:
        raise InvalidCredentials("Invalid email or password.")
    if user.status != User.STATUS_ACTIVE:
        logger.info("Login refused for %s: status=%s", user.email, user.status)
        raise InvalidCredentials("Account is not active.")

    update_last_login(None, user)
    tokens = issue_tokens(user)
    response = Response({**tokens, "user": UserSerializer(user).data})
    return set_auth_cookie(response, tokens["access"])


@api_view(["POST"])
@authentication_classes([])
@permission_classes([AllowAny])
def logout(request):
    """POST /api/v1/auth/logout/"""
    response = Response({"detail": "Logged out."})
    response.delete_cookie(settings.AUTH_COOKIE_NAME, samesite=settings.AUTH_COOKIE_SAMESITE)
    return response


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def get_current_user(request):
    """
    GET /api/v1/auth/me/
    Returns current user information including role
    """
    return Response(UserSerializer(request.user).data)
