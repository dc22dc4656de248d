from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from .views import get_current_user, login, logout, register

urlpatterns = [
    path("register/", register, name="auth-register"),
    path("login/", login, name="auth-login"),
    path("logout/", logout, name="auth-logout"),
    path("refresh/", TokenRefreshView.as_view(), name="auth-refresh"),
    path("me/", get_current_user, name="auth-me"),
]
