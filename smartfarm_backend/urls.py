from django.contrib import admin
from django.urls import include, path

# Main URL patterns
urlpatterns = [
    path("admin/", admin.site.urls),  # Django admin interface
    path("api/v1/auth/", include("accounts.urls")),
    path("api/v1/admin/", include("administration.urls")),  # Admin console API
    path("api/v1/", include("monitoring.urls")),  # Farm monitoring API
]
