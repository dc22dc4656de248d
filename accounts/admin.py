from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import User


@admin.register(User)
class SmartFarmUserAdmin(UserAdmin):
    list_display = ("email", "username", "role", "status", "is_staff", "date_joined")
    list_filter = ("role", "status", "is_staff")
    search_fields = ("email", "username", "first_name", "last_name")
    ordering = ("-date_joined",)
    fieldsets = UserAdmin.fieldsets + (
        ("Smart Farm", {"fields": ("role", "status", "phone", "city", "country")}),
    )
