from django.contrib.auth.models import AbstractUser, UserManager
from django.db import models


class SmartFarmUserManager(UserManager):
    def create_superuser(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault("role", User.ROLE_ADMIN)
        extra_fields.setdefault("status", User.STATUS_ACTIVE)
        return super().create_superuser(username, email, password, **extra_fields)


class User(AbstractUser):
    """
    Platform account. Logs in with email.
    Fields:
        role: admin / farmer / moderator, checked by the API permissions
        status: only active accounts may log in
        phone, city, country: contact details shown in the admin console
    """
    ROLE_ADMIN = "admin"
    ROLE_FARMER = "farmer"
    ROLE_MODERATOR = "moderator"
    ROLE_CHOICES = [
        (ROLE_ADMIN, "Admin"),
        (ROLE_FARMER, "Farmer"),
        (ROLE_MODERATOR, "Moderator"),
    ]

    STATUS_ACTIVE = "active"
    STATUS_PENDING = "pending"
    STATUS_INACTIVE = "inactive"
    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Active"),
        (STATUS_PENDING, "Pending approval"),
        (STATUS_INACTIVE, "Inactive"),
    ]

    email = models.EmailField(
        unique=True,
        verbose_name="Email"
    )
    role = models.CharField(
        max_length=20,
        choices=ROLE_CHOICES,
        default=ROLE_FARMER,
        verbose_name="Role"
    )
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_ACTIVE,
        verbose_name="Status"
    )
    phone = models.CharField(max_length=30, blank=True, default="", verbose_name="Phone")
    city = models.CharField(max_length=100, blank=True, default="", verbose_name="City")
    country = models.CharField(max_length=100, blank=True, default="", verbose_name="Country")
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Created At")
    updated_at = models.DateTimeField(auto_now=True, verbose_name="Updated At")

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["username"]

    objects = SmartFarmUserManager()

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.email} ({self.role})"

    @property
    def is_admin(self):
        return self.role == self.ROLE_ADMIN or self.is_superuser

    @property
    def is_moderator(self):
        return self.role == self.ROLE_MODERATOR
