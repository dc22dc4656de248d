from django.db.models import Q
from rest_framework import permissions

from .models import Farm

# Defines which farms a user may see and touch


def accessible_farms(user):
    """
    Admins see every farm. Everyone else sees the farms they own, and
    moderators also see the farms they were assigned to.
    """
    if user.is_admin:
        return Farm.objects.all()
    scope = Q(owner=user)
    if user.is_moderator:
        scope |= Q(moderators=user)
    return Farm.objects.filter(scope).distinct()


def can_access_farm(user, farm_id):
    if user.is_admin:
        return True
    return accessible_farms(user).filter(farm_id=farm_id).exists()


def scope_to_user(queryset, user, farm_field="farm"):
    """Restrict any farm-bound queryset to the user's farms."""
    if user.is_admin:
        return queryset
    return queryset.filter(**{f"{farm_field}__in": accessible_farms(user).values("farm_id")})


def farm_id_of(obj):
    """Walks an object back to the farm it belongs to."""
    if isinstance(obj, Farm):
        return obj.farm_id
    # Zone, Device, Sensor, Crop
    if hasattr(obj, "farm_id"):
        return obj.farm_id
    # SensorReading -> sensor -> farm
    if hasattr(obj, "sensor") and obj.sensor is not None:
        return obj.sensor.farm_id
    # ActionLog -> device -> farm
    if hasattr(obj, "device") and obj.device is not None:
        return obj.device.farm_id
    return None


class HasFarmAccess(permissions.BasePermission):
    """
    Farm members can only access objects from their farms, admins can access all.
    Ownership is checked by walking foreign keys back to the farm.
    """
    message = "You do not have access to this farm."

    def has_permission(self, request, view):
        return request.user.is_authenticated

    def has_object_permission(self, request, view, obj):
        if request.user.is_admin:
            return True
        farm_id = farm_id_of(obj)
        if farm_id is None:
            return False
        return can_access_farm(request.user, farm_id)
