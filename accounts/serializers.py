from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import User


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "email", "name", "is_staff", "last_login"]
        read_only_fields = fields


class StaffTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    {"email", "password"} -> {"access", "refresh"}. Non-staff accounts are
    refused by SIMPLE_JWT["USER_AUTHENTICATION_RULE"].
    """

    default_error_messages = {
        "no_active_account": "No active staff account found with the given credentials.",
    }

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token["email"] = user.email
        token["name"] = user.name
        return token
