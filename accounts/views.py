from rest_framework import generics
from rest_framework.permissions import IsAdminUser
from rest_framework_simplejwt.views import TokenObtainPairView

from .serializers import StaffTokenObtainPairSerializer, UserSerializer


class StaffTokenObtainPairView(TokenObtainPairView):
    serializer_class = StaffTokenObtainPairSerializer


class CurrentUserView(generics.RetrieveAPIView):
    """The staff account behind the bearer token."""

    serializer_class = UserSerializer
    permission_classes = [IsAdminUser]

    def get_object(self):
        return self.request.user
