"""Quote intake (public) and admin workflow endpoints."""
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.response import Response

from .choices import EmailStatus, QuoteSort
from .serializers import QuoteSerializer, QuoteStatusUpdateSerializer
from . import services

EMAIL_WARNINGS = {
    EmailStatus.FAILED: "Quote saved, but the confirmation email could not be sent.",
    EmailStatus.SKIPPED: "Quote saved, but email delivery is currently unavailable.",
}


class QuoteViewSet(viewsets.ViewSet):
    """
    POST /api/v1/quotes/               anyone may submit a quote request
    GET  /api/v1/quotes/               staff; ?status=&sort=newest|oldest&page=&limit=
    GET  /api/v1/quotes/{id}/          staff
    PUT  /api/v1/quotes/{id}/status/   staff; {"status": ..., "adminNotes": ...}
    """

    def get_permissions(self):
        if self.action == "create":
            return [AllowAny()]
        return [IsAdminUser()]

    def create(self, request):
        quote = services.create_quote(request.data)
        # Re-read for email_status written by inline or fast workers.
        quote = services.get_quote(quote.pk)
        payload = {
            "success": True,
            "message": "Quote request submitted successfully",
            "data": QuoteSerializer(quote).data,
        }
        warning = EMAIL_WARNINGS.get(quote.email_status)
        if warning:
            payload["warning"] = warning
        return Response(payload, status=status.HTTP_201_CREATED)

    def list(self, request):
        params = request.query_params
        result = services.list_quotes(
            status=params.get("status"),
            sort=params.get("sort") or QuoteSort.NEWEST,
            page=params.get("page") or 1,
            limit=params.get("limit"),
        )
        return Response({
            "success": True,
            "count": len(result.items),
            "total": result.total,
            "page": result.page,
            "pages": result.pages,
            "data": QuoteSerializer(result.items, many=True).data,
        })

    def retrieve(self, request, pk=None):
        quote = services.get_quote(pk)
        return Response({"success": True, "data": QuoteSerializer(quote).data})

    @action(detail=True, methods=["put"], url_path="status")
    def set_status(self, request, pk=None):
        """Move a quote through the workflow and email the customer."""
        serializer = QuoteStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        quote = services.update_status(
            pk,
            serializer.validated_data["status"],
            serializer.validated_data.get("admin_notes"),
        )
        return Response({
            "success": True,
            "message": "Quote status updated successfully",
            "data": QuoteSerializer(quote).data,
        })
