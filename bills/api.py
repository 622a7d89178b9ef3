# bills/api.py
import logging

from django.http import HttpResponse
from rest_framework import parsers, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from common.exceptions import NotFoundError

from . import providers
from .serializers import (
    BillDetailSerializer,
    BillListSerializer,
    BillStatusSerializer,
    BillUploadSerializer,
)

logger = logging.getLogger(__name__)


class BillServicesMixin:
    """
    Services are looked up per request; pass fakes with
    View.as_view(ingestion_service=..., query_service=...).
    """
    ingestion_service = None
    query_service = None

    def get_ingestion_service(self):
        return self.ingestion_service or providers.ingestion_service()

    def get_query_service(self):
        return self.query_service or providers.query_service()


class BillUploadView(BillServicesMixin, APIView):
    """
    POST /api/bills/upload
    multipart/form-data: file, billType (purchase|sales)
    """
    permission_classes = [IsAuthenticated]
    parser_classes = [parsers.MultiPartParser, parsers.FormParser]

    def post(self, request):
        serializer = BillUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.get_ingestion_service().ingest(
            uploaded_file=serializer.validated_data["file"],
            transaction_type=serializer.validated_data["billType"],
            user=request.user,
        )
        return Response({
            "message": "Bill uploaded and processed successfully",
            "billId": result.bill_id,
            "data": result.data,
        }, status=status.HTTP_200_OK)


class BillListView(BillServicesMixin, APIView):
    """
    GET /api/bills?limit=10&include_items=1
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        include_items = (request.GET.get("include_items") or "").lower() in ("1", "true", "yes")
        bills = self.get_query_service().list_bills(
            request.user.id,
            limit=request.GET.get("limit"),
            include_items=include_items,
        )
        logger.info(f"Found {len(bills)} bills for user {request.user.id}")
        data = BillListSerializer(bills, many=True, context={"include_items": include_items}).data
        return Response({"data": data}, status=status.HTTP_200_OK)


class BillDetailView(BillServicesMixin, APIView):
    """
    GET    /api/bills/<id>
    PATCH  /api/bills/<id>  { status }
    DELETE /api/bills/<id>
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, bill_id):
        bill = self.get_query_service().get_bill(request.user.id, bill_id)
        return Response({"data": BillDetailSerializer(bill).data}, status=status.HTTP_200_OK)

    def patch(self, request, bill_id):
        serializer = BillStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        bill = self.get_query_service().update_status(
            request.user.id, bill_id, serializer.validated_data["status"]
        )
        logger.info(f"User {request.user.id} set bill {bill.id} status to {bill.status}")
        return Response({"data": BillDetailSerializer(bill).data}, status=status.HTTP_200_OK)

    def delete(self, request, bill_id):
        self.get_query_service().delete_bill(request.user.id, bill_id)
        return Response({"message": "Bill deleted successfully"}, status=status.HTTP_200_OK)


class BillDownloadView(BillServicesMixin, APIView):
    """
    GET /api/bills/<id>/download
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, bill_id):
        downloaded = self.get_query_service().download_bill(request.user.id, bill_id)
        response = HttpResponse(downloaded.content, content_type=downloaded.content_type)
        response["Content-Disposition"] = f'attachment; filename="{downloaded.filename}"'
        response["Content-Length"] = str(len(downloaded.content))
        response["X-Content-Type-Options"] = "nosniff"
        return response


class BillStatsView(BillServicesMixin, APIView):
    """
    GET /api/bills/stats/<user_id>?period=30
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, user_id):
        # stats of other users are as invisible as their bills
        if str(user_id) != str(request.user.id):
            raise NotFoundError("Stats not found")
        stats = self.get_query_service().get_stats(request.user.id, request.GET.get("period"))
        logger.info(f"Stats fetched for user {request.user.id} over {stats['period_days']} days")
        return Response(stats, status=status.HTTP_200_OK)
