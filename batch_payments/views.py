# ============================================================
# Standard Library Imports
# ============================================================
import logging

# ============================================================
# Django Imports
# ============================================================
from django.utils import timezone
from django.utils.dateparse import parse_datetime

# ============================================================
# Third-Party Imports
# ============================================================
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from rest_framework.exceptions import NotFound
from rest_framework.pagination import PageNumberPagination
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

# ============================================================
# Local Application Imports
# ============================================================
from expenses.models import Expense
from home.permissions import CanProcessBatchPayments
from .conf import get_setting
from .exceptions import BatchPaymentError, OtpStateError
from .models import BatchPayment
from .realtime import BROADCAST_CHANNEL
from .serializers import (
    ProcessUtrSerializer,
    GenerateOtpSerializer,
    VerifyOtpSerializer,
    CancelOtpSerializer,
    BatchPaymentSerializer,
    EligibleExpenseSerializer,
)
from .settlement_engine import RequestMeta
from . import services

# ============================================================
# Logger Setup
# ============================================================
logger = logging.getLogger(__name__)


# ============================================================
# Helpers
# ============================================================
def _first_error(errors):
    if isinstance(errors, dict):
        for value in errors.values():
            return _first_error(value)
    if isinstance(errors, (list, tuple)) and errors:
        return _first_error(errors[0])
    return str(errors)


def validation_failed(serializer):
    return Response(
        {
            "success": False,
            "message": _first_error(serializer.errors),
            "errors": serializer.errors,
        },
        status=status.HTTP_400_BAD_REQUEST,
    )


def service_failed(error):
    body = {"success": False, "message": error.message}
    if isinstance(error, OtpStateError):
        body["state"] = error.state
        body["remaining_attempts"] = error.remaining_attempts
    return Response(body, status=error.status_code)


def server_failed(message):
    return Response(
        {"success": False, "message": message},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


# ============================================================
# Pagination
# ============================================================
class BatchHistoryPagination(PageNumberPagination):
    page_query_param = 'page'
    page_size_query_param = 'limit'

    def __init__(self):
        self.page_size = get_setting('HISTORY_PAGE_SIZE')
        self.max_page_size = get_setting('HISTORY_MAX_PAGE_SIZE')

    def get_paginated_response(self, data):
        return Response({
            "success": True,
            "data": {
                "batch_payments": data,
                "pagination": {
                    "total": self.page.paginator.count,
                    "page": self.page.number,
                    "limit": self.page.paginator.per_page,
                    "pages": self.page.paginator.num_pages,
                },
            },
        })


# ============================================================
# Eligible expenses
# ============================================================
class EligibleExpensesView(APIView):
    """
    Lists expenses that can be settled right now.
    """
    permission_classes = [CanProcessBatchPayments]

    @swagger_auto_schema(
        operation_summary="List expenses eligible for payment",
        manual_parameters=[
            openapi.Parameter('site', openapi.IN_QUERY, description="Site code", type=openapi.TYPE_STRING),
        ],
        responses={200: EligibleExpenseSerializer(many=True), 403: "Forbidden"},
        tags=["Batch Payments"]
    )
    def get(self, request):
        try:
            expenses = (
                Expense.objects
                .select_related('submitted_by', 'site')
                .filter(status__in=get_setting('ELIGIBLE_STATUSES'))
                .order_by('created_at')
            )
            site_code = request.query_params.get('site')
            if site_code:
                expenses = expenses.filter(site__code=site_code)

            serializer = EligibleExpenseSerializer(expenses, many=True)
            return Response(
                {
                    "success": True,
                    "data": {
                        "expenses": serializer.data,
                        "count": len(serializer.data),
                    },
                },
                status=status.HTTP_200_OK,
            )
        except Exception as e:
            logger.exception(f"Error in EligibleExpensesView: {str(e)}")
            return server_failed("Failed to fetch eligible expenses")


# ============================================================
# Direct settlement
# ============================================================
class ProcessUtrView(APIView):
    """
    Settles a batch of expenses against an operator supplied UTR number.
    """
    permission_classes = [CanProcessBatchPayments]

    @swagger_auto_schema(
        operation_summary="Process batch payment with UTR",
        request_body=ProcessUtrSerializer(),
        responses={
            200: "Batch processed",
            400: "Validation Error",
            403: "Forbidden",
            404: "No eligible expenses",
            500: "Internal Server Error",
        },
        tags=["Batch Payments"]
    )
    def post(self, request):
        serializer = ProcessUtrSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_failed(serializer)
        data = serializer.validated_data

        try:
            result = services.settle_direct(
                request.user,
                data['expense_ids'],
                data['utr_number'],
                remarks=data.get('payment_remarks'),
                request_meta=RequestMeta.from_request(request),
            )
            return Response(
                {"success": True, "message": result.message, "data": result.as_dict()},
                status=status.HTTP_200_OK,
            )
        except BatchPaymentError as e:
            return service_failed(e)
        except Exception as e:
            logger.exception(f"Error in ProcessUtrView: {str(e)}")
            return server_failed("Failed to process batch payment")


# ============================================================
# OTP flow
# ============================================================
class GenerateOtpView(APIView):
    """
    Issues a batch OTP for exactly the requested expenses and delivers it
    to the operator. The code itself is never part of the response.
    """
    permission_classes = [CanProcessBatchPayments]

    @swagger_auto_schema(
        operation_summary="Generate batch payment OTP",
        request_body=GenerateOtpSerializer(),
        responses={
            200: "OTP sent",
            400: "Validation Error",
            403: "Forbidden",
            404: "No eligible expenses",
            500: "Internal Server Error",
        },
        tags=["Batch Payments"]
    )
    def post(self, request):
        serializer = GenerateOtpSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_failed(serializer)

        try:
            issued = services.issue_batch_otp(
                request.user,
                serializer.validated_data['expense_ids'],
                request_meta=RequestMeta.from_request(request),
            )
            otp = issued.otp
            sent_to = "your email and phone" if 'phone' in issued.channels else "your email"
            return Response(
                {
                    "success": True,
                    "message": f"OTP sent to {sent_to}",
                    "data": {
                        "otp_id": str(otp.pk),
                        "expense_count": otp.expense_count,
                        "total_amount": otp.total_amount,
                        "expires_at": otp.expires_at,
                        "valid_for": services.otp_validity_label(),
                    },
                },
                status=status.HTTP_200_OK,
            )
        except BatchPaymentError as e:
            return service_failed(e)
        except Exception as e:
            logger.exception(f"Error in GenerateOtpView: {str(e)}")
            return server_failed("Failed to generate OTP")


class VerifyAndProcessView(APIView):
    """
    Verifies a batch OTP and settles the expenses it was issued for.
    """
    permission_classes = [CanProcessBatchPayments]

    @swagger_auto_schema(
        operation_summary="Verify OTP and process batch payment",
        request_body=VerifyOtpSerializer(),
        responses={
            200: "Batch processed",
            400: "Invalid, expired, used or locked OTP",
            403: "Forbidden",
            404: "OTP or expenses not found",
            500: "Internal Server Error",
        },
        tags=["Batch Payments"]
    )
    def post(self, request):
        serializer = VerifyOtpSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_failed(serializer)
        data = serializer.validated_data

        try:
            result = services.verify_and_settle(
                request.user,
                data['otp_id'],
                data['otp'],
                remarks=data.get('payment_remarks'),
                reference=data.get('utr_number'),
                request_meta=RequestMeta.from_request(request),
            )
            return Response(
                {"success": True, "message": result.message, "data": result.as_dict()},
                status=status.HTTP_200_OK,
            )
        except BatchPaymentError as e:
            return service_failed(e)
        except Exception as e:
            logger.exception(f"Error in VerifyAndProcessView: {str(e)}")
            return server_failed("Failed to process batch payment")


class CancelOtpView(APIView):
    permission_classes = [CanProcessBatchPayments]

    @swagger_auto_schema(
        operation_summary="Cancel batch payment OTP",
        request_body=CancelOtpSerializer(),
        responses={
            200: "OTP cancelled",
            400: "OTP already used or expired",
            403: "Forbidden",
            404: "OTP not found",
        },
        tags=["Batch Payments"]
    )
    def post(self, request):
        serializer = CancelOtpSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_failed(serializer)

        try:
            services.cancel_batch_otp(request.user, serializer.validated_data['otp_id'])
            return Response(
                {"success": True, "message": "OTP cancelled successfully"},
                status=status.HTTP_200_OK,
            )
        except BatchPaymentError as e:
            return service_failed(e)
        except Exception as e:
            logger.exception(f"Error in CancelOtpView: {str(e)}")
            return server_failed("Failed to cancel OTP")


# ============================================================
# History
# ============================================================
class BatchHistoryView(APIView):
    """
    Batch payments settled by the requesting operator, newest first.
    """
    permission_classes = [CanProcessBatchPayments]

    @swagger_auto_schema(
        operation_summary="Batch payment history",
        manual_parameters=[
            openapi.Parameter('page', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
            openapi.Parameter('limit', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
        ],
        responses={200: BatchPaymentSerializer(many=True), 403: "Forbidden"},
        tags=["Batch Payments"]
    )
    def get(self, request):
        try:
            queryset = BatchPayment.objects.filter(user=request.user).order_by('-created_at', '-id')
            paginator = BatchHistoryPagination()
            page = paginator.paginate_queryset(queryset, request, view=self)
            serializer = BatchPaymentSerializer(page, many=True)
            return paginator.get_paginated_response(serializer.data)
        except NotFound:
            return Response(
                {"success": False, "message": "Invalid page."},
                status=status.HTTP_404_NOT_FOUND,
            )
        except Exception as e:
            logger.exception(f"Error in BatchHistoryView: {str(e)}")
            return server_failed("Failed to fetch batch payment history")


# ============================================================
# Realtime events
# ============================================================
class RealtimeEventsView(APIView):
    """
    Polls the events addressed to the user, the user's role and everyone.
    """

    @swagger_auto_schema(
        operation_summary="Poll realtime events",
        manual_parameters=[
            openapi.Parameter(
                'since', openapi.IN_QUERY, type=openapi.TYPE_STRING,
                description="ISO 8601 timestamp; only newer events are returned",
            ),
        ],
        responses={200: "Events", 400: "Invalid timestamp"},
        tags=["Realtime"]
    )
    def get(self, request):
        since = None
        raw_since = request.query_params.get('since')
        if raw_since:
            try:
                # well formed but out of range values raise instead of returning None
                since = parse_datetime(raw_since.replace(' ', '+'))
            except ValueError:
                since = None
            if since is None:
                return Response(
                    {"success": False, "message": "Invalid 'since' timestamp"},
                    status=status.HTTP_400_BAD_REQUEST,
                )
            if timezone.is_naive(since):
                since = timezone.make_aware(since)

        try:
            channels = [request.user.user_channel, request.user.role_channel, BROADCAST_CHANNEL]
            events = services.get_event_publisher().fetch(channels, since=since)
            return Response(
                {"success": True, "data": {"channels": channels, "events": events}},
                status=status.HTTP_200_OK,
            )
        except Exception as e:
            logger.exception(f"Error in RealtimeEventsView: {str(e)}")
            return server_failed("Failed to fetch events")
