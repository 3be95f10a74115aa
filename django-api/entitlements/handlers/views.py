"""HTTP handlers (views) - handle HTTP concerns only.

Handlers:
- Parse requests and validate input format
- Call services for business logic
- Map domain errors to HTTP responses
- Never contain business logic
- Never expose internal error details
"""

from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from entitlements.container import get_engine
from entitlements.domain.errors import DomainError, ErrorCode
from entitlements.domain.results import (
    InvalidSignature,
    RedemptionResult,
    TicketNotFound,
)
from entitlements.handlers.serializers import (
    QrValidationRequestSerializer,
    SubscriptionCheckSerializer,
    TicketSerializer,
)

SIGNATURE_HEADER = "Stripe-Signature"

ERROR_STATUS = {
    ErrorCode.INVALID_TICKET_ID: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_SUBSCRIPTION_ID: status.HTTP_400_BAD_REQUEST,
    ErrorCode.SUBSCRIPTION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.INVALID_QR_CODE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.QR_CODE_EXPIRED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.STORE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def error_response(error: DomainError) -> Response:
    """Map a domain error to a response carrying only its code and safe message."""
    return Response(
        {"error": {"code": error.code.value, "message": error.message}},
        status=ERROR_STATUS.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
    )


def redemption_response(result: RedemptionResult) -> Response:
    if isinstance(result, TicketNotFound):
        return Response(
            {"result": result.outcome, "ticket": None},
            status=status.HTTP_404_NOT_FOUND,
        )
    return Response(
        {"result": result.outcome, "ticket": TicketSerializer(result.ticket).data}
    )


class TicketRedemptionView(APIView):
    """Handler for POST /api/tickets/{ticket_id}/redeem"""

    permission_classes = [AllowAny]

    def post(self, request: Request, ticket_id: str) -> Response:
        try:
            result = get_engine().redemption_guard.redeem(ticket_id)
        except DomainError as error:
            return error_response(error)
        return redemption_response(result)


class SubscriptionStatusView(APIView):
    """Handler for GET /api/subscriptions/{subscription_id}/status"""

    permission_classes = [AllowAny]

    def get(self, request: Request, subscription_id: str) -> Response:
        try:
            check = get_engine().subscriptions.check(subscription_id)
        except DomainError as error:
            return error_response(error)
        return Response(SubscriptionCheckSerializer(check).data)


class SubscriptionReferenceView(APIView):
    """Handler for GET /api/subscriptions/by-reference/{reference}"""

    permission_classes = [AllowAny]

    def get(self, request: Request, reference: str) -> Response:
        try:
            check = get_engine().subscriptions.check_by_gateway_reference(reference)
        except DomainError as error:
            return error_response(error)
        return Response(SubscriptionCheckSerializer(check).data)


class StripeWebhookView(APIView):
    """Handler for POST /api/webhooks/stripe

    Acknowledges every verified delivery with ``received: true`` whatever
    its classification, malformed events included. Only an invalid
    signature is answered with a client error.
    """

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request: Request) -> Response:
        try:
            result = get_engine().reconciler.reconcile(
                request.body, request.headers.get(SIGNATURE_HEADER)
            )
        except DomainError as error:
            return error_response(error)

        if isinstance(result, InvalidSignature):
            return Response(
                {"error": {"code": "INVALID_SIGNATURE", "message": "Invalid signature"}},
                status=status.HTTP_400_BAD_REQUEST,
            )
        return Response({"received": True, "outcome": result.outcome})


class QrValidationView(APIView):
    """Handler for POST /api/validate-qr"""

    permission_classes = [AllowAny]

    def post(self, request: Request) -> Response:
        serializer = QrValidationRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {"error": {"code": ErrorCode.INVALID_QR_CODE.value, "message": "QR data is required"}},
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            result = get_engine().qr_validator.validate(serializer.validated_data["qrData"])
        except DomainError as error:
            return error_response(error)

        if result.redemption is not None:
            return redemption_response(result.redemption)
        return Response(SubscriptionCheckSerializer(result.subscription_check).data)
