from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema

from .serializers import (
    AllocationRequestSerializer,
    AllocationSummarySerializer,
    AdjustSourcesSerializer,
    SourcesEditSerializer,
    PaymentSourceSerializer,
    CheckoutAttemptSerializer,
    CheckoutAttemptCreateSerializer,
    CheckoutAttemptValidateSerializer,
    CheckoutAttemptOpenedSerializer,
    CheckoutAttemptValidatedSerializer,
    CheckoutAttemptSubmittedSerializer,
)
from .services import (
    SessionContext,
    summarize_allocation,
    select_source,
    deselect_source,
    change_amount_type,
    split_evenly,
    get_default_service_fee_percent,
    get_minimum_service_fee,
    list_attempts,
    get_attempt_for_user,
    open_attempt,
    validate_attempt,
    submit_attempt,
    reopen_attempt,
    # Exceptions
    CheckoutAttemptNotFoundError,
    InvalidStateTransitionError,
    SubmissionInProgressError,
    UnknownPaymentSourceError,
)


@extend_schema(
    request=AllocationRequestSerializer,
    responses={200: AllocationSummarySerializer},
    description="Compute fee, totals, validation and per-source charges for an allocation.",
    tags=['checkout'],
)
@api_view(['POST'])
@permission_classes([AllowAny])
def quote(request):
    """
    Quote an allocation without storing anything.

    Allocation problems come back with 200 and ``isValid: false``; only a
    malformed request is a 400.
    """
    serializer = AllocationRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    fee_percent = serializer.validated_data.get('service_fee_percent')
    if fee_percent is None:
        fee_percent = get_default_service_fee_percent()

    summary = summarize_allocation(
        serializer.validated_data['cart_total'],
        fee_percent,
        serializer.get_sources(),
        minimum_fee=get_minimum_service_fee(),
    )
    return Response(AllocationSummarySerializer(summary).data)


@extend_schema(
    request=AdjustSourcesSerializer,
    responses={200: PaymentSourceSerializer(many=True)},
    description="Select, deselect or change the amount type of one payment source.",
    tags=['checkout'],
)
@api_view(['POST'])
@permission_classes([AllowAny])
def adjust_sources(request):
    """Apply one editing action and return the updated sources."""
    serializer = AdjustSourcesSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    data = serializer.validated_data
    sources = serializer.get_sources()
    try:
        if data['action'] == AdjustSourcesSerializer.SELECT:
            sources = select_source(sources, data['source_id'], data['cart_total'])
        elif data['action'] == AdjustSourcesSerializer.DESELECT:
            sources = deselect_source(sources, data['source_id'])
        else:
            sources = change_amount_type(
                sources, data['source_id'], data['amount_type'], data['cart_total']
            )
    except UnknownPaymentSourceError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    return Response(PaymentSourceSerializer(sources, many=True).data)


@extend_schema(
    request=SourcesEditSerializer,
    responses={200: PaymentSourceSerializer(many=True)},
    description="Split the cart total into equal fixed shares (Pay Equal).",
    tags=['checkout'],
)
@api_view(['POST'])
@permission_classes([AllowAny])
def split_sources_evenly(request):
    serializer = SourcesEditSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    sources = split_evenly(serializer.get_sources(), serializer.validated_data['cart_total'])
    return Response(PaymentSourceSerializer(sources, many=True).data)


class CheckoutAttemptPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


class CheckoutAttemptViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    """
    ViewSet for checkout attempts.

    All business logic is handled by services.

    list: Get the current user's attempts (newest first)
    create: Open an attempt for a cart
    retrieve: Get one attempt
    validate: Validate an allocation and snapshot the charge
    submit: Charge the validated snapshot and issue the virtual card
    reopen: Return a failed attempt to collecting
    """

    serializer_class = CheckoutAttemptSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = CheckoutAttemptPagination

    def get_queryset(self):
        """Return only the current user's attempts."""
        return list_attempts(session=SessionContext.from_request(self.request))

    @extend_schema(request=CheckoutAttemptCreateSerializer, responses={201: CheckoutAttemptOpenedSerializer})
    def create(self, request):
        """Open a checkout attempt; returns it with the user's saved sources."""
        serializer = CheckoutAttemptCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        attempt, sources = open_attempt(
            session=SessionContext.from_request(request),
            cart_total=serializer.validated_data['cart_total'],
            card_name=serializer.validated_data.get('card_name', ''),
            currency=serializer.validated_data.get('currency'),
        )

        output_serializer = CheckoutAttemptOpenedSerializer({'attempt': attempt, 'sources': sources})
        return Response(output_serializer.data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        try:
            attempt = get_attempt_for_user(
                session=SessionContext.from_request(request), attempt_id=pk
            )
        except CheckoutAttemptNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        return Response(CheckoutAttemptSerializer(attempt).data)

    @extend_schema(request=CheckoutAttemptValidateSerializer, responses={200: CheckoutAttemptValidatedSerializer})
    @action(detail=True, methods=['post'])
    def validate(self, request, pk=None):
        """
        Validate sources against the attempt's cart total.

        POST /api/checkout/attempts/{id}/validate/
        """
        serializer = CheckoutAttemptValidateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            attempt, summary = validate_attempt(
                session=SessionContext.from_request(request),
                attempt_id=pk,
                sources=serializer.get_sources(),
            )
        except CheckoutAttemptNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except (SubmissionInProgressError, InvalidStateTransitionError) as e:
            return Response({'error': str(e)}, status=status.HTTP_409_CONFLICT)
        except UnknownPaymentSourceError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        output_serializer = CheckoutAttemptValidatedSerializer({'attempt': attempt, 'allocation': summary})
        return Response(output_serializer.data)

    @extend_schema(request=None, responses={200: CheckoutAttemptSubmittedSerializer})
    @action(detail=True, methods=['post'])
    def submit(self, request, pk=None):
        """
        Charge the validated snapshot.

        POST /api/checkout/attempts/{id}/submit/

        A declined or failed charge still answers 200 with status ``failed``;
        the issued card (with CVV) is only ever returned here.
        """
        try:
            attempt, card = submit_attempt(
                session=SessionContext.from_request(request), attempt_id=pk
            )
        except CheckoutAttemptNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except (SubmissionInProgressError, InvalidStateTransitionError) as e:
            return Response({'error': str(e)}, status=status.HTTP_409_CONFLICT)

        output_serializer = CheckoutAttemptSubmittedSerializer({'attempt': attempt, 'virtual_card': card})
        return Response(output_serializer.data)

    @extend_schema(request=None, responses={200: CheckoutAttemptSerializer})
    @action(detail=True, methods=['post'])
    def reopen(self, request, pk=None):
        """
        Return a failed attempt to collecting.

        POST /api/checkout/attempts/{id}/reopen/
        """
        try:
            attempt = reopen_attempt(
                session=SessionContext.from_request(request), attempt_id=pk
            )
        except CheckoutAttemptNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except InvalidStateTransitionError as e:
            return Response({'error': str(e)}, status=status.HTTP_409_CONFLICT)

        return Response(CheckoutAttemptSerializer(attempt).data)
