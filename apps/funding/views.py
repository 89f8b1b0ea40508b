from django.http import Http404
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema

from .serializers import PaymentMethodSerializer, PaymentMethodCreateSerializer
from .services import (
    list_payment_methods,
    get_payment_method,
    create_payment_method,
    set_default_payment_method,
    delete_payment_method,
    PaymentMethodNotFoundError,
)


class PaymentMethodViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    ViewSet for the shopper's saved payment methods.

    list: Get the current user's payment methods (default first)
    create: Save a new payment method
    retrieve: Get a specific payment method
    destroy: Delete a payment method
    set_default: Make a payment method the default
    """

    serializer_class = PaymentMethodSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        """Return only the current user's payment methods."""
        return list_payment_methods(user=self.request.user)

    def get_serializer_class(self):
        if self.action == 'create':
            return PaymentMethodCreateSerializer
        return PaymentMethodSerializer

    @extend_schema(responses={201: PaymentMethodSerializer})
    def create(self, request, *args, **kwargs):
        """Save a new payment method."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        method = create_payment_method(user=request.user, **serializer.validated_data)

        output_serializer = PaymentMethodSerializer(method)
        return Response(output_serializer.data, status=status.HTTP_201_CREATED)

    def destroy(self, request, pk=None):
        """Delete a payment method."""
        try:
            delete_payment_method(user=request.user, method_id=pk)
        except PaymentMethodNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(request=None, responses={200: PaymentMethodSerializer})
    @action(detail=True, methods=['post'])
    def set_default(self, request, pk=None):
        """
        Make this payment method the default.

        POST /api/funding/payment-methods/{id}/set_default/
        """
        try:
            method = set_default_payment_method(user=request.user, method_id=pk)
        except PaymentMethodNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        return Response(PaymentMethodSerializer(method).data)

    def get_object(self):
        """Look up through the service so foreign ids behave like missing ones."""
        try:
            return get_payment_method(user=self.request.user, method_id=self.kwargs['pk'])
        except PaymentMethodNotFoundError:
            raise Http404
