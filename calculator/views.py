# calculator/views.py

import logging

from django.db.models import Case, Count, IntegerField, Prefetch, Sum, Value, When
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.response import Response

from .constants import (
    CONFIG_BULK_DISCOUNT_PERCENTAGE,
    CONFIG_BULK_DISCOUNT_THRESHOLD,
    CONFIG_CERTIFICATE_DISCOUNT_AMOUNT,
    CONFIG_CERTIFICATE_MIN_COURSE_AMOUNT,
    CONFIG_INSTALLMENT_MONTHS_OPTIONS,
    CONFIG_MINIMUM_DOWN_PAYMENT,
    PACKAGE_ORDER,
)
from .models import Offer, PackageDefinition, PackagePerkValue, Perk, Sale, Service
from .permissions import IsAdminRole, IsMaster, IsOwnerOrAdmin
from .serializers import (
    ClientSerializer,
    ConfirmSubscriptionSerializer,
    OfferCreateSerializer,
    OfferSerializer,
    OfferStatusSerializer,
    OrderSerializer,
    PackageDefinitionSerializer,
    PackagePerkValueSerializer,
    PerkSerializer,
    SaleSerializer,
    ServiceSerializer,
)
from .services import catalog
from .services.config import load_calculator_settings, load_package_terms, set_config
from .services.offers import (
    OfferDeliveryError,
    build_offer_pdf,
    create_offer_from_order,
    create_offer_from_sale,
    send_offer,
)
from .services.pricing import PricingInputError, build_quote, certificate_allowed, payment_bounds
from .services.sales import (
    SubscriptionTypeResolutionError,
    attach_catalog,
    confirm_subscription as confirm_order,
    send_sale_contract,
)
from .services.yclients import YclientsError
from .tasks import send_offer_task

logger = logging.getLogger(__name__)

EDITABLE_SETTINGS = {
    CONFIG_MINIMUM_DOWN_PAYMENT,
    CONFIG_BULK_DISCOUNT_THRESHOLD,
    CONFIG_BULK_DISCOUNT_PERCENTAGE,
    CONFIG_INSTALLMENT_MONTHS_OPTIONS,
    CONFIG_CERTIFICATE_DISCOUNT_AMOUNT,
    CONFIG_CERTIFICATE_MIN_COURSE_AMOUNT,
}


# -------------------------
# CATALOG
# -------------------------

class ServiceViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = ServiceSerializer
    pagination_class = None
    permission_classes = [IsMaster]

    def get_queryset(self):
        qs = Service.objects.all()
        if not (self.request.user.is_admin_role and self.request.query_params.get('all')):
            qs = qs.filter(is_active=True)
        return qs

    @action(detail=False, methods=['post'], permission_classes=[IsAdminRole])
    def sync(self, request):
        """
        POST /api/services/sync/
        Pull the service catalog from YClients.
        """
        try:
            result = catalog.sync_services()
        except YclientsError as e:
            return Response({'detail': f'YClients sync failed: {e}'}, status=status.HTTP_502_BAD_GATEWAY)
        return Response(result)


class PackageDefinitionViewSet(viewsets.ModelViewSet):
    serializer_class = PackageDefinitionSerializer
    pagination_class = None
    http_method_names = ['get', 'put', 'patch', 'head', 'options']

    def get_permissions(self):
        if self.action in ('list', 'retrieve'):
            return [IsMaster()]
        return [IsAdminRole()]

    def get_queryset(self):
        qs = PackageDefinition.objects.all()
        if self.action == 'list' and not self.request.user.is_admin_role:
            qs = qs.filter(is_active=True)
        display_order = Case(
            *[When(type=package_type.value, then=Value(index)) for index, package_type in enumerate(PACKAGE_ORDER)],
            default=Value(len(PACKAGE_ORDER)),
            output_field=IntegerField(),
        )
        return qs.order_by(display_order)


class PerkViewSet(viewsets.ModelViewSet):
    """
    /api/perks/  -> perks with their value for each package.
    Masters read active perks; admins manage all of them.
    """
    serializer_class = PerkSerializer
    pagination_class = None

    def get_permissions(self):
        if self.action in ('list', 'retrieve'):
            return [IsMaster()]
        return [IsAdminRole()]

    def get_queryset(self):
        values = PackagePerkValue.objects.select_related('package')
        qs = Perk.objects.all()
        if not self.request.user.is_admin_role:
            qs = qs.filter(is_active=True)
            values = values.filter(is_active=True, package__is_active=True)
        return qs.prefetch_related(Prefetch('package_values', queryset=values))


class PackagePerkValueViewSet(viewsets.ModelViewSet):
    """
    /api/perk-values/?package=vip  -> perk values of one package, in perk order.
    """
    serializer_class = PackagePerkValueSerializer
    pagination_class = None

    def get_permissions(self):
        if self.action in ('list', 'retrieve'):
            return [IsMaster()]
        return [IsAdminRole()]

    def get_queryset(self):
        qs = PackagePerkValue.objects.select_related('package', 'perk')
        if not self.request.user.is_admin_role:
            qs = qs.filter(is_active=True, perk__is_active=True)
        package_type = self.request.query_params.get('package')
        if package_type:
            qs = qs.filter(package__type=package_type)
        return qs


# -------------------------
# CALCULATOR
# -------------------------

@api_view(['GET', 'PATCH'])
@permission_classes([IsMaster])
def calculator_settings(request):
    """
    GET   /api/calculator/settings/  -> current calculator settings
    PATCH /api/calculator/settings/  -> admins update one or more keys
    """
    if request.method == 'PATCH':
        if not request.user.is_admin_role:
            return Response({'detail': 'Admin access required.'}, status=status.HTTP_403_FORBIDDEN)

        unknown = set(request.data) - EDITABLE_SETTINGS
        if unknown:
            return Response(
                {'detail': f"Unknown settings: {', '.join(sorted(unknown))}"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        for key, value in request.data.items():
            set_config(key, value)

    return Response(load_calculator_settings().to_dict())


@api_view(['POST'])
@permission_classes([IsMaster])
def quote(request):
    """
    POST /api/calculator/quote/
    Price an order against every package with the current configuration.
    """
    serializer = OrderSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    order = OrderSerializer.to_order(serializer.validated_data)
    attach_catalog(order)

    packages = load_package_terms()
    settings = load_calculator_settings()
    result = build_quote(order, packages, settings)

    bounds = {}
    if result is not None:
        for package_type in result.packages:
            bounds[package_type] = payment_bounds(package_type, result, packages, settings)

    return Response({
        'result': result.to_dict() if result else None,
        'bounds': bounds,
        'certificate_allowed': bool(result and certificate_allowed(result.base_cost, settings)),
        'services': [service.to_dict() for service in order.services],
    })


@api_view(['POST'])
@permission_classes([IsMaster])
def confirm_subscription(request):
    """
    POST /api/subscription/
    Body: {"client": {...}, "order": {...}, "send_contract": bool}
    """
    serializer = ConfirmSubscriptionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    client_data = ClientSerializer.to_client_data(data['client'])
    order = OrderSerializer.to_order(data['order'])

    try:
        confirmation = confirm_order(request.user, client_data, order)
    except PricingInputError as e:
        return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except SubscriptionTypeResolutionError as e:
        return Response(
            {'detail': f'Could not resolve a subscription type on YClients: {e}'},
            status=status.HTTP_502_BAD_GATEWAY,
        )

    if data.get('send_contract'):
        send_sale_contract(confirmation, client_data.name, client_data.email)

    return Response({
        'success': True,
        'sale_id': confirmation.sale.id,
        'subscription_type': confirmation.subscription_type.title,
        'subscription_type_created': confirmation.created_subscription_type,
        'offer_number': confirmation.offer.offer_number if confirmation.offer else None,
        'contract_sent': confirmation.contract_sent,
        'contract_error': confirmation.contract_error or None,
    })


@api_view(['POST'])
@permission_classes([IsAdminRole])
def sync_subscription_types(request):
    """
    POST /api/subscription-types/sync/
    """
    try:
        result = catalog.sync_subscription_types()
    except YclientsError as e:
        return Response({'detail': f'YClients sync failed: {e}'}, status=status.HTTP_502_BAD_GATEWAY)
    return Response(result)


# -------------------------
# SALES
# -------------------------

class SaleViewSet(mixins.ListModelMixin,
                  mixins.RetrieveModelMixin,
                  mixins.DestroyModelMixin,
                  viewsets.GenericViewSet):
    serializer_class = SaleSerializer
    permission_classes = [IsMaster, IsOwnerOrAdmin]

    def get_permissions(self):
        if self.action in ('destroy', 'summary'):
            return [IsAdminRole()]
        return super().get_permissions()

    def get_queryset(self):
        """
        Masters see their own sales, admins see all.
        """
        qs = Sale.objects.select_related('client', 'master', 'subscription_type')
        if not self.request.user.is_admin_role:
            qs = qs.filter(master=self.request.user)

        package = self.request.query_params.get('package')
        if package:
            qs = qs.filter(selected_package=package)
        return qs

    def perform_destroy(self, instance):
        logger.info(f"Sale {instance.id} deleted by {self.request.user}")
        instance.delete()

    @action(detail=False, methods=['get'])
    def summary(self, request):
        """
        GET /api/sales/summary/
        Totals per package and per master.
        """
        qs = self.get_queryset()
        totals = qs.aggregate(count=Count('id'), revenue=Sum('final_cost'), savings=Sum('total_savings'))

        by_package = {
            row['selected_package']: {'count': row['count'], 'revenue': row['revenue']}
            for row in qs.values('selected_package').annotate(count=Count('id'), revenue=Sum('final_cost'))
        }
        by_master = [
            {
                'master_id': row['master'],
                'master': row['master__username'],
                'count': row['count'],
                'revenue': row['revenue'],
            }
            for row in qs.values('master', 'master__username').annotate(count=Count('id'), revenue=Sum('final_cost'))
        ]

        return Response({
            'count': totals['count'] or 0,
            'revenue': totals['revenue'] or 0,
            'savings': totals['savings'] or 0,
            'by_package': by_package,
            'by_master': by_master,
        })


# -------------------------
# OFFERS
# -------------------------

class OfferViewSet(mixins.ListModelMixin,
                   mixins.RetrieveModelMixin,
                   mixins.UpdateModelMixin,
                   viewsets.GenericViewSet):
    serializer_class = OfferSerializer
    permission_classes = [IsMaster, IsOwnerOrAdmin]
    http_method_names = ['get', 'post', 'patch', 'head', 'options']

    def get_queryset(self):
        qs = Offer.objects.select_related('client', 'master', 'sale')
        if not self.request.user.is_admin_role:
            qs = qs.filter(master=self.request.user)
        return qs

    def get_serializer_class(self):
        if self.action == 'partial_update':
            return OfferStatusSerializer
        return OfferSerializer

    def create(self, request, *args, **kwargs):
        """
        POST /api/offers/
        From a confirmed sale ({"sale_id"}) or from a client + order.
        """
        serializer = OfferCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if data.get('sale_id'):
            sale = get_object_or_404(Sale.objects.select_related('client', 'master'), id=data['sale_id'])
            if not request.user.is_admin_role and sale.master_id != request.user.id:
                return Response({'detail': 'Not your sale.'}, status=status.HTTP_403_FORBIDDEN)
            offer = create_offer_from_sale(
                sale,
                client_name=data.get('client_name') or '',
                client_email=data.get('client_email') or None,
                master=request.user,
            )
        else:
            try:
                offer = create_offer_from_order(
                    request.user,
                    ClientSerializer.to_client_data(data['client']),
                    OrderSerializer.to_order(data['order']),
                )
            except PricingInputError as e:
                return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(OfferSerializer(offer).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        """
        PATCH /api/offers/{id}/  {"status": "accepted"}
        """
        offer = self.get_object()
        serializer = OfferStatusSerializer(offer, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        logger.info(f"Offer {offer.offer_number} status -> {offer.status}")
        return Response(OfferSerializer(offer).data)

    @action(detail=False, methods=['get'], url_path=r'by-number/(?P<number>\d+)')
    def by_number(self, request, number=None):
        offer = self.get_queryset().filter(offer_number=number).first()
        if offer is None:
            return Response({'detail': 'Offer not found.'}, status=status.HTTP_404_NOT_FOUND)
        return Response(OfferSerializer(offer).data)

    @action(detail=True, methods=['post'])
    def send(self, request, pk=None):
        """
        POST /api/offers/{id}/send/
        Render the PDF and e-mail it to the client.
        """
        offer = self.get_object()
        email = request.data.get('client_email')
        if email and email != offer.client_email:
            offer.client_email = email
            offer.save(update_fields=['client_email'])

        if request.data.get('background'):
            send_offer_task.delay(offer.id)
            return Response({'queued': True, 'offer': OfferSerializer(offer).data}, status=status.HTTP_202_ACCEPTED)

        try:
            send_offer(offer)
        except OfferDeliveryError as e:
            return Response({'detail': str(e), 'offer': OfferSerializer(offer).data}, status=status.HTTP_502_BAD_GATEWAY)

        return Response({'success': True, 'offer': OfferSerializer(offer).data})

    @action(detail=True, methods=['get'])
    def pdf(self, request, pk=None):
        """
        GET /api/offers/{id}/pdf/
        """
        offer = self.get_object()
        response = HttpResponse(build_offer_pdf(offer), content_type='application/pdf')
        response['Content-Disposition'] = f'attachment; filename="offer_{offer.offer_number}.pdf"'
        return response
