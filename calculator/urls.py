# calculator/urls.py

from django.urls import path
from rest_framework.routers import DefaultRouter

from . import views

router = DefaultRouter()
router.register(r'services', views.ServiceViewSet, basename='services')
router.register(r'packages', views.PackageDefinitionViewSet, basename='packages')
router.register(r'perks', views.PerkViewSet, basename='perks')
router.register(r'perk-values', views.PackagePerkValueViewSet, basename='perk-values')
router.register(r'sales', views.SaleViewSet, basename='sales')
router.register(r'offers', views.OfferViewSet, basename='offers')

urlpatterns = [
    path('calculator/settings/', views.calculator_settings, name='calculator_settings'),
    path('calculator/quote/', views.quote, name='calculator_quote'),
    path('subscription/', views.confirm_subscription, name='confirm_subscription'),
    path('subscription-types/sync/', views.sync_subscription_types, name='sync_subscription_types'),
] + router.urls
