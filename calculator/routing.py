# calculator/routing.py

from django.urls import path

from .consumers import CalculatorConsumer

websocket_urlpatterns = [
    path('ws/calculator/', CalculatorConsumer.as_asgi()),
]
