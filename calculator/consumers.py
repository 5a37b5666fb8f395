# calculator/consumers.py

import asyncio
import json
import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.contrib.auth import get_user_model
from django.core.serializers.json import DjangoJSONEncoder
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken

from .services.config import load_calculator_settings, load_package_terms
from .services.pricing import PricingInputError, PricingOrder
from .services.sales import attach_catalog
from .services.session import CalculatorSession, free_zone_from_dict, selected_service_from_dict

logger = logging.getLogger(__name__)

UNAUTHORIZED_CLOSE_CODE = 4401


@database_sync_to_async
def _user_from_token(token):
    try:
        user_id = AccessToken(token)['user_id']
    except (TokenError, KeyError):
        return None
    return get_user_model().objects.filter(id=user_id, is_active=True).first()


@database_sync_to_async
def _load_config():
    return load_package_terms(), load_calculator_settings()


@database_sync_to_async
def _attach_catalog(services):
    attach_catalog(PricingOrder(services=services))
    return services


class CalculatorConsumer(AsyncJsonWebsocketConsumer):
    """
    One live CalculatorSession per socket.

    Client sends {"command": "...", ...}; every recomputation is pushed back
    as {"type": "calculation", ...}.
    """

    async def connect(self):
        user = self.scope.get('user')
        if not (user and user.is_authenticated):
            query = parse_qs(self.scope.get('query_string', b'').decode())
            token = (query.get('token') or [None])[0]
            user = await _user_from_token(token) if token else None

        if user is None:
            logger.warning("Calculator socket rejected: not authenticated")
            await self.close(code=UNAUTHORIZED_CLOSE_CODE)
            return

        self.user = user
        packages, settings = await _load_config()
        self.session = CalculatorSession(packages, settings, scheduler=asyncio.get_running_loop())
        self.session.on_result(self._push_result)

        await self.accept()
        await self.send_json({
            'type': 'config',
            'settings': settings.to_dict(),
            'packages': {key: self._terms_dict(terms) for key, terms in packages.items()},
            'state': self.session.snapshot(),
        })
        logger.info(f"Calculator socket opened for user {user.id}")

    async def disconnect(self, close_code):
        session = getattr(self, 'session', None)
        if session is not None:
            session.cancel_pending()

    @classmethod
    async def encode_json(cls, content):
        return json.dumps(content, cls=DjangoJSONEncoder)

    @staticmethod
    def _terms_dict(terms):
        return {
            'type': terms.type,
            'name': terms.name,
            'discount': terms.effective_discount,
            'min_cost': terms.min_cost,
            'min_down_payment_percent': terms.min_down_payment_percent,
            'requires_full_payment': terms.requires_full_payment,
            'gift_sessions': terms.gift_sessions,
            'bonus_account_percent': terms.bonus_account_percent,
        }

    def _push_result(self, session):
        asyncio.ensure_future(self.send_json({'type': 'calculation', **session.snapshot()}))

    async def receive_json(self, content, **kwargs):
        command = content.get('command')
        handler = getattr(self, f'cmd_{command}', None) if command else None
        if handler is None:
            await self.send_json({'type': 'error', 'command': command, 'detail': 'Unknown command.'})
            return

        try:
            result = await handler(content)
        except (PricingInputError, ValueError, KeyError, TypeError) as e:
            await self.send_json({'type': 'error', 'command': command, 'detail': str(e)})
            return

        if result is not None:
            await self.send_json(result)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def cmd_set_services(self, content):
        services = [selected_service_from_dict(item) for item in content.get('services') or []]
        services = await _attach_catalog(services)
        self.session.set_services(services)

    async def cmd_set_session_count(self, content):
        self.session.set_session_count(int(content['service_id']), content['session_count'])

    async def cmd_set_custom_price(self, content):
        self.session.set_custom_price(int(content['service_id']), content.get('price'))

    async def cmd_set_procedure_count(self, content):
        self.session.set_procedure_count(content['count'])

    async def cmd_set_free_zones(self, content):
        self.session.set_free_zones([free_zone_from_dict(item) for item in content.get('free_zones') or []])

    async def cmd_toggle_free_zone(self, content):
        self.session.toggle_free_zone(free_zone_from_dict(content['zone']))

    async def cmd_set_down_payment(self, content):
        self.session.set_down_payment(content['value'])

    async def cmd_begin_drag(self, content):
        self.session.begin_drag()

    async def cmd_end_drag(self, content):
        self.session.end_drag()

    async def cmd_set_installment_months(self, content):
        self.session.set_installment_months(content['months'])

    async def cmd_set_certificate(self, content):
        self.session.set_certificate(content.get('used', False))

    async def cmd_set_correction(self, content):
        self.session.set_correction(content.get('percent', 0))

    async def cmd_set_gift_sessions(self, content):
        self.session.set_gift_sessions(content['package'], content['count'])

    async def cmd_select_package(self, content):
        package_type = content.get('package')
        if not self.session.select_package(package_type):
            return {'type': 'error', 'command': 'select_package', 'detail': f"Package '{package_type}' is not available."}
        return None

    async def cmd_refresh_config(self, content):
        packages, settings = await _load_config()
        self.session.refresh_config(packages, settings)
