from decimal import Decimal
from unittest import mock

from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser
from django.test import SimpleTestCase

from calculator.consumers import UNAUTHORIZED_CLOSE_CODE, CalculatorConsumer
from calculator.services.pricing import CalculatorSettings, PackageTerms

PACKAGES = {
    'economy': PackageTerms(
        type='economy', name='Economy',
        discount=Decimal('0.20'), min_cost=Decimal('10000'),
        min_down_payment_percent=Decimal('0.01'),
    ),
}


async def fake_load_config():
    return PACKAGES, CalculatorSettings()


async def fake_attach_catalog(services):
    return services


@mock.patch('calculator.consumers._attach_catalog', new=fake_attach_catalog)
@mock.patch('calculator.consumers._load_config', new=fake_load_config)
class CalculatorConsumerTests(SimpleTestCase):
    # channels closes stale DB connections on every dispatch
    databases = {'default'}

    async def connect(self, user):
        communicator = WebsocketCommunicator(CalculatorConsumer.as_asgi(), '/ws/calculator/')
        communicator.scope['user'] = user
        connected, _ = await communicator.connect()
        return communicator, connected

    async def test_anonymous_is_rejected(self):
        communicator = WebsocketCommunicator(CalculatorConsumer.as_asgi(), '/ws/calculator/')
        communicator.scope['user'] = AnonymousUser()

        connected, code = await communicator.connect()

        self.assertFalse(connected)
        self.assertEqual(code, UNAUTHORIZED_CLOSE_CODE)

    async def test_config_then_calculation(self):
        communicator, connected = await self.connect(mock.Mock(is_authenticated=True, id=1))
        self.assertTrue(connected)

        config = await communicator.receive_json_from()
        self.assertEqual(config['type'], 'config')
        self.assertIn('economy', config['packages'])
        self.assertEqual(config['settings']['installment_months_options'], [2, 3, 4, 5, 6])

        await communicator.send_json_to({
            'command': 'set_services',
            'services': [{'service_id': 101, 'title': 'Laser legs', 'price': 2000, 'session_count': 10}],
        })
        calculation = await communicator.receive_json_from(timeout=2)

        self.assertEqual(calculation['type'], 'calculation')
        self.assertEqual(calculation['result']['base_cost'], '20000.00')
        self.assertEqual(calculation['result']['packages']['economy']['final_cost'], '16000.00')

        await communicator.disconnect()

    async def test_unknown_command(self):
        communicator, _ = await self.connect(mock.Mock(is_authenticated=True, id=1))
        await communicator.receive_json_from()

        await communicator.send_json_to({'command': 'explode'})
        reply = await communicator.receive_json_from()

        self.assertEqual(reply['type'], 'error')
        self.assertEqual(reply['command'], 'explode')
        await communicator.disconnect()

    async def test_invalid_input_is_reported(self):
        communicator, _ = await self.connect(mock.Mock(is_authenticated=True, id=1))
        await communicator.receive_json_from()

        await communicator.send_json_to({'command': 'set_installment_months', 'months': 7})
        reply = await communicator.receive_json_from()

        self.assertEqual(reply['type'], 'error')
        await communicator.disconnect()
