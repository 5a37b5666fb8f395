from decimal import Decimal
from unittest import mock

import requests
from django.test import SimpleTestCase, TestCase, override_settings

from calculator.models import Service, SubscriptionType
from calculator.services import catalog, yclients
from calculator.services.yclients import YclientsError

YCLIENTS_SETTINGS = dict(
    YCLIENTS_BASE_URL='https://api.example.test/v1',
    YCLIENTS_CHAIN_ID='777',
    YCLIENTS_TOKEN='secret',
    YCLIENTS_AUTH_COOKIE='cookie',
    YCLIENTS_CATEGORY_ID='55',
    YCLIENTS_BRANCH_IDS=[1, 2],
    YCLIENTS_TIMEOUT=5,
)


def fake_response(payload=None, status_code=200, text=''):
    response = mock.Mock()
    response.status_code = status_code
    response.text = text
    response.content = b'{}' if payload is not None else b''
    response.json.return_value = payload
    return response


@override_settings(**YCLIENTS_SETTINGS)
class YclientsClientTests(SimpleTestCase):

    @mock.patch('calculator.services.yclients.requests.request')
    def test_get_services_filters_by_category(self, request):
        request.return_value = fake_response({'data': [{'id': 1, 'title': 'Laser', 'price_min': 2000}]})

        services = yclients.get_services()

        self.assertEqual(len(services), 1)
        method, url = request.call_args.args
        self.assertEqual(method, 'GET')
        self.assertEqual(url, 'https://api.example.test/v1/chain/777/services/composites')
        self.assertEqual(request.call_args.kwargs['params'], {'category_id': '55'})
        self.assertEqual(request.call_args.kwargs['timeout'], 5)
        headers = request.call_args.kwargs['headers']
        self.assertEqual(headers['Authorization'], 'Bearer secret')
        self.assertEqual(headers['Cookie'], 'auth=cookie')

    @mock.patch('calculator.services.yclients.requests.request')
    def test_subscription_types_page_until_short_page(self, request):
        full_page = [{'id': i} for i in range(yclients.SUBSCRIPTION_TYPES_PAGE_LIMIT)]
        request.side_effect = [
            fake_response({'data': full_page}),
            fake_response({'data': [{'id': 'last'}]}),
        ]

        records = yclients.get_subscription_types()

        self.assertEqual(len(records), yclients.SUBSCRIPTION_TYPES_PAGE_LIMIT + 1)
        self.assertEqual(request.call_count, 2)
        self.assertEqual(request.call_args.kwargs['params']['page'], 2)

    @mock.patch('calculator.services.yclients.requests.request')
    def test_http_error_raises(self, request):
        request.return_value = fake_response({'success': False}, status_code=500, text='boom')
        with self.assertRaises(YclientsError):
            yclients.get_services()

    @mock.patch('calculator.services.yclients.requests.request', side_effect=requests.exceptions.Timeout())
    def test_timeout_raises(self, request):
        with self.assertRaises(YclientsError):
            yclients.get_services()

    @mock.patch('calculator.services.yclients.requests.request')
    def test_non_json_raises(self, request):
        response = fake_response({}, text='<html>')
        response.json.side_effect = ValueError('no json')
        request.return_value = response
        with self.assertRaises(YclientsError):
            yclients.get_services()

    @override_settings(YCLIENTS_CHAIN_ID='')
    def test_missing_chain_id_raises(self):
        with self.assertRaises(YclientsError):
            yclients.get_services()

    def test_subscription_type_payload(self):
        payload = yclients.build_subscription_type_payload(
            '1.234 Laser legs - Economy', Decimal('16000.00'), {102: 8, 101: 10}, True, 90,
        )

        self.assertEqual(payload['salon_group_id'], 777)
        self.assertEqual(payload['salon_ids'], [1, 2])
        self.assertEqual(payload['cost'], 16000.0)
        self.assertEqual(payload['period'], 365)
        self.assertEqual(payload['freeze_limit'], 90)
        self.assertEqual(
            [(link['service_id'], link['count']) for link in payload['service_links']],
            [(101, 10), (102, 8)],
        )
        self.assertEqual(payload['service_links'][0]['service_category_id'], 55)

    @mock.patch('calculator.services.yclients.requests.request')
    def test_create_subscription_type_requires_id(self, request):
        request.return_value = fake_response({'success': True, 'data': {}})
        with self.assertRaises(YclientsError):
            yclients.create_subscription_type('t', Decimal('1'), {1: 1}, False, 0)

    @mock.patch('calculator.services.yclients.requests.request')
    def test_create_subscription_type_returns_record(self, request):
        request.return_value = fake_response({'success': True, 'data': {'id': 42, 'title': 't'}})

        record = yclients.create_subscription_type('t', Decimal('1'), {1: 1}, False, 0)

        self.assertEqual(record['id'], 42)
        self.assertEqual(request.call_args.args[0], 'POST')
        self.assertEqual(request.call_args.kwargs['json']['title'], 't')


class CatalogSyncTests(TestCase):

    @mock.patch('calculator.services.catalog.yclients.get_services')
    def test_sync_services_upserts_and_deactivates(self, get_services):
        Service.objects.create(yclients_id=1, title='Old title', price_min=Decimal('100'))
        Service.objects.create(yclients_id=3, title='Gone', price_min=Decimal('100'))
        get_services.return_value = [
            {'id': 1, 'title': 'Laser legs', 'price_min': 2000, 'category_id': 55},
            {'id': 2, 'title': 'Laser arms', 'price_min': '1500.5'},
        ]

        result = catalog.sync_services()

        self.assertEqual(result, {'created': 1, 'updated': 1, 'deactivated': 1})
        self.assertEqual(Service.objects.get(yclients_id=1).title, 'Laser legs')
        self.assertEqual(Service.objects.get(yclients_id=2).price_min, Decimal('1500.50'))
        self.assertFalse(Service.objects.get(yclients_id=3).is_active)

    @mock.patch('calculator.services.catalog.yclients.get_subscription_types')
    def test_sync_subscription_types(self, get_types):
        SubscriptionType.objects.create(yclients_id=10, title='old', cost=Decimal('1'))
        get_types.return_value = [
            {
                'id': 10, 'title': '1.010 Laser - VIP', 'cost': 21000,
                'balance_container': {'links': [{'service': {'id': 101}, 'count': 10}]},
            },
            {'id': 11, 'title': '2.011 Laser - Economy', 'cost': 16000, 'allow_freeze': True, 'freeze_limit': 90},
        ]

        result = catalog.sync_subscription_types()

        self.assertEqual(result, {'received': 2, 'created': 1})
        updated = SubscriptionType.objects.get(yclients_id=10)
        self.assertEqual(updated.cost, Decimal('21000.00'))
        self.assertEqual(updated.composition(), {101: 10})
        self.assertEqual(SubscriptionType.objects.get(yclients_id=11).freeze_limit, 90)
