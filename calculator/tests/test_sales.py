from decimal import Decimal
from unittest import mock

from django.test import TestCase

from calculator.models import Client, ConfigEntry, CustomUser, Offer, Sale, Service, SubscriptionType
from calculator.services import catalog
from calculator.services.config import ensure_default_packages
from calculator.services.pricing import PricingInputError, PricingOrder, SelectedService
from calculator.services.sales import (
    ClientData,
    SubscriptionTypeResolutionError,
    confirm_subscription,
    freeze_policy,
    generate_subscription_title,
    generate_unique_subscription_number,
    send_sale_contract,
)
from calculator.services.yclients import YclientsError

CREATE_TYPE = 'calculator.services.sales.yclients.create_subscription_type'


def fake_created_type(ids=None):
    """side_effect for create_subscription_type: echoes the request like YClients does."""
    ids = iter(ids or range(9001, 9100))

    def _create(title, cost, composition, allow_freeze, freeze_limit):
        return {
            'id': next(ids),
            'title': title,
            'cost': float(cost),
            'allow_freeze': allow_freeze,
            'freeze_limit': freeze_limit,
        }
    return _create


class SaleConfirmationTests(TestCase):

    def setUp(self):
        ensure_default_packages()
        Service.objects.create(yclients_id=101, title='Laser legs', price_min=Decimal('2000'))
        Service.objects.create(yclients_id=102, title='Laser arms', price_min=Decimal('1500'))
        self.master = CustomUser.objects.create_user(username='anna', password='x', pin='1234')
        self.client_data = ClientData(phone='8 (912) 345-67-89', email='client@example.com', name='Maria')

    def order(self, package='economy', sessions=10, down_payment='5000', months=3, **kwargs):
        return PricingOrder(
            services=[SelectedService(service_id=101, session_count=sessions)],
            down_payment=Decimal(down_payment),
            installment_months=months,
            package_type=package,
            **kwargs
        )

    @mock.patch(CREATE_TYPE)
    def test_confirm_creates_subscription_type_and_sale(self, create_type):
        create_type.side_effect = fake_created_type()

        confirmation = confirm_subscription(self.master, self.client_data, self.order())

        self.assertTrue(confirmation.created_subscription_type)
        kwargs = create_type.call_args.kwargs
        self.assertEqual(kwargs['composition'], {101: 10})
        self.assertEqual(kwargs['cost'], Decimal('16000.00'))
        self.assertEqual((kwargs['allow_freeze'], kwargs['freeze_limit']), (True, 90))
        self.assertRegex(kwargs['title'], r'^[1-4]\.\d{3} Laser legs - Economy$')

        sale = confirmation.sale
        self.assertEqual(sale.master, self.master)
        self.assertEqual(sale.client.phone, '+79123456789')
        self.assertEqual(sale.final_cost, Decimal('16000.00'))
        self.assertEqual(sale.down_payment, Decimal('5000.00'))
        self.assertEqual(sale.installment_months, 3)
        self.assertEqual(sale.monthly_payment, Decimal('3666.67'))
        self.assertEqual(sale.subscription_type.composition(), {101: 10})

    @mock.patch(CREATE_TYPE)
    def test_identical_order_reuses_subscription_type(self, create_type):
        create_type.side_effect = fake_created_type()

        first = confirm_subscription(self.master, self.client_data, self.order())
        second = confirm_subscription(self.master, self.client_data, self.order())

        self.assertEqual(create_type.call_count, 1)
        self.assertFalse(second.created_subscription_type)
        self.assertEqual(first.subscription_type.pk, second.subscription_type.pk)
        self.assertEqual(Sale.objects.count(), 2)
        self.assertEqual(Client.objects.count(), 1)

    @mock.patch(CREATE_TYPE)
    def test_one_session_more_creates_new_type(self, create_type):
        create_type.side_effect = fake_created_type()

        first = confirm_subscription(self.master, self.client_data, self.order(sessions=10))
        second = confirm_subscription(self.master, self.client_data, self.order(sessions=11))

        self.assertEqual(create_type.call_count, 2)
        self.assertNotEqual(first.subscription_type.pk, second.subscription_type.pk)

    @mock.patch(CREATE_TYPE)
    def test_same_cost_different_composition_is_not_reused(self, create_type):
        create_type.side_effect = fake_created_type()
        SubscriptionType.objects.create(
            yclients_id=5,
            title='1.111 Laser legs - Economy',
            cost=Decimal('16000.00'),
            balance_container={'links': [{'service': {'id': 101}, 'count': 8}]},
        )

        confirmation = confirm_subscription(self.master, self.client_data, self.order())

        self.assertTrue(confirmation.created_subscription_type)
        self.assertNotEqual(confirmation.subscription_type.yclients_id, 5)

    @mock.patch(CREATE_TYPE)
    def test_cached_exact_match_is_reused(self, create_type):
        SubscriptionType.objects.create(
            yclients_id=5,
            title='1.111 Laser legs - Economy',
            cost=Decimal('16000.00'),
            balance_container={'links': [{'service_id': 101, 'count': 10}]},
        )

        confirmation = confirm_subscription(self.master, self.client_data, self.order())

        create_type.assert_not_called()
        self.assertEqual(confirmation.subscription_type.yclients_id, 5)

    @mock.patch(CREATE_TYPE, side_effect=YclientsError('API error: 500'))
    def test_platform_failure_persists_nothing(self, create_type):
        with self.assertRaises(SubscriptionTypeResolutionError):
            confirm_subscription(self.master, self.client_data, self.order())

        self.assertEqual(Sale.objects.count(), 0)
        self.assertEqual(Client.objects.count(), 0)

    @mock.patch(CREATE_TYPE)
    def test_full_payment_package_pins_down_payment(self, create_type):
        create_type.side_effect = fake_created_type()

        confirmation = confirm_subscription(
            self.master, self.client_data, self.order(package='vip', sessions=15, down_payment='1000'),
        )

        sale = confirmation.sale
        self.assertEqual(sale.down_payment, sale.final_cost)
        self.assertIsNone(sale.monthly_payment)
        self.assertIsNone(sale.installment_months)
        self.assertEqual(create_type.call_args.kwargs['freeze_limit'], 999)

    def test_down_payment_below_minimum_is_rejected(self):
        with self.assertRaises(PricingInputError):
            confirm_subscription(self.master, self.client_data, self.order(down_payment='4000'))

    def test_installment_months_must_be_an_option(self):
        with self.assertRaises(PricingInputError):
            confirm_subscription(self.master, self.client_data, self.order(months=12))

    def test_unavailable_package_is_rejected(self):
        with self.assertRaises(PricingInputError):
            confirm_subscription(self.master, self.client_data, self.order(package='standard'))

    def test_invalid_phone_is_rejected(self):
        with self.assertRaises(PricingInputError):
            confirm_subscription(self.master, ClientData(phone='12345'), self.order())

    @mock.patch(CREATE_TYPE)
    def test_existing_client_email_is_updated(self, create_type):
        create_type.side_effect = fake_created_type()
        Client.objects.create(phone='+79123456789', email='old@example.com')

        confirm_subscription(self.master, self.client_data, self.order())

        self.assertEqual(Client.objects.get().email, 'client@example.com')

    @mock.patch('calculator.services.offers.store_offer_pdf', return_value='offers/offer.pdf')
    @mock.patch('calculator.services.offers.send_offer_email', return_value=False)
    @mock.patch(CREATE_TYPE)
    def test_contract_failure_does_not_undo_sale(self, create_type, send_email, store_pdf):
        create_type.side_effect = fake_created_type()

        confirmation = confirm_subscription(self.master, self.client_data, self.order())
        send_sale_contract(confirmation, 'Maria', 'client@example.com')

        self.assertFalse(confirmation.contract_sent)
        self.assertEqual(confirmation.contract_error, 'Could not send the offer email.')
        self.assertTrue(Sale.objects.filter(pk=confirmation.sale.pk).exists())
        self.assertEqual(Offer.objects.get().sale, confirmation.sale)

    @mock.patch('calculator.services.offers.store_offer_pdf', return_value='offers/offer.pdf')
    @mock.patch('calculator.services.offers.send_offer_email', return_value=True)
    @mock.patch(CREATE_TYPE)
    def test_contract_sent(self, create_type, send_email, store_pdf):
        create_type.side_effect = fake_created_type()

        confirmation = confirm_subscription(self.master, self.client_data, self.order())
        send_sale_contract(confirmation, 'Maria', 'client@example.com')

        self.assertTrue(confirmation.contract_sent)
        self.assertEqual(confirmation.offer.status, 'sent')
        send_email.assert_called_once()

    def test_contract_without_email_is_reported(self):
        confirmation = mock.Mock(sale=mock.Mock(id=1), contract_error='', contract_sent=False)
        send_sale_contract(confirmation, 'Maria', None)
        self.assertIn('email', confirmation.contract_error)

    @mock.patch('calculator.services.offers.generate_offer_number', return_value='2610001')
    @mock.patch(CREATE_TYPE)
    def test_offer_creation_error_does_not_undo_sale(self, create_type, offer_number):
        create_type.side_effect = fake_created_type()
        first = confirm_subscription(self.master, self.client_data, self.order())
        Offer.objects.create(
            client=first.sale.client,
            offer_number='2610001',
            selected_services=[],
            selected_package='economy',
            base_cost=Decimal('20000'),
            final_cost=Decimal('16000'),
            total_savings=Decimal('4000'),
            down_payment=Decimal('5000'),
            client_phone=first.sale.client.phone,
        )

        confirmation = confirm_subscription(self.master, self.client_data, self.order())
        send_sale_contract(confirmation, 'Maria', 'client@example.com')

        self.assertFalse(confirmation.contract_sent)
        self.assertIsNone(confirmation.offer)
        self.assertIn('could not be prepared', confirmation.contract_error)
        self.assertEqual(Sale.objects.count(), 2)
        self.assertEqual(Offer.objects.count(), 1)

    @mock.patch('calculator.services.catalog.yclients.get_subscription_types')
    @mock.patch(CREATE_TYPE)
    def test_catalog_sync_keeps_composition_of_created_type(self, create_type, get_types):
        create_type.side_effect = fake_created_type()
        first = confirm_subscription(self.master, self.client_data, self.order())
        get_types.return_value = [{
            'id': first.subscription_type.yclients_id,
            'title': first.subscription_type.title,
            'cost': 16000,
            'allow_freeze': True,
            'freeze_limit': 90,
            'balance_container': None,
        }]

        catalog.sync_subscription_types()
        second = confirm_subscription(self.master, self.client_data, self.order())

        self.assertFalse(second.created_subscription_type)
        self.assertEqual(second.subscription_type.pk, first.subscription_type.pk)
        self.assertEqual(create_type.call_count, 1)


class SubscriptionTitleTests(TestCase):

    def test_title_format(self):
        rng = mock.Mock()
        rng.randint.side_effect = [3, 42]
        title = generate_subscription_title(['Laser legs', 'Laser arms'], 'Standard', rng=rng)
        self.assertEqual(title, '3.042 Laser legs, Laser arms - Standard')

    def test_taken_numbers_are_skipped(self):
        SubscriptionType.objects.create(yclients_id=1, title='2.005 Laser - VIP', cost=Decimal('1'))
        rng = mock.Mock()
        rng.randint.side_effect = [2, 5, 7]
        self.assertEqual(generate_unique_subscription_number(rng), '2.007')

    def test_falls_back_to_timestamp(self):
        SubscriptionType.objects.create(yclients_id=1, title='1.001 Laser - VIP', cost=Decimal('1'))
        rng = mock.Mock()
        rng.randint.return_value = 1
        self.assertRegex(generate_unique_subscription_number(rng), r'^1\.\d{3}$')

    def test_freeze_policy(self):
        self.assertEqual(freeze_policy('vip'), (True, 999))
        self.assertEqual(freeze_policy('standard'), (True, 180))
        self.assertEqual(freeze_policy('economy'), (True, 90))

    def test_configured_template(self):
        ConfigEntry.objects.create(key='subscription_template', value='{number} Course {services} ({package})')
        rng = mock.Mock()
        rng.randint.side_effect = [1, 7]
        title = generate_subscription_title(['Laser legs'], 'VIP', rng=rng)
        self.assertEqual(title, '1.007 Course Laser legs (VIP)')

    def test_unusable_template_falls_back(self):
        ConfigEntry.objects.create(key='subscription_template', value='{number} {unknown}')
        rng = mock.Mock()
        rng.randint.side_effect = [1, 7]
        title = generate_subscription_title(['Laser legs'], 'VIP', rng=rng)
        self.assertEqual(title, '1.007 Laser legs - VIP')

    def test_template_without_leading_number_is_ignored(self):
        ConfigEntry.objects.create(key='subscription_template', value='Course {services} {number}')
        rng = mock.Mock()
        rng.randint.side_effect = [1, 7]
        title = generate_subscription_title(['Laser legs'], 'VIP', rng=rng)
        self.assertEqual(title, '1.007 Laser legs - VIP')
