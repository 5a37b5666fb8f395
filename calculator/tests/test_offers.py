from datetime import date, timedelta
from decimal import Decimal
from unittest import mock

from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from calculator.constants import OfferStatus
from calculator.models import Client, Offer, Sale, SubscriptionType
from calculator.services import contract_pdf
from calculator.services.config import ensure_default_packages, ensure_default_perks
from calculator.services.contract_pdf import render_offer_pdf
from calculator.services.offers import (
    OfferDeliveryError,
    add_months,
    build_offer_pdf,
    build_payment_schedule,
    create_offer_from_sale,
    expire_stale_offers,
    generate_offer_number,
    send_offer,
)


def make_offer(client, number, **kwargs):
    fields = dict(
        client=client,
        offer_number=number,
        selected_services=[{'service_id': 101, 'title': 'Laser legs', 'session_count': 10}],
        selected_package='economy',
        base_cost=Decimal('20000'),
        final_cost=Decimal('16000'),
        total_savings=Decimal('4000'),
        down_payment=Decimal('5000'),
        installment_months=3,
        monthly_payment=Decimal('3666.67'),
        client_phone=client.phone,
    )
    fields.update(kwargs)
    return Offer.objects.create(**fields)


class PaymentScheduleTests(SimpleTestCase):

    def test_installments_follow_monthly_payment(self):
        schedule = build_payment_schedule(Decimal('16000'), Decimal('5000'), 3, start=date(2025, 1, 31))

        self.assertEqual([entry['date'] for entry in schedule], [
            '2025-01-31', '2025-02-28', '2025-03-31', '2025-04-30',
        ])
        self.assertEqual(schedule[0]['amount'], Decimal('5000.00'))
        self.assertEqual(schedule[0]['description'], 'Down payment')
        self.assertTrue(all(entry['amount'] == Decimal('3666.67') for entry in schedule[1:]))
        self.assertEqual(schedule[3]['description'], 'Payment 3 of 3')

    def test_full_payment_has_single_entry(self):
        schedule = build_payment_schedule(Decimal('21000'), Decimal('21000'), 6, requires_full_payment=True)
        self.assertEqual(len(schedule), 1)

    def test_paid_in_full_has_single_entry(self):
        self.assertEqual(len(build_payment_schedule(Decimal('16000'), Decimal('16000'), 3)), 1)

    def test_add_months_crosses_year(self):
        self.assertEqual(add_months(date(2025, 11, 30), 3), date(2026, 2, 28))


class OfferNumberTests(TestCase):

    def setUp(self):
        self.client_record = Client.objects.create(phone='+79123456789')

    def test_first_number_of_month(self):
        self.assertEqual(generate_offer_number(today=date(2026, 10, 18)), '2610001')

    def test_continues_highest_number_of_month(self):
        make_offer(self.client_record, '2610001')
        make_offer(self.client_record, '2610007')
        make_offer(self.client_record, '2609012')

        self.assertEqual(generate_offer_number(today=date(2026, 10, 18)), '2610008')


class OfferLifecycleTests(TestCase):

    def setUp(self):
        ensure_default_packages()
        self.client_record = Client.objects.create(phone='+79123456789', email='client@example.com')

    def test_expire_stale_offers(self):
        past = timezone.now() - timedelta(days=1)
        stale_draft = make_offer(self.client_record, '2610001', expires_at=past)
        stale_sent = make_offer(self.client_record, '2610002', expires_at=past, status=OfferStatus.SENT)
        accepted = make_offer(self.client_record, '2610003', expires_at=past, status=OfferStatus.ACCEPTED)
        fresh = make_offer(self.client_record, '2610004')

        self.assertEqual(expire_stale_offers(), 2)

        for offer, status in [
            (stale_draft, OfferStatus.EXPIRED),
            (stale_sent, OfferStatus.EXPIRED),
            (accepted, OfferStatus.ACCEPTED),
            (fresh, OfferStatus.DRAFT),
        ]:
            offer.refresh_from_db()
            self.assertEqual(offer.status, status)

    def test_default_expiry(self):
        offer = make_offer(self.client_record, '2610001')
        self.assertFalse(offer.is_expired())
        self.assertGreater(offer.expires_at, timezone.now() + timedelta(days=6))

    def test_offer_from_sale_copies_terms(self):
        subscription_type = SubscriptionType.objects.create(yclients_id=1, title='1.001 Laser - Economy', cost=Decimal('16000'))
        sale = Sale.objects.create(
            client=self.client_record,
            subscription_type=subscription_type,
            selected_services=[{'service_id': 101, 'title': 'Laser legs', 'session_count': 10}],
            selected_package='economy',
            base_cost=Decimal('20000'),
            final_cost=Decimal('16000'),
            total_savings=Decimal('4000'),
            down_payment=Decimal('5000'),
            installment_months=3,
            monthly_payment=Decimal('3666.67'),
        )

        offer = create_offer_from_sale(sale, client_name='Maria', client_email='new@example.com')

        self.assertEqual(offer.sale, sale)
        self.assertEqual(offer.final_cost, Decimal('16000'))
        self.assertEqual(len(offer.payment_schedule), 4)
        self.assertEqual(offer.client_email, 'new@example.com')
        self.client_record.refresh_from_db()
        self.assertEqual(self.client_record.email, 'new@example.com')

    def test_send_requires_email(self):
        offer = make_offer(self.client_record, '2610001', client_email=None)
        with self.assertRaises(OfferDeliveryError):
            send_offer(offer)

    @mock.patch('calculator.services.offers.store_offer_pdf', return_value='offers/offer_2610001.pdf')
    @mock.patch('calculator.services.offers.send_offer_email', return_value=True)
    def test_send_marks_offer_sent(self, send_email, store_pdf):
        offer = make_offer(self.client_record, '2610001', client_email='client@example.com')

        send_offer(offer)
        offer.refresh_from_db()

        self.assertEqual(offer.status, OfferStatus.SENT)
        self.assertTrue(offer.email_sent)
        self.assertIsNotNone(offer.email_sent_at)
        self.assertEqual(offer.pdf_path, 'offers/offer_2610001.pdf')
        pdf_bytes = send_email.call_args.args[1]
        self.assertTrue(pdf_bytes.startswith(b'%PDF'))

    @mock.patch('calculator.services.offers.store_offer_pdf', return_value='offers/offer_2610001.pdf')
    @mock.patch('calculator.services.offers.send_offer_email', return_value=False)
    def test_failed_email_leaves_offer_unsent(self, send_email, store_pdf):
        offer = make_offer(self.client_record, '2610001', client_email='client@example.com')

        with self.assertRaises(OfferDeliveryError):
            send_offer(offer)
        offer.refresh_from_db()

        self.assertEqual(offer.status, OfferStatus.DRAFT)
        self.assertFalse(offer.email_sent)

    def test_render_pdf(self):
        offer = make_offer(
            self.client_record, '2610001',
            client_name='Maria',
            free_zones=[{'service_id': 102, 'title': 'Laser arms'}],
            used_certificate=True,
            payment_schedule=build_payment_schedule(Decimal('16000'), Decimal('5000'), 3),
        )
        self.assertTrue(render_offer_pdf(offer).startswith(b'%PDF'))

    def test_pdf_lists_included_perks(self):
        ensure_default_perks()
        offer = make_offer(self.client_record, '2610002', selected_package='standard')
        written = []

        with mock.patch.object(contract_pdf._Writer, 'line', autospec=True) as line:
            line.side_effect = lambda writer, text, **kwargs: written.append(text)
            build_offer_pdf(offer)

        self.assertIn('Package perks', written)
        self.assertIn('- Loyalty card: Silver card, 30% off', written)
        self.assertIn('- Eye-area massage course: 5 sessions', written)

    def test_pdf_skips_perks_not_included(self):
        ensure_default_perks()
        offer = make_offer(self.client_record, '2610003', selected_package='economy')
        written = []

        with mock.patch.object(contract_pdf._Writer, 'line', autospec=True) as line:
            line.side_effect = lambda writer, text, **kwargs: written.append(text)
            build_offer_pdf(offer)

        self.assertIn('- Card freeze: 3 months', written)
        self.assertFalse(any(text.startswith('- Loyalty card') for text in written))
