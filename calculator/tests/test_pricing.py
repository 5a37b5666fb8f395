from decimal import Decimal

from django.test import SimpleTestCase

from calculator.constants import DiscountKind, PackageType
from calculator.services.pricing import (
    CalculatorSettings,
    FreeZone,
    PackageTerms,
    PricingOrder,
    SelectedService,
    build_quote,
    clamp_correction_percent,
    clamp_down_payment,
    compute_base_cost,
    effective_price,
    min_down_payment,
    monthly_payment,
    payment_bounds,
    service_composition,
)

SETTINGS = CalculatorSettings()


def make_packages():
    return {
        PackageType.VIP.value: PackageTerms(
            type='vip', name='VIP',
            discount=Decimal('0.30'), min_cost=Decimal('25000'),
            min_down_payment_percent=Decimal('1.00'),
            requires_full_payment=True, gift_sessions=3,
        ),
        PackageType.STANDARD.value: PackageTerms(
            type='standard', name='Standard',
            discount=Decimal('0.25'), min_cost=Decimal('30000'),
            min_down_payment_percent=Decimal('0.50'), gift_sessions=1,
        ),
        PackageType.ECONOMY.value: PackageTerms(
            type='economy', name='Economy',
            discount=Decimal('0.20'), min_cost=Decimal('10000'),
            min_down_payment_percent=Decimal('0.01'),
        ),
    }


def service(service_id, price, sessions=10, quantity=1, **kwargs):
    return SelectedService(
        service_id=service_id,
        title=f'Service {service_id}',
        price=Decimal(price),
        quantity=quantity,
        session_count=sessions,
        **kwargs,
    )


class EffectivePriceTests(SimpleTestCase):

    def test_custom_price_wins(self):
        s = service(1, '2000', custom_price=Decimal('1500'), edited_price=Decimal('1800'))
        self.assertEqual(effective_price(s), Decimal('1500'))

    def test_edited_price_before_catalog(self):
        s = service(1, '2000', edited_price=Decimal('1800'))
        self.assertEqual(effective_price(s), Decimal('1800'))

    def test_missing_everything_is_zero(self):
        self.assertEqual(effective_price(SelectedService(service_id=1)), Decimal('0'))


class BaseCostTests(SimpleTestCase):

    def test_free_zone_is_excluded(self):
        services = [service(1, '2000'), service(2, '1500', sessions=8)]
        zones = [FreeZone(service_id=2, title='Service 2', price_per_procedure=Decimal('1500'))]

        with_zone = compute_base_cost(services, zones)
        without_service = compute_base_cost([services[0]])

        self.assertEqual(with_zone, without_service)
        self.assertEqual(with_zone, Decimal('20000.00'))

    def test_quantity_and_sessions_multiply(self):
        self.assertEqual(compute_base_cost([service(1, '1000', sessions=5, quantity=2)]), Decimal('10000.00'))

    def test_only_free_zones_yields_no_result(self):
        order = PricingOrder(
            services=[service(1, '2000')],
            free_zones=[FreeZone(service_id=1, price_per_procedure=Decimal('2000'))],
        )
        self.assertIsNone(build_quote(order, make_packages(), SETTINGS))

    def test_composition_ignores_order(self):
        a = service_composition([service(1, '100', sessions=10), service(2, '100', sessions=8)])
        b = service_composition([service(2, '100', sessions=8), service(1, '100', sessions=10)])
        self.assertEqual(a, b)
        self.assertEqual(a, {1: 10, 2: 8})


class PackagePricingTests(SimpleTestCase):

    def quote(self, services, **kwargs):
        return build_quote(PricingOrder(services=services, **kwargs), make_packages(), SETTINGS)

    def test_economy_scenario(self):
        result = self.quote([service(1, '2000', sessions=10)])
        economy = result.packages['economy']

        self.assertEqual(result.base_cost, Decimal('20000.00'))
        self.assertEqual(economy.discount_amount(DiscountKind.PACKAGE), Decimal('4000.00'))
        self.assertTrue(economy.is_available)
        self.assertEqual(economy.final_cost, Decimal('16000.00'))
        self.assertEqual(economy.total_savings, Decimal('4000.00'))

        terms = make_packages()['economy']
        self.assertEqual(min_down_payment(terms, economy, SETTINGS), Decimal('5000'))

    def test_savings_identity_holds_for_every_package(self):
        result = self.quote(
            [service(1, '3333', sessions=15), service(2, '1250', sessions=7)],
            used_certificate=True,
            correction_percent=Decimal('7.5'),
        )
        for package_type, pricing in result.packages.items():
            with self.subTest(package=package_type):
                self.assertEqual(pricing.final_cost + pricing.total_savings, result.base_cost)
                counted = sum(
                    (d.amount for d in pricing.applied_discounts if d.type != DiscountKind.GIFT_SESSIONS),
                    Decimal('0'),
                )
                self.assertEqual(pricing.total_savings, counted)

    def test_gift_sessions_are_informational(self):
        result = self.quote([service(1, '3000', sessions=10)])
        vip = result.packages['vip']

        self.assertEqual(vip.gift_sessions, 3)
        self.assertEqual(vip.discount_amount(DiscountKind.GIFT_SESSIONS), Decimal('9000.00'))
        self.assertEqual(vip.total_savings, Decimal('9000.00'))  # package discount only

    def test_manual_gift_sessions_override(self):
        result = self.quote([service(1, '3000', sessions=10)], manual_gift_sessions={'vip': 1})
        self.assertEqual(result.packages['vip'].gift_sessions, 1)
        self.assertEqual(result.packages['vip'].discount_amount(DiscountKind.GIFT_SESSIONS), Decimal('3000.00'))

    def test_unavailable_package_is_still_priced(self):
        result = self.quote([service(1, '2000', sessions=10)])
        standard = result.packages['standard']

        self.assertFalse(standard.is_available)
        self.assertIn('10,000 RUB', standard.unavailable_reason)
        self.assertEqual(standard.final_cost, Decimal('15000.00'))

    def test_availability_is_monotonic_in_base_cost(self):
        previously_available = False
        for price in range(500, 5001, 250):
            result = self.quote([service(1, str(price), sessions=10)])
            available = result.packages['standard'].is_available
            self.assertFalse(previously_available and not available)
            previously_available = available
        self.assertTrue(previously_available)

    def test_dynamic_discount_takes_the_larger(self):
        packages = make_packages()
        packages['economy'] = PackageTerms(
            type='economy', name='Economy',
            discount=Decimal('0.20'), min_cost=Decimal('10000'),
            min_down_payment_percent=Decimal('0.01'),
            dynamic_discount=Decimal('0.35'),
        )
        result = build_quote(PricingOrder(services=[service(1, '2000')]), packages, SETTINGS)
        self.assertEqual(result.packages['economy'].discount_amount(DiscountKind.PACKAGE), Decimal('7000.00'))


class DiscountRuleTests(SimpleTestCase):

    def quote(self, services, **kwargs):
        return build_quote(PricingOrder(services=services, **kwargs), make_packages(), SETTINGS)

    def test_bulk_discount_threshold_boundary(self):
        below = self.quote([service(1, '2000', sessions=14)])
        at = self.quote([service(1, '2000', sessions=15)])

        self.assertEqual(below.packages['economy'].discount_amount(DiscountKind.BULK), Decimal('0'))
        self.assertEqual(
            at.packages['economy'].discount_amount(DiscountKind.BULK),
            (at.base_cost * Decimal('0.025')).quantize(Decimal('0.01')),
        )

    def test_bulk_uses_longest_service_not_sum(self):
        result = self.quote([service(1, '2000', sessions=10), service(2, '2000', sessions=10)])
        self.assertEqual(result.packages['economy'].discount_amount(DiscountKind.BULK), Decimal('0'))

    def test_certificate_gating(self):
        just_below = self.quote([service(1, '8333', sessions=3)], used_certificate=True)
        self.assertEqual(just_below.base_cost, Decimal('24999.00'))
        self.assertEqual(just_below.packages['economy'].discount_amount(DiscountKind.CERTIFICATE), Decimal('0'))

        at_minimum = self.quote([service(1, '2500', sessions=10)], used_certificate=True)
        self.assertEqual(at_minimum.base_cost, Decimal('25000.00'))
        self.assertEqual(at_minimum.packages['economy'].discount_amount(DiscountKind.CERTIFICATE), Decimal('3000.00'))

    def test_certificate_not_applied_unless_used(self):
        result = self.quote([service(1, '2500', sessions=10)])
        self.assertEqual(result.packages['economy'].discount_amount(DiscountKind.CERTIFICATE), Decimal('0'))

    def test_correction_is_clamped_to_ten_percent(self):
        self.assertEqual(clamp_correction_percent(15), Decimal('10'))
        self.assertEqual(clamp_correction_percent(-3), Decimal('0'))

        result = self.quote([service(1, '2000', sessions=10)], correction_percent=Decimal('15'))
        self.assertEqual(result.packages['economy'].discount_amount(DiscountKind.CORRECTION), Decimal('2000.00'))


class PaymentTermsTests(SimpleTestCase):

    def setUp(self):
        self.packages = make_packages()
        self.result = build_quote(
            PricingOrder(services=[service(1, '4000', sessions=10)]),
            self.packages,
            SETTINGS,
        )

    def test_full_payment_package_pins_down_payment(self):
        vip = self.result.packages['vip']
        terms = self.packages['vip']

        self.assertEqual(min_down_payment(terms, vip, SETTINGS), vip.final_cost)
        self.assertEqual(clamp_down_payment(Decimal('1000'), terms, vip, SETTINGS), vip.final_cost)
        self.assertEqual(monthly_payment(vip.final_cost, Decimal('1000'), 6, True), Decimal('0'))

    def test_percentage_floor(self):
        standard = self.result.packages['standard']
        # 40,000 - 25% = 30,000; half of that beats the 5,000 floor
        self.assertEqual(min_down_payment(self.packages['standard'], standard, SETTINGS), Decimal('15000'))

    def test_monthly_payment_splits_remainder(self):
        self.assertEqual(monthly_payment(Decimal('16000'), Decimal('5000'), 3, False), Decimal('3666.67'))
        self.assertEqual(monthly_payment(Decimal('16000'), Decimal('16000'), 3, False), Decimal('0'))
        self.assertEqual(monthly_payment(Decimal('16000'), Decimal('5000'), 0, False), Decimal('0'))

    def test_payment_bounds(self):
        bounds = payment_bounds('economy', self.result, self.packages, SETTINGS)
        self.assertEqual(bounds['min_down_payment'], Decimal('5000'))
        self.assertEqual(bounds['max_down_payment'], Decimal('32000.00'))
        self.assertTrue(bounds['shows_monthly_payment'])

        self.assertFalse(payment_bounds('vip', self.result, self.packages, SETTINGS)['shows_monthly_payment'])
        self.assertIsNone(payment_bounds('vip', None, self.packages, SETTINGS))
