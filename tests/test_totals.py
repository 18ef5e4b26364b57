from decimal import Decimal

from backoffice.services.totals import calculate_line_totals, calculate_totals, money, to_decimal


class TestCalculateTotals:
    def test_worked_example(self):
        """2 x 10.00 + 1 x 5.50 with 6% tax comes to 30.03."""
        totals = calculate_line_totals([(2, "10.00"), (1, "5.50")], tax_rate="6").rounded()
        assert totals.subtotal == Decimal("25.50")
        assert totals.tax_amount == Decimal("1.53")
        assert totals.shipping_cost == Decimal("0.00")
        assert totals.total == Decimal("27.03")

    def test_worked_example_with_shipping(self):
        """Shipping is added after tax and is not taxed."""
        totals = calculate_line_totals(
            [(2, "10.00"), (1, "5.50")], shipping_cost="3.00", tax_rate="6"
        ).rounded()
        assert totals.tax_amount == Decimal("1.53")
        assert totals.total == Decimal("30.03")

    def test_missing_values_count_as_zero(self):
        """None or blank shipping, tax and discount behave as zero."""
        totals = calculate_totals([Decimal("12.00")], shipping_cost=None, tax_rate="", discount_amount=None)
        assert totals.shipping_cost == Decimal("0")
        assert totals.tax_amount == Decimal("0")
        assert totals.total == Decimal("12.00")

    def test_discount_is_subtracted(self):
        totals = calculate_totals([Decimal("50.00")], shipping_cost="5", discount_amount="7.50").rounded()
        assert totals.total == Decimal("47.50")

    def test_no_lines(self):
        """An empty order totals to shipping only."""
        totals = calculate_totals([], shipping_cost="4.00").rounded()
        assert totals.subtotal == Decimal("0.00")
        assert totals.total == Decimal("4.00")


class TestMoney:
    def test_rounds_half_up(self):
        assert money("0.125") == Decimal("0.13")
        assert money("2.675") == Decimal("2.68")

    def test_float_input_uses_its_repr(self):
        """Floats go through str() so 0.1 stays 0.1."""
        assert to_decimal(0.1) == Decimal("0.1")

    def test_blank_is_zero(self):
        assert money("") == Decimal("0.00")
        assert money(None) == Decimal("0.00")
