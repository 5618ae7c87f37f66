"""Tests for withholding tax calculation."""

from decimal import Decimal

import pytest

from earnings_calculator import DEFAULT_TAX_RATES, TaxCalculator, TaxStatus


@pytest.fixture
def calculator() -> TaxCalculator:
    """Calculator with the default rate table."""
    return TaxCalculator(DEFAULT_TAX_RATES)


class TestTaxRates:
    """Default withholding rates."""

    @pytest.mark.parametrize(
        "status,rate",
        [
            (TaxStatus.INDIVIDUAL, Decimal("0.13")),
            (TaxStatus.SELF_EMPLOYED, Decimal("0.04")),
            (TaxStatus.SOLE_PROPRIETOR, Decimal("0.06")),
            (TaxStatus.LEGAL_ENTITY, Decimal("0")),
        ],
    )
    def test_default_rates(self, calculator, status, rate):
        """Each tax status maps to its statutory rate."""
        assert calculator.rate_for(status) == rate

    def test_rate_for_accepts_string(self, calculator):
        """Status may be passed as its string value."""
        assert calculator.rate_for("INDIVIDUAL") == Decimal("0.13")

    def test_unknown_status_rejected(self, calculator):
        """Unknown status raises ValueError."""
        with pytest.raises(ValueError, match="Unknown tax status"):
            calculator.rate_for("OFFSHORE")

    def test_rates_are_read_only(self, calculator):
        """Rate table cannot be mutated through the calculator."""
        with pytest.raises(TypeError):
            calculator.rates[TaxStatus.INDIVIDUAL] = Decimal("0.5")

    def test_missing_status_rejected(self):
        """Every tax status needs a rate."""
        with pytest.raises(ValueError, match="missing"):
            TaxCalculator({TaxStatus.INDIVIDUAL: Decimal("0.13")})

    def test_rate_out_of_range_rejected(self):
        """Rates must be fractions in [0, 1]."""
        rates = dict(DEFAULT_TAX_RATES)
        rates[TaxStatus.INDIVIDUAL] = Decimal("13")
        with pytest.raises(ValueError, match=r"\[0, 1\]"):
            TaxCalculator(rates)

    def test_constructor_copies_table(self):
        """Later changes to the source mapping do not leak in."""
        rates = dict(DEFAULT_TAX_RATES)
        calculator = TaxCalculator(rates)
        rates[TaxStatus.LEGAL_ENTITY] = Decimal("0.5")
        assert calculator.rate_for(TaxStatus.LEGAL_ENTITY) == Decimal("0")


class TestTaxCalculation:
    """Tax breakdown of gross amounts."""

    def test_self_employed_scenario(self, calculator):
        """1000 at 4% withholds 40 and pays out 960."""
        result = calculator.calculate(1000, TaxStatus.SELF_EMPLOYED)

        assert result.gross_amount == 1000
        assert result.tax_rate == Decimal("0.04")
        assert result.tax_amount == 40
        assert result.net_amount == 960

    def test_individual(self, calculator):
        """13% of 1 000 ₽ is 130 ₽."""
        result = calculator.calculate(100_000, TaxStatus.INDIVIDUAL)

        assert result.tax_amount == 13_000
        assert result.net_amount == 87_000

    def test_legal_entity_pays_no_tax(self, calculator):
        """Legal entities self-report: nothing is withheld."""
        result = calculator.calculate(123_456, TaxStatus.LEGAL_ENTITY)

        assert result.tax_amount == 0
        assert result.net_amount == 123_456

    def test_round_half_up(self, calculator):
        """Half a kopeck rounds up: 6% of 25 is 1.5."""
        assert calculator.calculate(25, TaxStatus.SOLE_PROPRIETOR).tax_amount == 2

    def test_round_down_below_half(self, calculator):
        """13% of 3 is 0.39 -> 0."""
        assert calculator.calculate(3, TaxStatus.INDIVIDUAL).tax_amount == 0

    def test_zero_amount(self, calculator):
        """Zero gross gives zero tax and zero net."""
        result = calculator.calculate(0, TaxStatus.INDIVIDUAL)
        assert (result.tax_amount, result.net_amount) == (0, 0)

    def test_negative_amount_rejected(self, calculator):
        """Negative gross raises ValueError."""
        with pytest.raises(ValueError, match="negative"):
            calculator.calculate(-1, TaxStatus.INDIVIDUAL)

    @pytest.mark.parametrize("amount", [0, 1, 7, 99, 1000, 100_001, 987_654_321])
    @pytest.mark.parametrize("status", list(TaxStatus))
    def test_tax_plus_net_equals_gross(self, calculator, amount, status):
        """Tax and net always add up to the gross amount."""
        result = calculator.calculate(amount, status)
        assert result.tax_amount + result.net_amount == amount

    @pytest.mark.parametrize("status", list(TaxStatus))
    def test_deterministic(self, calculator, status):
        """Same inputs always give the same breakdown."""
        first = calculator.calculate(777_777, status)
        second = TaxCalculator(DEFAULT_TAX_RATES).calculate(777_777, status)
        assert first == second
