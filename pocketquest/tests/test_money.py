import unittest
from decimal import Decimal

from pocketquest.money import (
    Currency,
    CurrencyConversionError,
    abs_minor,
    convert_minor,
    format_money,
    format_money_no_symbol,
    format_money_number,
    minor_unit_scale,
    normalize_currency,
    parse_input_to_minor,
    placeholder_for,
    ratio_to_percent,
)


class ParseInputTests(unittest.TestCase):
    def test_usd_rounds_to_nearest_cent(self) -> None:
        self.assertEqual(parse_input_to_minor("12.345", Currency.USD), 1235)
        self.assertEqual(parse_input_to_minor("12.344", Currency.USD), 1234)

    def test_strips_symbols_and_grouping(self) -> None:
        self.assertEqual(parse_input_to_minor("$1,234.50", Currency.USD), 123450)
        self.assertEqual(parse_input_to_minor("₩12,000", Currency.KRW), 12000)

    def test_krw_truncates_fraction(self) -> None:
        self.assertEqual(parse_input_to_minor("1500.9", Currency.KRW), 1500)

    def test_only_first_dot_is_decimal_separator(self) -> None:
        self.assertEqual(parse_input_to_minor("1.2.3", Currency.USD), 123)

    def test_leading_minus_is_kept(self) -> None:
        self.assertEqual(parse_input_to_minor("-5.10", Currency.USD), -510)

    def test_long_usd_input_scales_exactly(self) -> None:
        text = "1" + "0" * 30 + ".01"

        minor = parse_input_to_minor(text, Currency.USD)

        self.assertEqual(minor, 10**32 + 1)
        self.assertEqual(format_money_number(minor, Currency.USD), text)
        self.assertEqual(parse_input_to_minor("-" + text, Currency.USD), -(10**32 + 1))

    def test_canonical_usd_text_survives_parse_and_format(self) -> None:
        for text in ("12.34", "0.05", "1234.50", "-7.00"):
            with self.subTest(text=text):
                minor = parse_input_to_minor(text, Currency.USD)
                self.assertEqual(format_money_no_symbol(minor, Currency.USD), text)

    def test_malformed_input_is_zero(self) -> None:
        for text in ("", "   ", "abc", ".", "-", None):
            with self.subTest(text=text):
                self.assertEqual(parse_input_to_minor(text, Currency.USD), 0)


class FormatMoneyTests(unittest.TestCase):
    def test_usd_always_two_decimals(self) -> None:
        self.assertEqual(format_money(5, Currency.USD), "$0.05")
        self.assertEqual(format_money(123400, Currency.USD), "$1234.00")

    def test_negative_sign_precedes_symbol(self) -> None:
        self.assertEqual(format_money(-250, Currency.USD), "-$2.50")
        self.assertEqual(format_money(-1000, Currency.KRW), "-₩1,000")

    def test_krw_grouped_without_decimals(self) -> None:
        self.assertEqual(format_money(1234567, "krw"), "₩1,234,567")

    def test_variants_without_symbol(self) -> None:
        self.assertEqual(format_money_no_symbol(1234567, Currency.KRW), "1,234,567")
        self.assertEqual(format_money_number(1234567, Currency.KRW), "1234567")
        self.assertEqual(format_money_number(1999, Currency.USD), "19.99")

    def test_placeholder_matches_scale(self) -> None:
        self.assertEqual(placeholder_for(Currency.USD), "0.00")
        self.assertEqual(placeholder_for(Currency.KRW), "0")


class ConvertMinorTests(unittest.TestCase):
    def test_same_currency_is_identity(self) -> None:
        self.assertEqual(convert_minor(1234, Currency.USD, Currency.USD, None), 1234)

    def test_usd_to_krw_multiplies(self) -> None:
        self.assertEqual(convert_minor(1000, Currency.USD, Currency.KRW, 1300), 13000)

    def test_krw_to_usd_divides_and_rounds(self) -> None:
        self.assertEqual(convert_minor(13000, Currency.KRW, Currency.USD, 1300), 1000)
        self.assertEqual(convert_minor(1, Currency.KRW, Currency.USD, Decimal("3")), 33)

    def test_non_positive_rate_raises(self) -> None:
        for rate in (None, 0, -1, float("nan")):
            with self.subTest(rate=rate):
                with self.assertRaises(CurrencyConversionError):
                    convert_minor(100, Currency.USD, Currency.KRW, rate)

    def test_unknown_currency_raises(self) -> None:
        with self.assertRaises(ValueError):
            convert_minor(100, "EUR", Currency.USD, 1.1)


class HelperTests(unittest.TestCase):
    def test_minor_unit_scale(self) -> None:
        self.assertEqual(minor_unit_scale("USD"), 100)
        self.assertEqual(minor_unit_scale("KRW"), 1)

    def test_normalize_currency_fallback(self) -> None:
        self.assertIs(normalize_currency(" usd "), Currency.USD)
        self.assertIs(normalize_currency("", fallback=Currency.KRW), Currency.KRW)

    def test_ratio_to_percent_is_bounded(self) -> None:
        self.assertEqual(ratio_to_percent(0.5), 50)
        self.assertEqual(ratio_to_percent(0.125), 13)
        self.assertEqual(ratio_to_percent(3.0), 100)
        self.assertEqual(ratio_to_percent(-1.0), 0)
        self.assertEqual(ratio_to_percent(float("inf")), 0)

    def test_abs_minor_rejects_non_numbers(self) -> None:
        self.assertEqual(abs_minor(-250), 250)
        self.assertEqual(abs_minor(12.6), 13)
        self.assertEqual(abs_minor(True), 0)
        self.assertEqual(abs_minor("12"), 0)
        self.assertEqual(abs_minor(float("nan")), 0)


if __name__ == "__main__":
    unittest.main()
