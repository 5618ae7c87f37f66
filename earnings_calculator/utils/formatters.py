"""
Formatting utilities for money and rates.

Функции для форматирования сумм и ставок в читаемый вид
для сообщений пользователю.
"""

from decimal import Decimal

from earnings_calculator.core.money import to_major_units


def format_money(
    amount: int,
    currency: str = "₽",
    thousands_separator: str = " ",
    decimal_separator: str = ",",
) -> str:
    """
    Форматировать сумму в копейках как денежную строку.

    Args:
        amount: Сумма в копейках
        currency: Символ валюты (по умолчанию "₽")
        thousands_separator: Разделитель тысяч
        decimal_separator: Разделитель десятичных

    Returns:
        Отформатированная строка с валютой

    Example:
        >>> format_money(123456)
        '1 234,56 ₽'
        >>> format_money(100000, currency="RUB")
        '1 000,00 RUB'
    """
    major = to_major_units(amount)
    formatted = f"{major:,.2f}"
    formatted = (
        formatted.replace(",", "\0")
        .replace(".", decimal_separator)
        .replace("\0", thousands_separator)
    )
    return f"{formatted} {currency}"


def format_rate(rate: Decimal, decimals: int = 0) -> str:
    """
    Форматировать долю как процент.

    Example:
        >>> format_rate(Decimal("0.13"))
        '13%'
        >>> format_rate(Decimal("0.035"), decimals=1)
        '3.5%'
    """
    return f"{rate * 100:.{decimals}f}%"
