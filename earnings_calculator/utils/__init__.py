"""
Utility functions for earnings calculator.

Вспомогательные функции для форматирования сумм.
"""

from earnings_calculator.utils.formatters import format_money, format_rate

__all__ = [
    "format_money",
    "format_rate",
]
