"""
Type definitions for earnings calculator.

Определяет перечисления, общие для калькулятора и приложения:
налоговые статусы получателей выплат и уровни партнерской программы.
"""

from enum import Enum


class TaxStatus(str, Enum):
    """Tax classification of a payout recipient."""

    INDIVIDUAL = "INDIVIDUAL"  # Физическое лицо (НДФЛ)
    SELF_EMPLOYED = "SELF_EMPLOYED"  # Самозанятый (НПД)
    SOLE_PROPRIETOR = "SOLE_PROPRIETOR"  # ИП
    LEGAL_ENTITY = "LEGAL_ENTITY"  # Юрлицо, платит налоги самостоятельно


class PartnerLevelName(str, Enum):
    """Partner program tiers, ordered from lowest to highest."""

    STARTER = "STARTER"
    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"
