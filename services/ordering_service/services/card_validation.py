"""Card payload validation. Pure functions, nothing is stored or logged."""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from libs.common.datetime_utils import two_digit_year_month
from services.ordering_service.models import CardNetwork

_CARD_NUMBER = re.compile(r"[0-9]{16}")
_MONTH = re.compile(r"[0-9]{1,2}")
_YEAR = re.compile(r"[0-9]{2}")
_CVV = re.compile(r"[0-9]{3,4}")


class CardPayload(Protocol):
    number: str
    expiry_month: str
    expiry_year: str
    cvv: str
    cardholder_name: str


@dataclass(frozen=True)
class CardCheck:
    is_valid: bool
    network: Optional[CardNetwork] = None
    last4: Optional[str] = None
    reason: Optional[str] = None


def _reject(reason: str) -> CardCheck:
    return CardCheck(is_valid=False, reason=reason)


def classify_network(number: str) -> CardNetwork:
    """Classify the card network by its leading digit."""
    first = number[:1]
    if first == "4":
        return CardNetwork.VISA
    if first == "5":
        return CardNetwork.MASTERCARD
    if first == "3":
        return CardNetwork.AMEX
    return CardNetwork.OTHER


def is_expired(expiry_month: int, expiry_year: int, now: Optional[datetime] = None) -> bool:
    """True when (YY, MM) is strictly before the current (YY, MM)."""
    current_year, current_month = two_digit_year_month(now)
    return (expiry_year, expiry_month) < (current_year, current_month)


def validate_card(card: CardPayload, now: Optional[datetime] = None) -> CardCheck:
    """Validate a raw card payload.

    Valid iff the number has exactly 16 digits once spaces are removed, the
    month is 01-12, the 2-digit (year, month) is not in the past, the CVV is
    3 or 4 digits and the trimmed cardholder name has at least 2 characters.
    """
    number = re.sub(r"\s", "", card.number or "")
    if not _CARD_NUMBER.fullmatch(number):
        return _reject("Card number must have 16 digits")

    month_raw = (card.expiry_month or "").strip()
    year_raw = (card.expiry_year or "").strip()
    if not _MONTH.fullmatch(month_raw) or not _YEAR.fullmatch(year_raw):
        return _reject("Malformed expiry date")

    month, year = int(month_raw), int(year_raw)
    if not 1 <= month <= 12:
        return _reject("Expiry month must be between 01 and 12")
    if is_expired(month, year, now):
        return _reject("Card is expired")

    if not _CVV.fullmatch(card.cvv or ""):
        return _reject("CVV must have 3 or 4 digits")

    if len((card.cardholder_name or "").strip()) < 2:
        return _reject("Cardholder name is too short")

    return CardCheck(
        is_valid=True,
        network=classify_network(number),
        last4=number[-4:],
    )
