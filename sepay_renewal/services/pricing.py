"""Цена продажи по каналу, определяемому префиксом кода заказа"""
from enum import Enum

from sepay_renewal.constants import ORDER_PREFIXES
from sepay_renewal.utils.money import normalize_money, normalize_pct, round_to_thousands


class PricingChannel(str, Enum):
    COOPERATOR = "cooperator"
    RETAIL = "retail"
    STANDARD = "standard"
    PROMO = "promo"
    IMPORT = "import"
    UNKNOWN = "unknown"


_CHANNEL_BY_PREFIX = (
    (ORDER_PREFIXES["ctv"], PricingChannel.COOPERATOR),
    (ORDER_PREFIXES["le"], PricingChannel.RETAIL),
    (ORDER_PREFIXES["thuong"], PricingChannel.STANDARD),
    (ORDER_PREFIXES["khuyen"], PricingChannel.PROMO),
    (ORDER_PREFIXES["nhap"], PricingChannel.IMPORT),
)


def classify_channel(order_code: str) -> PricingChannel:
    code = str(order_code or "").strip().upper()
    for prefix, channel in _CHANNEL_BY_PREFIX:
        if code.startswith(prefix):
            return channel
    return PricingChannel.UNKNOWN


def calculate_sale_price(order_code: str, cost: int, pct_ctv=1, pct_khach=1) -> int:
    """
    Новая цена продажи из себестоимости, округленная до тысяч

    MAVC: cost * pct_ctv, MAVL: cost * pct_ctv * pct_khach,
    все остальные префиксы: cost без изменений.
    """
    channel = classify_channel(order_code)
    if channel is PricingChannel.COOPERATOR:
        raw = cost * normalize_pct(pct_ctv)
    elif channel is PricingChannel.RETAIL:
        raw = cost * normalize_pct(pct_ctv) * normalize_pct(pct_khach)
    else:
        raw = cost
    # До целых с округлением, чтобы 80499.6 не превратилось в 80499
    return round_to_thousands(normalize_money(raw))
