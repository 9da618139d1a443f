"""Price formatting and deep links shared by the push and email channels."""

from urllib.parse import quote

# (threshold, suffix) from largest to smallest, per language
_PRICE_UNITS = {
    "en": ((10**12, "T"), (10**9, "B"), (10**6, "M"), (10**3, "K")),
    "id": ((10**12, " T"), (10**9, " M"), (10**6, " Jt"), (10**3, " Rb")),
}
_DECIMAL_SEPARATOR = {"en": ".", "id": ","}
_THOUSANDS_SEPARATOR = {"en": ",", "id": "."}


def _language(locale: str) -> str:
    lang = (locale or "en").replace("_", "-").split("-")[0].lower()
    return lang if lang in _PRICE_UNITS else "en"


def format_price(price: int, locale: str = "en") -> str:
    """Abbreviated rupiah amount.

    Examples:
        format_price(1_500_000_000)        -> "Rp 1.5B"
        format_price(750_000_000, "id")    -> "Rp 750 Jt"
        format_price(2_000_000_000, "id")  -> "Rp 2 M"
    """
    lang = _language(locale)
    for size, suffix in _PRICE_UNITS[lang]:
        if abs(price) >= size:
            value = f"{price / size:.1f}".rstrip("0").rstrip(".")
            return f"Rp {value.replace('.', _DECIMAL_SEPARATOR[lang])}{suffix}"
    return f"Rp {price:,}".replace(",", _THOUSANDS_SEPARATOR[lang])


def property_url(base_url: str, listing_id: str) -> str:
    return f"{base_url.rstrip('/')}/property/{quote(listing_id)}"


def results_url(base_url: str, subscription_id: str) -> str:
    return f"{base_url.rstrip('/')}/search?saved={quote(subscription_id)}"
