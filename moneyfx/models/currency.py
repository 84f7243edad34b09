"""
Currency Table

Static table of supported currencies: symbol, decimal precision and
where the symbol goes when an amount is displayed.

DESIGN DECISION: This is data, not behaviour. The registry can be
extended at runtime (register) so the surrounding app can add codes
without a code change here.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from moneyfx.exceptions import ConversionError


class SymbolPosition(str, Enum):
    """Where the currency symbol is rendered."""
    BEFORE = "before"
    AFTER = "after"


class CurrencyInfo(BaseModel):
    """Display and rounding rules for one currency."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    code: str = Field(..., min_length=3, max_length=4)
    name: str = Field(..., min_length=1, max_length=100)
    symbol: str = Field(..., min_length=1, max_length=8)
    decimal_places: int = Field(default=2, ge=0, le=8)
    symbol_position: SymbolPosition = SymbolPosition.BEFORE

    @field_validator("code")
    @classmethod
    def uppercase_code(cls, v: str) -> str:
        return v.upper()

    @property
    def quantum(self) -> Decimal:
        """Smallest representable unit, e.g. Decimal('0.01')."""
        return Decimal(1).scaleb(-self.decimal_places)


def _info(code, name, symbol, places=2, position=SymbolPosition.BEFORE) -> CurrencyInfo:
    return CurrencyInfo(
        code=code,
        name=name,
        symbol=symbol,
        decimal_places=places,
        symbol_position=position,
    )


DEFAULT_CURRENCIES: tuple[CurrencyInfo, ...] = (
    # Majors
    _info("USD", "US Dollar", "$"),
    _info("EUR", "Euro", "€"),
    _info("GBP", "British Pound", "£"),
    _info("JPY", "Japanese Yen", "¥", 0),
    _info("CHF", "Swiss Franc", "CHF"),
    _info("CAD", "Canadian Dollar", "C$"),
    _info("AUD", "Australian Dollar", "A$"),
    _info("NZD", "New Zealand Dollar", "NZ$"),
    # Asia
    _info("INR", "Indian Rupee", "₹"),
    _info("CNY", "Chinese Yuan", "¥"),
    _info("HKD", "Hong Kong Dollar", "HK$"),
    _info("SGD", "Singapore Dollar", "S$"),
    _info("KRW", "South Korean Won", "₩", 0),
    _info("THB", "Thai Baht", "฿"),
    _info("MYR", "Malaysian Ringgit", "RM"),
    _info("IDR", "Indonesian Rupiah", "Rp", 0),
    _info("PHP", "Philippine Peso", "₱"),
    _info("VND", "Vietnamese Dong", "₫", 0, SymbolPosition.AFTER),
    _info("BDT", "Bangladeshi Taka", "৳"),
    _info("PKR", "Pakistani Rupee", "₨"),
    _info("LKR", "Sri Lankan Rupee", "Rs"),
    _info("NPR", "Nepalese Rupee", "₨"),
    # Americas
    _info("MXN", "Mexican Peso", "$"),
    _info("BRL", "Brazilian Real", "R$"),
    _info("CLP", "Chilean Peso", "$", 0),
    # Europe
    _info("SEK", "Swedish Krona", "kr", 2, SymbolPosition.AFTER),
    _info("NOK", "Norwegian Krone", "kr", 2, SymbolPosition.AFTER),
    _info("DKK", "Danish Krone", "kr", 2, SymbolPosition.AFTER),
    _info("PLN", "Polish Zloty", "zł", 2, SymbolPosition.AFTER),
    _info("ISK", "Icelandic Krona", "kr", 0, SymbolPosition.AFTER),
    _info("RUB", "Russian Ruble", "₽", 2, SymbolPosition.AFTER),
    _info("TRY", "Turkish Lira", "₺"),
    # Middle East / Africa
    _info("AED", "UAE Dirham", "د.إ", 2, SymbolPosition.AFTER),
    _info("SAR", "Saudi Riyal", "﷼", 2, SymbolPosition.AFTER),
    _info("KWD", "Kuwaiti Dinar", "KD", 3),
    _info("BHD", "Bahraini Dinar", "BD", 3),
    _info("ZAR", "South African Rand", "R"),
)

# Sanctioned currencies: never convertible, regardless of rate availability
RESTRICTED_CURRENCIES = frozenset({
    "IRR",  # Iranian Rial
    "KPW",  # North Korean Won
    "SYP",  # Syrian Pound
    "VES",  # Venezuelan Bolivar
    "CUP",  # Cuban Peso
    "MMK",  # Myanmar Kyat
    "AFN",  # Afghan Afghani
})


class CurrencyRegistry:
    """
    Lookup table for supported currencies.

    Unknown codes are reported as unsupported; callers decide whether
    that is an error. precision()/symbol() raise KeyError for unknown
    codes so rounding never silently falls back to a guess.
    """

    def __init__(
        self,
        currencies: Optional[Iterable[CurrencyInfo]] = None,
        restricted: Optional[Iterable[str]] = None,
    ):
        self._currencies: dict[str, CurrencyInfo] = {}
        for info in currencies if currencies is not None else DEFAULT_CURRENCIES:
            self.register(info)
        self._restricted = frozenset(
            code.upper() for code in (restricted if restricted is not None else RESTRICTED_CURRENCIES)
        )

    def register(self, info: CurrencyInfo) -> None:
        """Add or replace a currency definition."""
        self._currencies[info.code] = info

    def get(self, code: str) -> Optional[CurrencyInfo]:
        return self._currencies.get(code.upper())

    def is_supported(self, code: str) -> bool:
        return code.upper() in self._currencies

    def is_restricted(self, code: str) -> bool:
        return code.upper() in self._restricted

    def supported_codes(self) -> list[str]:
        return sorted(self._currencies)

    def precision(self, code: str) -> int:
        return self._require(code).decimal_places

    def symbol(self, code: str) -> str:
        return self._require(code).symbol

    def quantize(self, amount: Decimal, code: str) -> Decimal:
        """
        Round an amount to the currency's minor unit (half-up).

        Raises:
            ConversionError: The rounded amount needs more digits than the
                decimal context allows
        """
        quantum = self._require(code).quantum
        try:
            return amount.quantize(quantum, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            raise ConversionError(f"Amount {amount} is too large to express in {code.upper()}")

    def format_amount(self, amount: Decimal, code: str) -> str:
        """Render an amount with its symbol, e.g. '$1,234.50' or '12.00 kr'."""
        info = self._require(code)
        rounded = self.quantize(amount, code)
        sign = "-" if rounded < 0 else ""
        body = f"{abs(rounded):,.{info.decimal_places}f}"
        if info.symbol_position == SymbolPosition.AFTER:
            return f"{sign}{body} {info.symbol}"
        return f"{sign}{info.symbol}{body}"

    def _require(self, code: str) -> CurrencyInfo:
        info = self.get(code)
        if info is None:
            raise KeyError(f"Unsupported currency: {code}")
        return info


_default_registry: Optional[CurrencyRegistry] = None


def get_currency_registry() -> CurrencyRegistry:
    """Process-wide default registry (built on first use)."""
    global _default_registry
    if _default_registry is None:
        _default_registry = CurrencyRegistry()
    return _default_registry
