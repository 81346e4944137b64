"""
Currency Conversion

Spot conversion between the supported currencies using rates quoted
against a single base currency (``{"rates": {"USD": 0.03, ...}}``).

Conversion always routes through the base currency. A currency with no
known rate converts at 1.0; there is no attempt at historical or
ledger-consistent conversion.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

import httpx

from spendwise.config import CurrencySettings, get_settings
from spendwise.log import get_logger
from spendwise.models.records import Currency


logger = get_logger(__name__)

TWO_PLACES = Decimal("0.01")


class CurrencyConverter:
    """
    Holds the latest rates and converts amounts.

    Usage:
        converter = CurrencyConverter()
        await converter.load_rates()
        converter.convert(Decimal("100"), Currency.USD, Currency.TRY)
    """

    def __init__(
        self,
        settings: Optional[CurrencySettings] = None,
        rates: Optional[dict[str, float]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings or get_settings().currency
        self._rates: dict[str, Decimal] = {
            code: Decimal(str(rate)) for code, rate in (rates or {}).items()
        }
        self._transport = transport

    @property
    def base_currency(self) -> str:
        return self._settings.base_currency

    @property
    def rates(self) -> dict[str, Decimal]:
        return dict(self._rates)

    async def load_rates(self) -> bool:
        """
        Fetch fresh rates.

        Returns:
            True if rates were replaced. On any failure the previous rates
            are kept and the failure is logged.
        """
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.get(self._settings.rates_url)
                response.raise_for_status()
                payload = response.json()
            rates = {
                str(code): Decimal(str(rate))
                for code, rate in payload["rates"].items()
                if isinstance(rate, (int, float)) and rate > 0
            }
        except httpx.HTTPError as e:
            logger.warning("exchange_rates_unavailable", error=str(e))
            return False
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            logger.warning("exchange_rates_invalid", error=str(e))
            return False

        self._rates = rates
        logger.info("exchange_rates_loaded", count=len(rates), base=self.base_currency)
        return True

    def _rate(self, currency: Currency) -> Decimal:
        if currency.value == self.base_currency:
            return Decimal(1)
        return self._rates.get(currency.value, Decimal(1))

    def convert(self, amount: Decimal, from_currency: Currency, to_currency: Currency) -> Decimal:
        """Convert ``amount`` through the base currency."""
        if from_currency == to_currency:
            return amount
        in_base = amount / self._rate(from_currency)
        return in_base * self._rate(to_currency)

    def format_amount(self, amount: Decimal, currency: Currency) -> str:
        return format_amount(amount, currency)


def format_amount(amount: Decimal, currency: Currency) -> str:
    """Symbol, thousands separators and two decimals, e.g. ``₺1,234.50``."""
    quantized = Decimal(amount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    return f"{currency.symbol}{quantized:,.2f}"
