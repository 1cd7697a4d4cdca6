"""LPT and ETH prices in USD and EUR (Coinbase exchange rates API)."""

from dataclasses import dataclass
from typing import List, Optional

import httpx

from ..collector import Collector
from ..fetcher import DEFAULT_TIMEOUT, Fetcher
from ..metrics import GaugeSpec, MetricsSink, Sample
from ..schemas import ExchangeRatesData
from ..utils.numeric import parse_float

COINBASE_URL = "https://api.coinbase.com/v2/exchange-rates?currency=USD"

COINS = (("LPT", "LPT token price."), ("ETH", "Ethereum price."))


@dataclass
class CryptoPrices:
    usd: Optional[float] = None
    eur: Optional[float] = None


def usd_price(rates: dict, symbol: str) -> Optional[float]:
    """Rates are quoted per USD, so the price is the inverse."""
    rate, ok = parse_float(rates.get(symbol))
    if not ok or rate == 0:
        return None
    return 1 / rate


class CryptoPricesCollector(Collector):
    name = "crypto_prices"
    gauge_specs = tuple(
        GaugeSpec(f"{symbol}_price", doc, ("currency",)) for symbol, doc in COINS
    )

    def __init__(
        self,
        sink: MetricsSink,
        fetch_interval: float,
        publish_interval: float,
        url: str = COINBASE_URL,
        client: Optional[httpx.AsyncClient] = None,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ):
        super().__init__(sink, fetch_interval, publish_interval)
        self.fetcher = Fetcher(url, ExchangeRatesData, timeout=timeout, client=client)

    async def fetch(self) -> ExchangeRatesData:
        return await self.fetcher.fetch()

    def prices(self, payload: ExchangeRatesData, symbol: str) -> CryptoPrices:
        rates = payload.data.rates
        prices = CryptoPrices(usd=usd_price(rates, symbol))
        if prices.usd is None:
            return prices
        usd_to_eur, ok = parse_float(rates.get("EUR"))
        if ok:
            prices.eur = prices.usd * usd_to_eur
        return prices

    def derive(self, payload: ExchangeRatesData) -> List[Sample]:
        samples = []
        for symbol, _ in COINS:
            prices = self.prices(payload, symbol)
            if prices.usd is not None:
                samples.append(Sample(f"{symbol}_price", prices.usd, {"currency": "USD"}))
            if prices.eur is not None:
                samples.append(Sample(f"{symbol}_price", prices.eur, {"currency": "EUR"}))
        return samples
