"""Build the configured backing data service (`catalog.data_source`)."""

from __future__ import annotations

from bloommarket.config.settings import Settings
from bloommarket.ingestion.base import MarketDataService
from bloommarket.ingestion.market_client import MarketApiClient, TokenProvider
from bloommarket.ingestion.mock_generator import MockMarketData


def build_data_service(settings: Settings, *, token_provider: TokenProvider | None = None) -> MarketDataService:
    if settings.catalog.data_source == "remote":
        return MarketApiClient(settings, token_provider=token_provider)
    return MockMarketData(settings.mock)
