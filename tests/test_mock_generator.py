import asyncio

from bloommarket.config.settings import MockSettings
from bloommarket.core.geo import distance_km
from bloommarket.domain.models import Coordinate
from bloommarket.ingestion.mock_generator import MockMarketData

HOME = Coordinate(latitude=12.9716, longitude=77.5946)


def test_mock_listings_surround_the_reference():
    data = MockMarketData(MockSettings(plant_count=25, radius_km=5, seed=3))

    listings = asyncio.run(data.fetch_listings(HOME))

    assert len(listings) == 25
    assert len({item.id for item in listings}) == 25
    for item in listings:
        assert distance_km(HOME, item.location) <= 3.6
        assert 100 <= item.price <= 1099
        assert item.currency == "INR"
        assert "km of your location" in item.description


def test_mock_communities_alternate_kind_and_start_with_creator():
    data = MockMarketData(MockSettings(community_count=4, seed=3))

    communities = asyncio.run(data.fetch_communities(HOME))

    assert [c.kind for c in communities] == ["Permanent", "Temporary", "Permanent", "Temporary"]
    assert all(c.members == (c.creator_id,) for c in communities)


def test_same_seed_gives_same_neighbourhood():
    a = asyncio.run(MockMarketData(MockSettings(seed=11)).fetch_listings(HOME))
    b = asyncio.run(MockMarketData(MockSettings(seed=11)).fetch_listings(HOME))

    assert [(x.location.latitude, x.price) for x in a] == [(y.location.latitude, y.price) for y in b]
