import asyncio

from bloommarket.catalog.listing_catalog import SessionState
from bloommarket.config.settings import LocationSettings, MockSettings, Settings
from bloommarket.core.errors import LocationErrorKind
from bloommarket.core.session_cache import SessionCache
from bloommarket.domain.models import Coordinate, Order, UserProfile
from bloommarket.ingestion.mock_generator import MockMarketData
from bloommarket.location.watcher import StaticLocationSource
from bloommarket.session.app_state import AppSession

ASHA = UserProfile(user_id="u1", display_name="Asha", email="asha@example.test")


class CountingSource:
    def __init__(self, latitude: float, longitude: float):
        self.latitude = latitude
        self.longitude = longitude
        self.calls = 0

    async def get_position(self, *, high_accuracy, timeout_seconds, maximum_age_seconds):
        self.calls += 1
        return self.latitude, self.longitude


def _session(tmp_path, source, *, poll_interval: float = 300) -> AppSession:
    settings = Settings(location=LocationSettings(poll_interval_seconds=poll_interval))
    return AppSession(
        settings,
        data_service=MockMarketData(MockSettings(seed=7)),
        location_source=source,
        session_cache=SessionCache(tmp_path),
    )


def test_sign_in_with_location_reaches_ready_and_persists_user(tmp_path):
    async def scenario():
        session = _session(tmp_path, StaticLocationSource(12.9716, 77.5946))
        await session.sign_in(ASHA)
        snapshot = (session.state, len(session.catalog.listings), len(session.catalog.communities), session.polling)
        await session.close()
        return session, snapshot

    session, (state, n_listings, n_communities, polling) = asyncio.run(scenario())

    assert state is SessionState.READY
    assert (n_listings, n_communities) == (10, 5)
    assert polling is True
    assert session.polling is False

    cached = SessionCache(tmp_path).load_user("bloomUser")
    assert cached.user_id == "u1"
    assert cached.location.address == "12.9716, 77.5946"


def test_sign_out_clears_state_and_cache(tmp_path):
    async def scenario():
        session = _session(tmp_path, StaticLocationSource(12.9716, 77.5946))
        await session.sign_in(ASHA)
        await session.sign_out()
        return session

    session = asyncio.run(scenario())

    assert session.state is SessionState.UNAUTHENTICATED
    assert session.user is None
    assert session.catalog.listings == []
    assert session.polling is False
    assert SessionCache(tmp_path).load_user("bloomUser") is None


def test_cached_location_is_restored_without_a_location_source(tmp_path):
    home = Coordinate(latitude=51.5074, longitude=-0.1278, address="London")
    SessionCache(tmp_path).save_user("bloomUser", ASHA.model_copy(update={"location": home}))

    async def scenario():
        session = _session(tmp_path, None)
        await session.sign_in(ASHA)
        result = (session.state, session.catalog.reference)
        await session.close()
        return result

    state, reference = asyncio.run(scenario())

    assert state is SessionState.READY
    assert reference == home


def test_cached_location_of_another_user_is_ignored(tmp_path):
    home = Coordinate(latitude=51.5074, longitude=-0.1278)
    other = UserProfile(user_id="u2", display_name="Ben", location=home)
    SessionCache(tmp_path).save_user("bloomUser", other)

    async def scenario():
        session = _session(tmp_path, None)
        await session.sign_in(ASHA)
        result = (session.state, session.last_location_error)
        await session.close()
        return result

    state, error = asyncio.run(scenario())

    assert state is SessionState.AWAITING_LOCATION
    assert error is LocationErrorKind.UNSUPPORTED


def test_polling_requests_new_fixes_until_sign_out(tmp_path):
    source = CountingSource(12.9716, 77.5946)

    async def scenario():
        session = _session(tmp_path, source, poll_interval=0.01)
        await session.sign_in(ASHA)
        await asyncio.sleep(0.1)
        await session.sign_out()
        calls_at_sign_out = source.calls
        await asyncio.sleep(0.05)
        return calls_at_sign_out

    calls_at_sign_out = asyncio.run(scenario())

    assert calls_at_sign_out > 1
    assert source.calls == calls_at_sign_out


def test_signing_in_again_replaces_previous_user(tmp_path):
    ben = UserProfile(user_id="u2", display_name="Ben")

    async def scenario():
        session = _session(tmp_path, StaticLocationSource(12.9716, 77.5946))
        await session.sign_in(ASHA)
        await session.sign_in(ben)
        result = (session.user.user_id, session.catalog.user.user_id, session.state)
        await session.close()
        return result

    assert asyncio.run(scenario()) == ("u2", "u2", SessionState.READY)


class MockDataWithOrders(MockMarketData):
    def __init__(self, orders):
        super().__init__(MockSettings(seed=7))
        self.orders = list(orders)
        self.order_requests: list[str] = []

    async def fetch_orders(self, user_id):
        self.order_requests.append(user_id)
        return [o for o in self.orders if o.buyer_id == user_id]


def test_sign_in_loads_the_users_orders(tmp_path):
    order = Order(buyer_id="u1", listing_id="plant_1", seller_id="user_1", price=300, payment_method="Pickup")
    data = MockDataWithOrders([order])

    async def scenario():
        session = AppSession(
            Settings(),
            data_service=data,
            location_source=StaticLocationSource(12.9716, 77.5946),
            session_cache=SessionCache(tmp_path),
        )
        await session.sign_in(ASHA)
        result = (session.state, session.catalog.orders)
        await session.close()
        return result

    state, orders = asyncio.run(scenario())

    assert state is SessionState.READY
    assert orders == [order]
    assert data.order_requests == ["u1"]
