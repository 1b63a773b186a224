import pytest

from common import storage
from common.models import InventoryItem, User
from fulfillment_worker.worker import FulfillmentWorker
from inventory_service.reservation import InventoryReservationService
from order_service.intake import OrderIntake
from order_service.lookup import OrderLookup
from tests.fakes import FakeClock, MemoryCache, MemoryQueue, RecordingNotifier

CACHE_TTL = 3600


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "orders.db")
    storage.init_db(path)
    return path


@pytest.fixture
def add_item(db_path):
    def _add(product_id, name=None, price=10.0, quantity=5, reserved=0):
        item = InventoryItem(
            product_id=product_id,
            name=name or product_id,
            price=price,
            quantity_on_hand=quantity,
            reserved=reserved,
        )
        assert storage.try_create_inventory_item(db_path, item)
        return item

    return _add


@pytest.fixture
def stock(db_path):
    """Current (quantity_on_hand, reserved) of a product."""

    def _stock(product_id):
        item = storage.get_inventory_item(db_path, product_id)
        return item.quantity_on_hand, item.reserved

    return _stock


@pytest.fixture
def customer(db_path):
    user = User(user_id="u-1", email="u1@example.com", name="Uma", role="user")
    storage.save_user(db_path, user)
    return user


@pytest.fixture
def admin(db_path):
    user = User(user_id="u-admin", email="admin@example.com", name="Ada", role="admin")
    storage.save_user(db_path, user)
    return user


@pytest.fixture
def address():
    return {
        "street": "123 Main St",
        "city": "New York",
        "state": "NY",
        "zip_code": "10001",
        "country": "USA",
    }


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def queue(clock):
    return MemoryQueue(clock, visibility_timeout=30)


@pytest.fixture
def cache(clock):
    return MemoryCache(clock)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def reservations(db_path):
    return InventoryReservationService(db_path)


@pytest.fixture
def intake(db_path, reservations, queue, cache):
    return OrderIntake(db_path, reservations, queue, cache, CACHE_TTL)


@pytest.fixture
def lookup(db_path, cache):
    return OrderLookup(db_path, cache, CACHE_TTL)


@pytest.fixture
def worker(db_path, queue, cache, notifier):
    return FulfillmentWorker(
        db_path,
        queue,
        cache,
        notifier,
        cache_ttl_seconds=CACHE_TTL,
        poll_interval=0.01,
        batch_size=10,
        wait_seconds=0,
    )
