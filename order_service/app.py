"""
OrderService: HTTP API to place and read orders.

Placing an order reserves stock, writes the order, and publishes a
PROCESS_ORDER task for the fulfillment worker.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Query, Request

from broker.queue import RabbitTaskQueue
from common import OrderCreateRequest, RedisCache, Settings, setup_logging
from common.http import Caller, get_caller, install_error_handlers
from common.storage import init_db
from inventory_service.reservation import InventoryReservationService
from order_service.intake import OrderIntake
from order_service.lookup import OrderLookup

setup_logging("order-service")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Construct store, queue and cache clients on start; release them on shutdown."""
    settings = Settings.from_env()
    setup_logging("order-service", settings.log_level)
    init_db(settings.db_path)
    cache = RedisCache.from_url(settings.redis_url)
    try:
        async with RabbitTaskQueue(
            settings.rabbit_url,
            settings.fulfillment_queue,
            visibility_timeout=settings.visibility_timeout_seconds,
        ) as queue:
            app.state.intake = OrderIntake(
                settings.db_path,
                InventoryReservationService(settings.db_path),
                queue,
                cache,
                settings.cache_ttl_seconds,
            )
            app.state.lookup = OrderLookup(settings.db_path, cache, settings.cache_ttl_seconds)
            yield
    finally:
        await cache.close()


app = FastAPI(title="Order Service", lifespan=lifespan)
install_error_handlers(app)


def get_intake(request: Request) -> OrderIntake:
    return request.app.state.intake


def get_lookup(request: Request) -> OrderLookup:
    return request.app.state.lookup


@app.post("/orders", status_code=201)
async def create_order(
    payload: OrderCreateRequest,
    caller: Caller = Depends(get_caller),
    intake: OrderIntake = Depends(get_intake),
):
    order = await intake.create_order(
        caller.user_id,
        payload.items,
        payload.shipping_address,
        payload.payment_method,
    )
    return {"success": True, "data": {"order": order.model_dump(mode="json")}}


@app.get("/orders/{order_id}")
async def get_order(
    order_id: str,
    caller: Caller = Depends(get_caller),
    lookup: OrderLookup = Depends(get_lookup),
):
    view = await lookup.get_order(order_id, caller.user_id, caller.role)
    return {
        "success": True,
        "data": {"order": view.order.model_dump(mode="json"), "source": view.source},
    }


@app.get("/orders")
def list_orders(
    page: int = Query(1),
    limit: int = Query(10),
    caller: Caller = Depends(get_caller),
    lookup: OrderLookup = Depends(get_lookup),
):
    result = lookup.list_orders(caller.user_id, page, limit)
    return {"success": True, "data": result.model_dump(mode="json")}


@app.get("/health")
def health():
    return {"status": "ok"}
