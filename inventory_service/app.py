"""
InventoryService: HTTP API to read and administer stock levels.

Reservations themselves happen in-process in the order service; this API is
for operators adjusting on-hand quantities.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request

# common module: models, config, storage, logging
from common import InventoryCreateRequest, InventoryUpdateRequest, Settings, setup_logging
from common.http import Caller, get_caller, install_error_handlers
from common.storage import init_db
from inventory_service.reservation import InventoryReservationService

# Logging via common (stdout, timestamps, service name)
setup_logging("inventory-service")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Ensure SQLite DB and tables exist using common.storage."""
    settings = Settings.from_env()
    setup_logging("inventory-service", settings.log_level)
    init_db(settings.db_path)
    app.state.reservations = InventoryReservationService(settings.db_path)
    yield


app = FastAPI(title="Inventory Service", lifespan=lifespan)
install_error_handlers(app)


def get_reservations(request: Request) -> InventoryReservationService:
    return request.app.state.reservations


@app.get("/inventory/{product_id}")
def get_inventory(
    product_id: str,
    caller: Caller = Depends(get_caller),
    service: InventoryReservationService = Depends(get_reservations),
):
    item = service.get_item(product_id)
    return {"success": True, "data": {"inventory": item.model_dump()}}


@app.put("/inventory/{product_id}")
def update_inventory(
    product_id: str,
    payload: InventoryUpdateRequest,
    caller: Caller = Depends(get_caller),
    service: InventoryReservationService = Depends(get_reservations),
):
    item = service.update_quantity(product_id, payload.quantity)
    logger.info("Inventory %s set to %d by %s", product_id, payload.quantity, caller.user_id)
    return {"success": True, "data": {"inventory": item.model_dump()}}


@app.post("/inventory", status_code=201)
def create_inventory(
    payload: InventoryCreateRequest,
    caller: Caller = Depends(get_caller),
    service: InventoryReservationService = Depends(get_reservations),
):
    item = service.create_item(payload)
    return {"success": True, "data": {"inventory": item.model_dump()}}


@app.get("/health")
def health():
    return {"status": "ok"}
