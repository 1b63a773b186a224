"""
Seed the record store with demo users, inventory and two sample orders.

    DB_PATH=./data/orders.db python -m scripts.seed

Existing users, inventory and orders are deleted first.
"""

import logging
import random

from common import (
    InventoryItem,
    Order,
    OrderItem,
    PaymentMethod,
    Settings,
    ShippingAddress,
    User,
    new_order_id,
    setup_logging,
)
from common import storage

logger = logging.getLogger(__name__)

PRODUCTS = [
    ("prod-smartphone", "Smartphone", 83999.99),
    ("prod-laptop", "Laptop", 129999.99),
    ("prod-headphones", "Headphones", 7399.99),
    ("prod-smartwatch", "Smartwatch", 29949.99),
    ("prod-tablet", "Tablet", 349.99),
]


def seed(db_path: str, rng: random.Random | None = None) -> None:
    rng = rng or random.Random()
    storage.init_db(db_path)
    storage.clear_all(db_path)
    logger.info("Existing data cleared")

    admin = User(user_id="user-admin", email="admin@example.com", name="Admin User", role="admin")
    user = User(user_id="user-regular", email="user@example.com", name="Regular User", role="user")
    for u in (admin, user):
        storage.save_user(db_path, u)
    logger.info("Users created")

    items = {
        product_id: OrderItem(product_id=product_id, name=name, quantity=1, price=price)
        for product_id, name, price in PRODUCTS
    }
    processed = Order.create(
        new_order_id(),
        user.user_id,
        [items["prod-smartphone"], items["prod-headphones"]],
        ShippingAddress(street="123 Main St", city="New York", state="NY", zip_code="10001", country="USA"),
        PaymentMethod.CREDIT_CARD,
    ).mark_processed()
    pending = Order.create(
        new_order_id(),
        user.user_id,
        [items["prod-laptop"]],
        ShippingAddress(street="456 Oak Ave", city="Los Angeles", state="CA", zip_code="90001", country="USA"),
        PaymentMethod.PAYPAL,
    )

    # The pending sample order holds its stock like a real one would.
    held = {item.product_id: item.quantity for item in pending.items}
    for product_id, name, price in PRODUCTS:
        storage.try_create_inventory_item(
            db_path,
            InventoryItem(
                product_id=product_id,
                name=name,
                price=price,
                quantity_on_hand=rng.randint(10, 109),
                reserved=held.get(product_id, 0),
            ),
        )
    logger.info("Inventory created")

    for order in (processed, pending):
        storage.save_order(db_path, order)
    logger.info("Sample orders created")


def main() -> None:
    settings = Settings.from_env()
    setup_logging("seed", settings.log_level)
    seed(settings.db_path)
    logger.info("Database seeded successfully")


if __name__ == "__main__":
    main()
