"""
Statements shared by the sync store and the async API.
"""

from sqlalchemy import Select, Update, select, update

from orchestrator.src.models.db import Product, Stand, StepState

def stand_status_query(name: str) -> Select:
    return select(Stand.status).where(Stand.name == name)

def undelivered_notifications_query() -> Select:
    """Undelivered step notifications, oldest first."""
    return (
        select(StepState)
        .where(StepState.delivered.is_(False))
        .order_by(StepState.created_at, StepState.id)
    )

def mark_delivered_statement(notification_id: int) -> Update:
    return update(StepState).where(StepState.id == notification_id).values(delivered=True)

def products_query() -> Select:
    return select(Product).order_by(Product.code)

def product_catalogue(products) -> dict:
    """Map product codes to their display names."""
    return {product.code: product.name for product in products}
