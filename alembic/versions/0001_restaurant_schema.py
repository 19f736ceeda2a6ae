from __future__ import annotations

from alembic import op

from app.core.database import Base
import app.models  # noqa: F401

revision = "0001_restaurant_schema"
down_revision = None
branch_labels = None
depends_on = None

# Creation order follows the foreign keys: restaurants first, order lines last.
TABLES = (
    "restaurants",
    "users",
    "restaurant_settings",
    "restaurant_branding",
    "restaurant_content",
    "categories",
    "subcategories",
    "menu_items",
    "orders",
    "order_items",
    "reservations",
    "feedbacks",
)


def _tables():
    return [Base.metadata.tables[name] for name in TABLES]


def upgrade() -> None:
    Base.metadata.create_all(bind=op.get_bind(), tables=_tables())


def downgrade() -> None:
    Base.metadata.drop_all(bind=op.get_bind(), tables=list(reversed(_tables())))
