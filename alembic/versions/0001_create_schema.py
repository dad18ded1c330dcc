from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = "0001_create_schema"
down_revision = None
branch_labels = None
depends_on = None


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def _partial_where(bind, clause_pg: str, clause_sqlite: str) -> dict:
    if bind.dialect.name == "sqlite":
        return {"sqlite_where": sa.text(clause_sqlite)}
    return {"postgresql_where": sa.text(clause_pg)}


def upgrade() -> None:
    bind = op.get_bind()
    tables = set(inspect(bind).get_table_names())

    if "customers" not in tables:
        op.create_table(
            "customers",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("phone", sa.String(length=30), nullable=False, unique=True),
            sa.Column("name", sa.String(length=120), nullable=True),
            sa.Column("conversation_state", sa.String(length=32), nullable=False, server_default="IDLE"),
            sa.Column("last_active_at", sa.DateTime(timezone=True), nullable=True),
            _created_at(),
        )

    if "customer_addresses" not in tables:
        op.create_table(
            "customer_addresses",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=False),
            sa.Column("address_text", sa.Text(), nullable=False),
            sa.Column("postal_code", sa.String(length=20), nullable=True),
            sa.Column("recipient_name", sa.String(length=120), nullable=True),
            sa.Column("house_number", sa.String(length=60), nullable=True),
            sa.Column("landmark", sa.String(length=150), nullable=True),
            sa.Column("city", sa.String(length=100), nullable=True),
            sa.Column("state", sa.String(length=100), nullable=True),
            sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
            _created_at(),
        )
        op.create_index("ix_customer_addresses_customer_id", "customer_addresses", ["customer_id"])
        op.create_index(
            "uq_customer_addresses_one_default",
            "customer_addresses",
            ["customer_id"],
            unique=True,
            **_partial_where(bind, "is_default IS TRUE", "is_default = 1"),
        )

    if "product_categories" not in tables:
        op.create_table(
            "product_categories",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(length=120), nullable=False),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            _created_at(),
        )

    if "products" not in tables:
        op.create_table(
            "products",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("category_id", sa.Integer(), sa.ForeignKey("product_categories.id"), nullable=True),
            sa.Column("base_name", sa.String(length=150), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("image_url", sa.Text(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            _created_at(),
        )
        op.create_index("ix_products_category_id", "products", ["category_id"])

    if "product_variants" not in tables:
        op.create_table(
            "product_variants",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
            sa.Column("weight_label", sa.String(length=60), nullable=False),
            sa.Column("price", sa.Numeric(10, 2), nullable=False),
            sa.Column("stock_quantity", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("sku_code", sa.String(length=80), nullable=True, unique=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            _created_at(),
        )
        op.create_index("ix_product_variants_product_id", "product_variants", ["product_id"])

    if "carts" not in tables:
        op.create_table(
            "carts",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="ACTIVE"),
            _created_at(),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
        op.create_index("ix_carts_customer_id", "carts", ["customer_id"])
        op.create_index(
            "uq_carts_one_active_per_customer",
            "carts",
            ["customer_id"],
            unique=True,
            **_partial_where(bind, "status = 'ACTIVE'", "status = 'ACTIVE'"),
        )

    if "cart_items" not in tables:
        op.create_table(
            "cart_items",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("cart_id", sa.Integer(), sa.ForeignKey("carts.id"), nullable=False),
            sa.Column("variant_id", sa.Integer(), sa.ForeignKey("product_variants.id"), nullable=False),
            sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
            _created_at(),
            sa.UniqueConstraint("cart_id", "variant_id", name="uq_cart_items_cart_variant"),
        )
        op.create_index("ix_cart_items_cart_id", "cart_items", ["cart_id"])

    if "orders" not in tables:
        op.create_table(
            "orders",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("readable_order_id", sa.String(length=32), nullable=True, unique=True),
            sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=True),
            sa.Column("cart_id", sa.Integer(), sa.ForeignKey("carts.id"), nullable=True),
            sa.Column("total_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("payment_method", sa.String(length=20), nullable=True),
            sa.Column("delivery_slot", sa.String(length=60), nullable=True),
            sa.Column("delivery_address_snapshot", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=30), nullable=False, server_default="PENDING_PAYMENT"),
            _created_at(),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
        op.create_index("ix_orders_customer_id", "orders", ["customer_id"])

    if "order_items" not in tables:
        op.create_table(
            "order_items",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False),
            sa.Column("variant_id", sa.Integer(), sa.ForeignKey("product_variants.id"), nullable=False),
            sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("unit_price", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("total_price", sa.Numeric(10, 2), nullable=False, server_default="0"),
            _created_at(),
        )
        op.create_index("ix_order_items_order_id", "order_items", ["order_id"])

    if "order_status_logs" not in tables:
        op.create_table(
            "order_status_logs",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False),
            sa.Column("old_status", sa.String(length=30), nullable=True),
            sa.Column("new_status", sa.String(length=30), nullable=False),
            sa.Column("changed_by", sa.String(length=60), nullable=False, server_default="System"),
            sa.Column("changed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
        op.create_index("ix_order_status_logs_order_id", "order_status_logs", ["order_id"])

    if "conversation_logs" not in tables:
        op.create_table(
            "conversation_logs",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("message_id", sa.String(length=128), nullable=False, unique=True),
            sa.Column("sender_phone", sa.String(length=30), nullable=False),
            sa.Column("message_type", sa.String(length=30), nullable=False, server_default="text"),
            sa.Column("content", sa.Text(), nullable=True),
            sa.Column("received_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index(
            "ix_conversation_logs_sender_received",
            "conversation_logs",
            ["sender_phone", "received_at"],
        )

    if "whatsapp_message_log" not in tables:
        op.create_table(
            "whatsapp_message_log",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("direction", sa.String(), nullable=False),
            sa.Column("to_phone", sa.String(), nullable=True),
            sa.Column("from_phone", sa.String(), nullable=True),
            sa.Column("message_type", sa.String(), nullable=False),
            sa.Column("payload_json", sa.Text(), nullable=True),
            sa.Column("status", sa.String(), nullable=False),
            sa.Column("error", sa.Text(), nullable=True),
            sa.Column("provider_message_id", sa.String(), nullable=True),
            _created_at(),
        )
        op.create_index("ix_whatsapp_message_log_to_phone", "whatsapp_message_log", ["to_phone"])

    if "delivery_partners" not in tables:
        op.create_table(
            "delivery_partners",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(length=120), nullable=False),
            sa.Column("phone", sa.String(length=30), nullable=False, unique=True),
            sa.Column("pin", sa.String(length=12), nullable=True),
            sa.Column("current_status", sa.String(length=20), nullable=False, server_default="OFFLINE"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            _created_at(),
        )

    if "partner_availability_logs" not in tables:
        op.create_table(
            "partner_availability_logs",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("partner_id", sa.Integer(), sa.ForeignKey("delivery_partners.id"), nullable=False),
            sa.Column("status_change", sa.String(length=20), nullable=False),
            sa.Column("changed_by", sa.String(length=60), nullable=False, server_default="System"),
            sa.Column("changed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
        op.create_index("ix_partner_availability_logs_partner_id", "partner_availability_logs", ["partner_id"])


def downgrade() -> None:
    bind = op.get_bind()
    tables = set(inspect(bind).get_table_names())
    for table_name in (
        "partner_availability_logs",
        "delivery_partners",
        "whatsapp_message_log",
        "conversation_logs",
        "order_status_logs",
        "order_items",
        "orders",
        "cart_items",
        "carts",
        "product_variants",
        "products",
        "product_categories",
        "customer_addresses",
        "customers",
    ):
        if table_name in tables:
            op.drop_table(table_name)
