"""create salesflow schema

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19 00:01:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610190001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "crm_customer",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("phone_number", sa.String(length=32), nullable=True),
        sa.Column("address", sa.String(length=255), nullable=True),
        sa.Column("city", sa.String(length=128), nullable=True),
        sa.Column("state", sa.String(length=128), nullable=True),
        sa.Column("zip_code", sa.String(length=32), nullable=True),
        sa.Column("country", sa.String(length=128), nullable=True),
        sa.Column("website", sa.String(length=255), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("has_password", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("type", sa.String(length=16), nullable=False, server_default="NEW"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="ACTIVE"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_crm_customer_name"),
    )
    op.create_index("ix_crm_customer_status", "crm_customer", ["status"], unique=False)
    op.create_index("ix_crm_customer_email", "crm_customer", ["email"], unique=False)

    op.create_table(
        "crm_employee",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("phone_number", sa.String(length=32), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_crm_employee_email"),
    )
    op.create_index("ix_crm_employee_name", "crm_employee", ["name"], unique=False)

    op.create_table(
        "crm_lead",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("requirement", sa.Text(), nullable=False),
        sa.Column("expected_revenue", sa.Numeric(18, 6), nullable=False, server_default="0"),
        sa.Column("probability", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("source", sa.String(length=32), nullable=False, server_default="UNKNOWN"),
        sa.Column("lead_type", sa.String(length=16), nullable=False, server_default="INDIVIDUAL"),
        sa.Column("stage", sa.String(length=16), nullable=False, server_default="NEW"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="ACTIVE"),
        sa.Column("customer_id", sa.Uuid(), sa.ForeignKey("crm_customer.id"), nullable=False),
        sa.Column("employee_id", sa.Uuid(), sa.ForeignKey("crm_employee.id"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("probability BETWEEN 0 AND 100", name="ck_crm_lead_probability"),
    )
    op.create_index("ix_crm_lead_status", "crm_lead", ["status"], unique=False)
    op.create_index("ix_crm_lead_employee_id", "crm_lead", ["employee_id"], unique=False)
    op.create_index("ix_crm_lead_customer_id", "crm_lead", ["customer_id"], unique=False)

    op.create_table(
        "crm_opportunity",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("lead_id", sa.Uuid(), sa.ForeignKey("crm_lead.id"), nullable=False),
        sa.Column("customer_id", sa.Uuid(), sa.ForeignKey("crm_customer.id"), nullable=False),
        sa.Column("employee_id", sa.Uuid(), sa.ForeignKey("crm_employee.id"), nullable=False),
        sa.Column("stage", sa.String(length=16), nullable=False, server_default="NEW"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="ACTIVE"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("lead_id", name="uq_crm_opportunity_lead_id"),
    )
    op.create_index("ix_crm_opportunity_status_stage", "crm_opportunity", ["status", "stage"], unique=False)
    op.create_index("ix_crm_opportunity_employee_id", "crm_opportunity", ["employee_id"], unique=False)
    op.create_index("ix_crm_opportunity_customer_id", "crm_opportunity", ["customer_id"], unique=False)

    op.create_table(
        "crm_ticket",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(length=1000), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="NEW"),
        sa.Column("customer_id", sa.Uuid(), sa.ForeignKey("crm_customer.id"), nullable=False),
        sa.Column("employee_id", sa.Uuid(), sa.ForeignKey("crm_employee.id"), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_ticket_status", "crm_ticket", ["status"], unique=False)
    op.create_index("ix_crm_ticket_customer_id", "crm_ticket", ["customer_id"], unique=False)
    op.create_index("ix_crm_ticket_employee_id", "crm_ticket", ["employee_id"], unique=False)

    op.create_table(
        "catalog_product",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Numeric(18, 6), nullable=False),
        sa.Column("category", sa.String(length=128), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="ACTIVE"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_catalog_product_name", "catalog_product", ["name"], unique=False)
    op.create_index("ix_catalog_product_category", "catalog_product", ["category"], unique=False)

    op.create_table(
        "revenue_quotation",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("opportunity_id", sa.Uuid(), sa.ForeignKey("crm_opportunity.id"), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("total", sa.Numeric(18, 6), nullable=False, server_default="0"),
        sa.Column("valid_until", sa.Date(), nullable=False),
        sa.Column("stage", sa.String(length=16), nullable=False, server_default="DRAFT"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("opportunity_id", name="uq_revenue_quotation_opportunity_id"),
    )
    op.create_index("ix_revenue_quotation_stage", "revenue_quotation", ["stage"], unique=False)

    op.create_table(
        "revenue_quotation_item",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("quotation_id", sa.Uuid(), sa.ForeignKey("revenue_quotation.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.Uuid(), sa.ForeignKey("catalog_product.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(18, 6), nullable=False),
        sa.Column("discount", sa.Numeric(9, 6), nullable=False, server_default="0"),
        sa.Column("line_total", sa.Numeric(18, 6), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("quantity >= 1", name="ck_revenue_quotation_item_quantity"),
        sa.CheckConstraint("discount BETWEEN 0 AND 100", name="ck_revenue_quotation_item_discount"),
    )
    op.create_index("ix_revenue_quotation_item_quotation_id", "revenue_quotation_item", ["quotation_id"], unique=False)

    op.create_table(
        "billing_invoice",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("invoice_number", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="PENDING"),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("invoice_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("terms", sa.String(length=64), nullable=True),
        sa.Column("subtotal", sa.Numeric(18, 6), nullable=False, server_default="0"),
        sa.Column("discount", sa.Numeric(18, 6), nullable=False, server_default="0"),
        sa.Column("tax_rate", sa.Numeric(9, 6), nullable=False, server_default="0"),
        sa.Column("tax_amount", sa.Numeric(18, 6), nullable=False, server_default="0"),
        sa.Column("total", sa.Numeric(18, 6), nullable=False, server_default="0"),
        sa.Column("customer_id", sa.Uuid(), sa.ForeignKey("crm_customer.id"), nullable=False),
        sa.Column("employee_id", sa.Uuid(), sa.ForeignKey("crm_employee.id"), nullable=True),
        sa.Column("opportunity_id", sa.Uuid(), sa.ForeignKey("crm_opportunity.id"), nullable=True),
        sa.Column("quotation_id", sa.Uuid(), sa.ForeignKey("revenue_quotation.id"), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_number", name="uq_billing_invoice_number"),
    )
    op.create_index("ix_billing_invoice_customer_id", "billing_invoice", ["customer_id"], unique=False)
    op.create_index("ix_billing_invoice_opportunity_id", "billing_invoice", ["opportunity_id"], unique=False)
    op.create_index("ix_billing_invoice_quotation_id", "billing_invoice", ["quotation_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_billing_invoice_quotation_id", table_name="billing_invoice")
    op.drop_index("ix_billing_invoice_opportunity_id", table_name="billing_invoice")
    op.drop_index("ix_billing_invoice_customer_id", table_name="billing_invoice")
    op.drop_table("billing_invoice")
    op.drop_index("ix_revenue_quotation_item_quotation_id", table_name="revenue_quotation_item")
    op.drop_table("revenue_quotation_item")
    op.drop_index("ix_revenue_quotation_stage", table_name="revenue_quotation")
    op.drop_table("revenue_quotation")
    op.drop_index("ix_catalog_product_category", table_name="catalog_product")
    op.drop_index("ix_catalog_product_name", table_name="catalog_product")
    op.drop_table("catalog_product")
    op.drop_index("ix_crm_ticket_employee_id", table_name="crm_ticket")
    op.drop_index("ix_crm_ticket_customer_id", table_name="crm_ticket")
    op.drop_index("ix_crm_ticket_status", table_name="crm_ticket")
    op.drop_table("crm_ticket")
    op.drop_index("ix_crm_opportunity_customer_id", table_name="crm_opportunity")
    op.drop_index("ix_crm_opportunity_employee_id", table_name="crm_opportunity")
    op.drop_index("ix_crm_opportunity_status_stage", table_name="crm_opportunity")
    op.drop_table("crm_opportunity")
    op.drop_index("ix_crm_lead_customer_id", table_name="crm_lead")
    op.drop_index("ix_crm_lead_employee_id", table_name="crm_lead")
    op.drop_index("ix_crm_lead_status", table_name="crm_lead")
    op.drop_table("crm_lead")
    op.drop_index("ix_crm_employee_name", table_name="crm_employee")
    op.drop_table("crm_employee")
    op.drop_index("ix_crm_customer_email", table_name="crm_customer")
    op.drop_index("ix_crm_customer_status", table_name="crm_customer")
    op.drop_table("crm_customer")
