"""distribution core

Revision ID: 4f1c2a9b7e30
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa

revision = "4f1c2a9b7e30"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def _kind():
    return sa.Enum(
        "invoice", "additional_document", name="documentkind", create_type=False
    )


def _verification():
    return sa.Enum(
        "verified", "missing", "damaged", name="verificationstatus", create_type=False
    )


def upgrade() -> None:
    # --- Enums ---
    distributionstatus = sa.Enum(
        "draft",
        "verified_by_sender",
        "sent",
        "received",
        "verified_by_receiver",
        "completed",
        name="distributionstatus",
    )
    documentkind = sa.Enum("invoice", "additional_document", name="documentkind")
    verificationstatus = sa.Enum(
        "verified", "missing", "damaged", name="verificationstatus"
    )
    distributionstatus.create(op.get_bind(), checkfirst=True)
    documentkind.create(op.get_bind(), checkfirst=True)
    verificationstatus.create(op.get_bind(), checkfirst=True)

    # --- Reference data ---
    op.create_table(
        "departments",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("akronim", sa.String(length=20), nullable=False),
        sa.Column("project", sa.String(length=10), nullable=True),
        sa.Column("location_code", sa.String(length=30), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("akronim"),
    )
    op.create_table(
        "people",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("first_name", sa.String(length=80), nullable=False),
        sa.Column("last_name", sa.String(length=80), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("department_id", sa.UUID(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["department_id"], ["departments.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_table(
        "distribution_types",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("code", sa.String(length=3), nullable=False),
        sa.Column("color", sa.String(length=7), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )

    # --- Tracked documents ---
    op.create_table(
        "invoices",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("invoice_number", sa.String(length=100), nullable=False),
        sa.Column("supplier_name", sa.String(length=255), nullable=True),
        sa.Column("po_no", sa.String(length=50), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=True),
        sa.Column("amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("cur_loc", sa.String(length=30), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_invoices_cur_loc", "invoices", ["cur_loc"])
    op.create_table(
        "additional_documents",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("document_number", sa.String(length=100), nullable=False),
        sa.Column("document_type_name", sa.String(length=100), nullable=True),
        sa.Column("po_no", sa.String(length=50), nullable=True),
        sa.Column("cur_loc", sa.String(length=30), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_additional_documents_cur_loc", "additional_documents", ["cur_loc"]
    )
    op.create_table(
        "additional_document_invoice",
        sa.Column("additional_document_id", sa.UUID(), nullable=False),
        sa.Column("invoice_id", sa.UUID(), nullable=False),
        sa.ForeignKeyConstraint(
            ["additional_document_id"],
            ["additional_documents.id"],
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("additional_document_id", "invoice_id"),
    )

    # --- Distributions ---
    op.create_table(
        "distributions",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("distribution_number", sa.String(length=40), nullable=False),
        sa.Column("type_id", sa.UUID(), nullable=False),
        sa.Column("origin_department_id", sa.UUID(), nullable=False),
        sa.Column("destination_department_id", sa.UUID(), nullable=False),
        sa.Column("document_kind", _kind(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "draft",
                "verified_by_sender",
                "sent",
                "received",
                "verified_by_receiver",
                "completed",
                name="distributionstatus",
                create_type=False,
            ),
            nullable=False,
        ),
        sa.Column("created_by", sa.UUID(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("sender_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sender_verified_by", sa.UUID(), nullable=True),
        sa.Column("sender_verification_notes", sa.Text(), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("receiver_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("receiver_verified_by", sa.UUID(), nullable=True),
        sa.Column("receiver_verification_notes", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("has_discrepancies", sa.Boolean(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "origin_department_id <> destination_department_id",
            name="ck_distributions_origin_ne_destination",
        ),
        sa.ForeignKeyConstraint(["type_id"], ["distribution_types.id"]),
        sa.ForeignKeyConstraint(["origin_department_id"], ["departments.id"]),
        sa.ForeignKeyConstraint(["destination_department_id"], ["departments.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["people.id"]),
        sa.ForeignKeyConstraint(["sender_verified_by"], ["people.id"]),
        sa.ForeignKeyConstraint(["receiver_verified_by"], ["people.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("distribution_number"),
    )
    op.create_index(
        "ix_distributions_status_created_at", "distributions", ["status", "created_at"]
    )
    op.create_index(
        "ix_distributions_origin_destination",
        "distributions",
        ["origin_department_id", "destination_department_id"],
    )

    op.create_table(
        "distribution_documents",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("distribution_id", sa.UUID(), nullable=False),
        sa.Column("document_kind", _kind(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=False),
        sa.Column("auto_included", sa.Boolean(), nullable=True),
        sa.Column("sender_verified", sa.Boolean(), nullable=True),
        sa.Column("sender_verification_status", _verification(), nullable=True),
        sa.Column("sender_verification_notes", sa.Text(), nullable=True),
        sa.Column("receiver_verified", sa.Boolean(), nullable=True),
        sa.Column("receiver_verification_status", _verification(), nullable=True),
        sa.Column("receiver_verification_notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["distribution_id"], ["distributions.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "distribution_id",
            "document_kind",
            "document_id",
            name="uq_distribution_documents_document",
        ),
    )
    op.create_index(
        "ix_distribution_documents_document",
        "distribution_documents",
        ["document_kind", "document_id"],
    )

    op.create_table(
        "distribution_sequences",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("prefix", sa.String(length=40), nullable=False),
        sa.Column("current_value", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("prefix"),
    )

    # --- Audit & ledger ---
    op.create_table(
        "distribution_histories",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("distribution_id", sa.UUID(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["distribution_id"], ["distributions.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["people.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_distribution_histories_distribution_id",
        "distribution_histories",
        ["distribution_id"],
    )

    op.create_table(
        "document_locations",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("document_kind", _kind(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=False),
        sa.Column("location_code", sa.String(length=30), nullable=False),
        sa.Column("moved_by", sa.UUID(), nullable=True),
        sa.Column("moved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("distribution_id", sa.UUID(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["moved_by"], ["people.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(
            ["distribution_id"], ["distributions.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_document_locations_document",
        "document_locations",
        ["document_kind", "document_id"],
    )
    op.create_index(
        "ix_document_locations_location_moved_at",
        "document_locations",
        ["location_code", "moved_at"],
    )
    op.create_index(
        "ix_document_locations_distribution_id",
        "document_locations",
        ["distribution_id"],
    )

    # --- Notifications ---
    op.create_table(
        "notifications",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("person_id", sa.UUID(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("event_type", sa.String(length=100), nullable=False),
        sa.Column("distribution_id", sa.String(length=36), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=True),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["person_id"], ["people.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_person_id", "notifications", ["person_id"])
    op.create_index("ix_notifications_is_read", "notifications", ["is_read"])
    op.create_index("ix_notifications_event_type", "notifications", ["event_type"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("document_locations")
    op.drop_table("distribution_histories")
    op.drop_table("distribution_sequences")
    op.drop_table("distribution_documents")
    op.drop_table("distributions")
    op.drop_table("additional_document_invoice")
    op.drop_table("additional_documents")
    op.drop_table("invoices")
    op.drop_table("distribution_types")
    op.drop_table("people")
    op.drop_table("departments")

    sa.Enum(name="verificationstatus").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="documentkind").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="distributionstatus").drop(op.get_bind(), checkfirst=True)
