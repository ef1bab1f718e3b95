from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "reservations",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("resource_id", sa.String(), nullable=False),
        sa.Column("subject_id", sa.String(), nullable=False),
        sa.Column("owner_id", sa.String(), nullable=True),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("hold_token", sa.String(), nullable=True),
        sa.Column("hold_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("end_at > start_at", name="ck_reservations_range"),
    )
    op.create_index("ix_reservations_resource_range", "reservations", ["resource_id", "start_at", "end_at"], unique=False)
    op.create_index("ix_reservations_status_expiry", "reservations", ["status", "hold_expires_at"], unique=False)
    op.create_index("ix_reservations_owner_id", "reservations", ["owner_id"], unique=False)
    op.create_index("ix_reservations_hold_token", "reservations", ["hold_token"], unique=False)


def downgrade():
    op.drop_index("ix_reservations_hold_token", table_name="reservations")
    op.drop_index("ix_reservations_owner_id", table_name="reservations")
    op.drop_index("ix_reservations_status_expiry", table_name="reservations")
    op.drop_index("ix_reservations_resource_range", table_name="reservations")
    op.drop_table("reservations")
