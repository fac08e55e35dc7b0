# alembic/versions/<rev>_create_occupancy_forecasts.py
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = "5b2e7d41c9a0"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "occupancy_forecasts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("as_of_date", sa.Date(), nullable=False),
        sa.Column("report_id", sa.String(length=255), nullable=False),
        sa.Column("city", sa.String(length=128), nullable=False),
        sa.Column("forecast_date", sa.Date(), nullable=False),
        sa.Column("market_segment", sa.String(length=32), nullable=False),
        sa.Column("current_occupancy", sa.Float(), nullable=False),
        sa.Column("weekly_pickup", sa.Float(), nullable=False),
        sa.Column("stly_variance", sa.Float(), nullable=False),
        sa.Column("days_out", sa.Integer(), nullable=False),
        sa.Column("forecast_horizon", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_index("ix_occupancy_forecasts_report_id", "occupancy_forecasts", ["report_id"])
    op.create_index("ix_occupancy_forecasts_city_as_of", "occupancy_forecasts", ["city", "as_of_date"])
    op.create_index("ix_occupancy_forecasts_forecast_date", "occupancy_forecasts", ["forecast_date"])

def downgrade():
    op.drop_index("ix_occupancy_forecasts_forecast_date", table_name="occupancy_forecasts")
    op.drop_index("ix_occupancy_forecasts_city_as_of", table_name="occupancy_forecasts")
    op.drop_index("ix_occupancy_forecasts_report_id", table_name="occupancy_forecasts")
    op.drop_table("occupancy_forecasts")
