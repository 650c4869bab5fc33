"""Initial schema for the brewery/beer local store.

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates:
- Canonical entities: breweries, beers
- Reviews: reviews, review_ratings
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _lifecycle_columns() -> list[sa.Column]:
    return [
        sa.Column("data_source", sa.String(50), nullable=True),
        sa.Column("confidence_score", sa.Float(), default=0.0),
        sa.Column("validation_status", sa.String(30), default="pending_validation"),
        sa.Column("needs_manual_review", sa.Boolean(), default=False),
        sa.Column("review_reason", sa.Text(), nullable=True),
        sa.Column("last_enriched_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "breweries",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("website", sa.String(500), nullable=True),
        sa.Column("legal_address", sa.String(500), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("pec_email", sa.String(255), nullable=True),
        sa.Column("fiscal_code", sa.String(20), nullable=True),
        sa.Column("rea_code", sa.String(30), nullable=True),
        sa.Column("excise_code", sa.String(30), nullable=True),
        sa.Column("legal_form", sa.String(50), nullable=True),
        sa.Column("share_capital", sa.String(50), nullable=True),
        sa.Column("founding_year", sa.Integer(), nullable=True),
        sa.Column("size_class", sa.String(50), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("history", sa.Text(), nullable=True),
        sa.Column("employee_count", sa.Integer(), nullable=True),
        sa.Column("production_volume", sa.String(100), nullable=True),
        sa.Column("master_brewer", sa.String(255), nullable=True),
        sa.Column("logo_url", sa.String(1000), nullable=True),
        sa.Column("logo_verified", sa.Boolean(), default=False),
        sa.Column("social_links_json", sa.Text(), default="{}"),
        sa.Column("main_products_json", sa.Text(), default="[]"),
        sa.Column("awards_json", sa.Text(), default="[]"),
        *_lifecycle_columns(),
    )
    op.create_index("ix_breweries_name", "breweries", ["name"])
    op.create_index("ix_breweries_fiscal_code", "breweries", ["fiscal_code"])
    op.create_index("ix_breweries_validation_status", "breweries", ["validation_status"])
    op.create_index("ix_breweries_needs_manual_review", "breweries", ["needs_manual_review"])

    op.create_table(
        "beers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("brewery_id", sa.String(36), sa.ForeignKey("breweries.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("style", sa.String(100), nullable=True),
        sa.Column("sub_style", sa.String(100), nullable=True),
        sa.Column("alcohol_content", sa.Float(), nullable=True),
        sa.Column("ibu", sa.Integer(), nullable=True),
        sa.Column("volume", sa.String(50), nullable=True),
        sa.Column("color", sa.String(100), nullable=True),
        sa.Column("serving_temperature", sa.String(50), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("ingredients_json", sa.Text(), default="[]"),
        sa.Column("tasting_notes_json", sa.Text(), nullable=True),
        sa.Column("pairings_json", sa.Text(), default="[]"),
        sa.Column("nutritional_info", sa.Text(), nullable=True),
        sa.Column("price", sa.String(50), nullable=True),
        sa.Column("availability", sa.String(100), nullable=True),
        sa.Column("awards_json", sa.Text(), default="[]"),
        *_lifecycle_columns(),
    )
    op.create_index("ix_beers_brewery_id", "beers", ["brewery_id"])
    op.create_index("ix_beers_name", "beers", ["name"])

    op.create_table(
        "reviews",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=True),
        sa.Column("processing_status", sa.String(30), default="pending"),
        sa.Column("processing_attempts", sa.Integer(), default=0),
        sa.Column("last_processing_attempt", sa.DateTime(), nullable=True),
        sa.Column("processing_error", sa.Text(), nullable=True),
        sa.Column("admin_review_reason", sa.Text(), nullable=True),
        sa.Column("label_guesses_json", sa.Text(), default="[]"),
        sa.Column("processed_bottles_json", sa.Text(), default="[]"),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_reviews_user_id", "reviews", ["user_id"])
    op.create_index("ix_reviews_processing_status", "reviews", ["processing_status"])

    op.create_table(
        "review_ratings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("review_id", sa.String(36), sa.ForeignKey("reviews.id"), nullable=False),
        sa.Column("slot_index", sa.Integer(), default=0),
        sa.Column("bottle_label", sa.String(255), nullable=True),
        sa.Column("rating", sa.Float(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("brewery_id", sa.String(36), sa.ForeignKey("breweries.id"), nullable=True),
        sa.Column("beer_id", sa.String(36), sa.ForeignKey("beers.id"), nullable=True),
    )
    op.create_index("ix_review_ratings_review_id", "review_ratings", ["review_id"])
    op.create_index("ix_review_ratings_brewery_id", "review_ratings", ["brewery_id"])
    op.create_index("ix_review_ratings_beer_id", "review_ratings", ["beer_id"])


def downgrade() -> None:
    op.drop_table("review_ratings")
    op.drop_table("reviews")
    op.drop_table("beers")
    op.drop_table("breweries")
