"""create index engine tables

Revision ID: b41c7d9e2f10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'b41c7d9e2f10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'tickers',
        sa.Column('ticker', sa.String(20), primary_key=True),
        sa.Column('company_name', sa.String(255), nullable=True),
        sa.Column('exchange', sa.String(50), nullable=True),
        sa.Column('sector', sa.String(100), nullable=True),
        sa.Column('dividend_yield', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), onupdate=sa.func.now()),
    )

    op.create_table(
        'indices',
        sa.Column('index_id', sa.String(50), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('base_value', sa.Float(), server_default='100.0'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), onupdate=sa.func.now()),
    )

    op.create_table(
        'index_compositions',
        sa.Column('index_id', sa.String(50), sa.ForeignKey('indices.index_id'), primary_key=True, nullable=False),
        sa.Column('ticker', sa.String(20), sa.ForeignKey('tickers.ticker'), primary_key=True, nullable=False),
        sa.Column('target_weight', sa.Float(), nullable=False),
        sa.Column('entry_price', sa.Float(), nullable=False),
        sa.Column('entry_date', sa.Date(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), onupdate=sa.func.now()),
    )
    op.create_index('idx_composition_ticker', 'index_compositions', ['ticker'])

    op.create_table(
        'index_history_points',
        sa.Column('index_id', sa.String(50), sa.ForeignKey('indices.index_id'), primary_key=True, nullable=False),
        sa.Column('date', sa.Date(), primary_key=True, nullable=False),
        sa.Column('points', sa.Float(), nullable=False),
        sa.Column('daily_change', sa.Float(), nullable=False),
        sa.Column('current_yield', sa.Float(), nullable=True),
        sa.Column('dividends_received', sa.Float(), nullable=False),
        sa.Column('dividends_by_ticker', sa.JSON(), nullable=False),
        sa.Column('composition_snapshot', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), onupdate=sa.func.now()),
    )
    op.create_index('idx_history_index_date', 'index_history_points', ['index_id', 'date'])

    op.create_table(
        'daily_prices',
        sa.Column('ticker', sa.String(20), primary_key=True),
        sa.Column('date', sa.Date(), primary_key=True),
        sa.Column('close', sa.Float(), nullable=False),
        sa.Column('source', sa.String(50), nullable=True),
        sa.Column('ingested_at', sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        'dividend_events',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('ticker', sa.String(20), nullable=False),
        sa.Column('ex_date', sa.Date(), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('source', sa.String(50), nullable=True),
        sa.Column('ingested_at', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index('idx_dividend_ticker_date', 'dividend_events', ['ticker', 'ex_date'])


def downgrade() -> None:
    # Drop indexes first
    op.drop_index('idx_dividend_ticker_date', table_name='dividend_events')
    op.drop_index('idx_history_index_date', table_name='index_history_points')
    op.drop_index('idx_composition_ticker', table_name='index_compositions')

    # Drop tables
    op.drop_table('dividend_events')
    op.drop_table('daily_prices')
    op.drop_table('index_history_points')
    op.drop_table('index_compositions')
    op.drop_table('indices')
    op.drop_table('tickers')
