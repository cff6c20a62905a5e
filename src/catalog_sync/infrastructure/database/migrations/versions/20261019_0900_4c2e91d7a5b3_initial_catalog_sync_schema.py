"""Initial catalog sync schema

Revision ID: 4c2e91d7a5b3
Revises:
Create Date: 2026-10-19 09:00:41.218734+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '4c2e91d7a5b3'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create catalog_products table
    op.create_table('catalog_products',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('sku', sa.String(length=255), nullable=False),
    sa.Column('name', sa.String(length=500), nullable=False),
    sa.Column('regular_price', sa.Float(), nullable=True),
    sa.Column('manage_stock', sa.Boolean(), nullable=False),
    sa.Column('stock_quantity', sa.Integer(), nullable=True),
    sa.Column('stock_status', sa.String(length=20), nullable=False),
    sa.Column('status', sa.String(length=20), nullable=False),
    sa.Column('category_ids', sa.JSON(), nullable=False),
    sa.Column('image_id', sa.Integer(), nullable=True),
    sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    schema='catalog_sync'
    )
    op.create_index('ix_catalog_products_status', 'catalog_products', ['status'], unique=False, schema='catalog_sync')
    op.create_index(op.f('ix_catalog_sync_catalog_products_sku'), 'catalog_products', ['sku'], unique=True, schema='catalog_sync')

    # Create media_attachments table
    op.create_table('media_attachments',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('product_id', sa.Integer(), nullable=True),
    sa.Column('source_url', sa.String(length=2048), nullable=False),
    sa.Column('file_path', sa.String(length=1024), nullable=False),
    sa.Column('mime_type', sa.String(length=100), nullable=False),
    sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['product_id'], ['catalog_sync.catalog_products.id'], ondelete='SET NULL'),
    sa.PrimaryKeyConstraint('id'),
    schema='catalog_sync'
    )
    op.create_index(op.f('ix_catalog_sync_media_attachments_source_url'), 'media_attachments', ['source_url'], unique=True, schema='catalog_sync')

    # Create category_mappings table
    op.create_table('category_mappings',
    sa.Column('name', sa.String(length=255), nullable=False),
    sa.Column('enabled', sa.Boolean(), nullable=False),
    sa.Column('destination_category_id', sa.Integer(), nullable=False),
    sa.Column('item_count', sa.Integer(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('name'),
    schema='catalog_sync'
    )

    # Create sync_logs table
    op.create_table('sync_logs',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('started_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
    sa.Column('sync_type', sa.Enum('MANUAL', 'SCHEDULED', 'BACKGROUND', name='synctype', schema='catalog_sync'), nullable=False),
    sa.Column('products_created', sa.Integer(), nullable=False),
    sa.Column('products_updated', sa.Integer(), nullable=False),
    sa.Column('errors_count', sa.Integer(), nullable=False),
    sa.Column('error_details', sa.JSON(), nullable=False),
    sa.Column('status', sa.Enum('IN_PROGRESS', 'COMPLETED', 'PARTIAL', 'FAILED', 'CANCELLED', name='synclogstatus', schema='catalog_sync'), nullable=False),
    sa.Column('completed_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    schema='catalog_sync'
    )
    op.create_index('ix_sync_logs_status_started', 'sync_logs', ['status', 'started_at'], unique=False, schema='catalog_sync')
    op.create_index(op.f('ix_catalog_sync_sync_logs_started_at'), 'sync_logs', ['started_at'], unique=False, schema='catalog_sync')
    op.create_index(op.f('ix_catalog_sync_sync_logs_status'), 'sync_logs', ['status'], unique=False, schema='catalog_sync')


def downgrade() -> None:
    op.drop_index(op.f('ix_catalog_sync_sync_logs_status'), table_name='sync_logs', schema='catalog_sync')
    op.drop_index(op.f('ix_catalog_sync_sync_logs_started_at'), table_name='sync_logs', schema='catalog_sync')
    op.drop_index('ix_sync_logs_status_started', table_name='sync_logs', schema='catalog_sync')
    op.drop_table('sync_logs', schema='catalog_sync')
    op.drop_table('category_mappings', schema='catalog_sync')
    op.drop_index(op.f('ix_catalog_sync_media_attachments_source_url'), table_name='media_attachments', schema='catalog_sync')
    op.drop_table('media_attachments', schema='catalog_sync')
    op.drop_index(op.f('ix_catalog_sync_catalog_products_sku'), table_name='catalog_products', schema='catalog_sync')
    op.drop_index('ix_catalog_products_status', table_name='catalog_products', schema='catalog_sync')
    op.drop_table('catalog_products', schema='catalog_sync')
    sa.Enum(name='synclogstatus', schema='catalog_sync').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='synctype', schema='catalog_sync').drop(op.get_bind(), checkfirst=True)
