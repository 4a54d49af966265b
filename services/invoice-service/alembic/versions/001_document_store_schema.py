"""Document store schema for the invoice service

Revision ID: 001_document_store_schema
Revises: 
Create Date: 2026-10-18 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_document_store_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # One row per document; invoices, bookings and packages share the table
    op.create_table('documents',
        sa.Column('collection', sa.String(64), nullable=False),
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('collection', 'id')
    )
    op.create_index('idx_documents_collection_created_at', 'documents', ['collection', 'created_at'])

    # Unique field values (invoiceNumber, bookingId) per collection
    op.create_table('document_unique_keys',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('collection', sa.String(64), nullable=False),
        sa.Column('field', sa.String(64), nullable=False),
        sa.Column('value', sa.String(255), nullable=False),
        sa.Column('document_id', sa.String(64), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('collection', 'field', 'value', name='uq_document_unique_keys_value')
    )
    op.create_index('ix_document_unique_keys_document_id', 'document_unique_keys', ['document_id'])


def downgrade() -> None:
    op.drop_index('ix_document_unique_keys_document_id', table_name='document_unique_keys')
    op.drop_table('document_unique_keys')
    op.drop_index('idx_documents_collection_created_at', table_name='documents')
    op.drop_table('documents')
