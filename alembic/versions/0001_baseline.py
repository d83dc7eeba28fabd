"""Baseline migration - clients, appointments and client documents

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19

Portable DDL (PostgreSQL and SQLite). Timestamps are timezone-aware and
always written as UTC by the application.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create pipeline and scheduling tables."""

    # ==========================================================================
    # Clients
    # ==========================================================================
    op.create_table(
        'clients',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(320), nullable=True),
        sa.Column('phone', sa.String(32), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(32), nullable=False, server_default='pending'),
        sa.Column('broker_id', sa.Uuid(), nullable=True),
        sa.Column('scheduling_status', sa.String(32), nullable=True),
        sa.Column('origin', sa.String(64), nullable=True),
        sa.Column('property_id', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('idx_clients_status', 'clients', ['status'])
    op.create_index('idx_clients_broker_status', 'clients', ['broker_id', 'status'])

    # ==========================================================================
    # Appointments
    # ==========================================================================
    op.create_table(
        'appointments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('client_id', sa.Uuid(), sa.ForeignKey('clients.id'), nullable=True),
        sa.Column('broker_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('scheduled_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(32), nullable=False, server_default='scheduled'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        'idx_appointments_status_scheduled', 'appointments', ['status', 'scheduled_at']
    )
    op.create_index(
        'idx_appointments_broker_scheduled', 'appointments', ['broker_id', 'scheduled_at']
    )
    op.create_index(
        'idx_appointments_client_created', 'appointments', ['client_id', 'created_at']
    )

    # ==========================================================================
    # Client documents (metadata only)
    # ==========================================================================
    op.create_table(
        'client_documents',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('client_id', sa.Uuid(), sa.ForeignKey('clients.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('storage_path', sa.String(1024), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('idx_client_documents_client', 'client_documents', ['client_id'])


def downgrade() -> None:
    op.drop_table('client_documents')
    op.drop_table('appointments')
    op.drop_table('clients')
