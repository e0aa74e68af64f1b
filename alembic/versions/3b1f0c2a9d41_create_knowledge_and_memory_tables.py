"""create knowledge base and conversation memory tables

Revision ID: 3b1f0c2a9d41
Revises:
Create Date: 2026-10-18 09:12:44.301512

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from pgvector.sqlalchemy import Vector
from sqlalchemy.dialects import postgresql

from app.core.config import settings


# revision identifiers, used by Alembic.
revision: str = '3b1f0c2a9d41'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    message_role_enum = postgresql.ENUM('system', 'user', 'assistant', name='messagerole', create_type=False)
    message_role_enum.create(op.get_bind(), checkfirst=True)

    op.create_table(
        'document',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('filename', sa.String(512), nullable=False),
        sa.Column('content_type', sa.String(255), nullable=False),
        sa.Column('size_bytes', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='processing'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('storage_path', sa.String(1024), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )
    op.create_index(op.f('ix_document_user_id'), 'document', ['user_id'], unique=False)
    op.create_index(op.f('ix_document_status'), 'document', ['status'], unique=False)
    op.create_index(op.f('ix_document_created_at'), 'document', ['created_at'], unique=False)

    op.create_table(
        'document_chunk',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('document_id', sa.String(36), sa.ForeignKey('document.id', ondelete='CASCADE'), nullable=False),
        sa.Column('chunk_index', sa.Integer(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('embedding', Vector(settings.EMBEDDING_DIMENSIONS), nullable=False),
        sa.Column('token_count', sa.Integer(), nullable=False),
        sa.Column('chunk_metadata', postgresql.JSON(astext_type=sa.Text()), nullable=False, server_default='{}'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.UniqueConstraint('document_id', 'chunk_index', name='uq_document_chunk_document_index'),
    )
    op.create_index(op.f('ix_document_chunk_document_id'), 'document_chunk', ['document_id'], unique=False)
    op.create_index(
        'ix_document_chunk_embedding_hnsw',
        'document_chunk',
        ['embedding'],
        unique=False,
        postgresql_using='hnsw',
        postgresql_with={'m': 16, 'ef_construction': 64},
        postgresql_ops={'embedding': 'vector_cosine_ops'},
    )

    op.create_table(
        'conversation',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('title', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('meta_data', postgresql.JSON(astext_type=sa.Text()), nullable=False, server_default='{}'),
    )
    op.create_index(op.f('ix_conversation_user_id'), 'conversation', ['user_id'], unique=False)

    op.create_table(
        'chat_message',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('conversation_id', sa.String(36), sa.ForeignKey('conversation.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('role', message_role_enum, nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )
    op.create_index(op.f('ix_chat_message_conversation_id'), 'chat_message', ['conversation_id'], unique=False)
    op.create_index(op.f('ix_chat_message_user_id'), 'chat_message', ['user_id'], unique=False)
    op.create_index(op.f('ix_chat_message_created_at'), 'chat_message', ['created_at'], unique=False)

    op.create_table(
        'conversation_summary',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('conversation_id', sa.String(36), nullable=False),
        sa.Column('summary', sa.Text(), nullable=False),
        sa.Column('key_topics', postgresql.JSON(astext_type=sa.Text()), nullable=False, server_default='[]'),
        sa.Column('importance_score', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('emotion', sa.Integer(), nullable=True),
        sa.Column('message_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.CheckConstraint('importance_score BETWEEN 1 AND 10',
                           name=op.f('ck_conversation_summary_importance_range')),
    )
    op.create_index(op.f('ix_conversation_summary_user_id'), 'conversation_summary', ['user_id'], unique=False)
    op.create_index(op.f('ix_conversation_summary_conversation_id'), 'conversation_summary',
                    ['conversation_id'], unique=True)
    op.create_index(op.f('ix_conversation_summary_created_at'), 'conversation_summary',
                    ['created_at'], unique=False)


def downgrade() -> None:
    op.drop_table('conversation_summary')
    op.drop_table('chat_message')
    op.drop_table('conversation')
    op.drop_index('ix_document_chunk_embedding_hnsw', table_name='document_chunk')
    op.drop_table('document_chunk')
    op.drop_table('document')
    postgresql.ENUM(name='messagerole').drop(op.get_bind(), checkfirst=True)
