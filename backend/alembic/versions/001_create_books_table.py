"""Create books table

Revision ID: 001_create_books
Revises:
Create Date: 2025-03-01

"""
import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = '001_create_books'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'books',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('author', sa.String(length=255), nullable=False),
        sa.Column('isbn', sa.String(length=20), nullable=False),
        sa.Column('published_date', sa.Date(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_books_title', 'books', ['title'])
    op.create_index('ix_books_author', 'books', ['author'])
    op.create_index('ix_books_isbn', 'books', ['isbn'], unique=True)
    op.create_index('ix_books_published_date', 'books', ['published_date'])


def downgrade() -> None:
    op.drop_index('ix_books_published_date', 'books')
    op.drop_index('ix_books_isbn', 'books')
    op.drop_index('ix_books_author', 'books')
    op.drop_index('ix_books_title', 'books')
    op.drop_table('books')
