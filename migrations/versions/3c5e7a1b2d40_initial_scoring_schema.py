"""initial scoring schema

Revision ID: 3c5e7a1b2d40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c5e7a1b2d40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('user_id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=128), nullable=False),
        sa.Column('password_hash', sa.String(length=256), nullable=True),
        sa.Column('role', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('username'),
    )

    op.create_table(
        'students',
        sa.Column('student_id', sa.String(length=64), primary_key=True),
        sa.Column('npm', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('prodi', sa.String(length=32), nullable=False),
        sa.Column('title', sa.Text(), nullable=True),
        sa.Column('pembimbing1', sa.String(length=128), nullable=True),
        sa.Column('pembimbing2', sa.String(length=128), nullable=True),
        sa.Column('penguji1', sa.String(length=128), nullable=True),
        sa.Column('penguji2', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_students_npm', 'students', ['npm'])

    op.create_table(
        'assessments',
        sa.Column('assessment_id', sa.String(length=200), primary_key=True),
        sa.Column('student_id_fk', sa.String(length=64), nullable=False),
        sa.Column('evaluator_role', sa.String(length=32), nullable=False),
        sa.Column('exam_type', sa.String(length=32), nullable=False),
        sa.Column('score_kind', sa.String(length=16), nullable=False),
        sa.Column('supervisor_scores_json', sa.Text(), nullable=True),
        sa.Column('sistematika', sa.Float(), nullable=True),
        sa.Column('isi', sa.Float(), nullable=True),
        sa.Column('penyajian', sa.Float(), nullable=True),
        sa.Column('tanya_jawab', sa.Float(), nullable=True),
        sa.Column('proceedings_date', sa.String(length=16), nullable=True),
        sa.Column('proceedings_time', sa.String(length=8), nullable=True),
        sa.Column('proceedings_events', sa.Text(), nullable=True),
        sa.Column('proceedings_notes', sa.Text(), nullable=True),
        sa.Column('total_score', sa.Float(), nullable=False, server_default=sa.text('0')),
        sa.Column('timestamp', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['student_id_fk'], ['students.student_id'], ondelete='CASCADE'),
        sa.UniqueConstraint('student_id_fk', 'evaluator_role', 'exam_type', name='uq_assessment_scope'),
    )
    op.create_index('ix_assessments_student_id_fk', 'assessments', ['student_id_fk'])
    op.create_index('ix_assessments_exam_type', 'assessments', ['exam_type'])

    op.create_table(
        'import_logs',
        sa.Column('log_id', sa.Integer(), primary_key=True),
        sa.Column('user_id_fk', sa.Integer(), nullable=True),
        sa.Column('filename', sa.String(length=255), nullable=True),
        sa.Column('dry_run', sa.Boolean(), nullable=True),
        sa.Column('created_count', sa.Integer(), nullable=True),
        sa.Column('updated_count', sa.Integer(), nullable=True),
        sa.Column('skipped_count', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id_fk'], ['users.user_id']),
    )


def downgrade():
    op.drop_table('import_logs')
    op.drop_index('ix_assessments_exam_type', table_name='assessments')
    op.drop_index('ix_assessments_student_id_fk', table_name='assessments')
    op.drop_table('assessments')
    op.drop_index('ix_students_npm', table_name='students')
    op.drop_table('students')
    op.drop_table('users')
