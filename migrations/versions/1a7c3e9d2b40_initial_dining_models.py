"""initial dining models

Revision ID: 1a7c3e9d2b40
Revises:
Create Date: 2026-10-12 09:30:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '1a7c3e9d2b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    conn = op.get_bind()
    insp = sa.inspect(conn)

    if not insp.has_table('departments'):
        op.create_table(
            'departments',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=100), nullable=False, unique=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
        )

    if not insp.has_table('users'):
        op.create_table(
            'users',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=100), nullable=False),
            sa.Column('email', sa.String(length=150), nullable=True, unique=True),
            sa.Column('role', sa.String(length=20), nullable=False, server_default='user'),
            sa.Column('department_id', sa.Integer(), sa.ForeignKey('departments.id'), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
            sa.Column('created_at', sa.DateTime(), nullable=False),
        )

    if not insp.has_table('dishes'):
        op.create_table(
            'dishes',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=150), nullable=False, unique=True),
            sa.Column('price', sa.Numeric(10, 2), nullable=False, server_default='0'),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        )

    if not insp.has_table('menus'):
        op.create_table(
            'menus',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=150), nullable=False),
            sa.Column('publish_date', sa.Date(), nullable=False),
            sa.Column('meal_type', sa.String(length=20), nullable=False),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
            sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('published_at', sa.DateTime(), nullable=True),
            sa.Column('published_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
            sa.Column('revoked_at', sa.DateTime(), nullable=True),
        )
        op.create_index('ix_menus_date_meal', 'menus', ['publish_date', 'meal_type'])
        op.create_index(
            'uq_menus_published_meal', 'menus', ['publish_date', 'meal_type'],
            unique=True,
            sqlite_where=sa.text("status = 'published'"),
            postgresql_where=sa.text("status = 'published'"),
        )

    if not insp.has_table('menu_dishes'):
        op.create_table(
            'menu_dishes',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('menu_id', sa.Integer(), sa.ForeignKey('menus.id'), nullable=False),
            sa.Column('dish_id', sa.Integer(), sa.ForeignKey('dishes.id'), nullable=False),
            sa.Column('price', sa.Numeric(10, 2), nullable=True),
            sa.Column('sort', sa.Integer(), nullable=False, server_default='0'),
            sa.UniqueConstraint('menu_id', 'dish_id', name='uq_menu_dish'),
        )

    if not insp.has_table('dining_orders'):
        op.create_table(
            'dining_orders',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('registrant_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('department_id', sa.Integer(), sa.ForeignKey('departments.id'), nullable=True),
            sa.Column('dining_date', sa.Date(), nullable=False),
            sa.Column('meal_type', sa.String(length=20), nullable=False),
            sa.Column('menu_id', sa.Integer(), sa.ForeignKey('menus.id'), nullable=True),
            sa.Column('total_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
            sa.Column('remark', sa.Text(), nullable=True),
            sa.Column('state', sa.String(length=20), nullable=False, server_default='ordered'),
            sa.Column('register_time', sa.DateTime(), nullable=False),
            sa.Column('actual_dining_time', sa.DateTime(), nullable=True),
            sa.Column('confirmation_type', sa.String(length=20), nullable=True),
            sa.Column('confirmed_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
            sa.Column('cancelled_at', sa.DateTime(), nullable=True),
            sa.Column('cancelled_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_dining_orders_date_meal', 'dining_orders', ['dining_date', 'meal_type'])
        op.create_index('ix_dining_orders_department_date', 'dining_orders', ['department_id', 'dining_date'])
        op.create_index(
            'uq_dining_orders_active_meal', 'dining_orders', ['user_id', 'dining_date', 'meal_type'],
            unique=True,
            sqlite_where=sa.text("state != 'cancelled'"),
            postgresql_where=sa.text("state != 'cancelled'"),
        )

    if not insp.has_table('dining_confirmation_logs'):
        op.create_table(
            'dining_confirmation_logs',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('order_id', sa.Integer(), sa.ForeignKey('dining_orders.id'), nullable=False),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('confirmation_type', sa.String(length=20), nullable=False),
            sa.Column('confirmed_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('confirmation_time', sa.DateTime(), nullable=False),
            sa.Column('remark', sa.Text(), nullable=True),
        )

    if not insp.has_table('qr_codes'):
        op.create_table(
            'qr_codes',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('code', sa.String(length=64), nullable=False, unique=True),
            sa.Column('name', sa.String(length=100), nullable=False),
            sa.Column('location', sa.String(length=200), nullable=True),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
            sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
        )

    if not insp.has_table('scan_registrations'):
        op.create_table(
            'scan_registrations',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('qr_code_id', sa.Integer(), sa.ForeignKey('qr_codes.id'), nullable=True),
            sa.Column('order_id', sa.Integer(), sa.ForeignKey('dining_orders.id'), nullable=True),
            sa.Column('scan_time', sa.DateTime(), nullable=False),
            sa.Column('dining_date', sa.Date(), nullable=True),
            sa.Column('meal_type', sa.String(length=20), nullable=True),
            sa.Column('claimed_meal_type', sa.String(length=20), nullable=True),
            sa.Column('outcome', sa.String(length=20), nullable=False),
            sa.Column('failure_reason', sa.String(length=50), nullable=True),
            sa.Column('device_info', sa.Text(), nullable=True),
        )
        op.create_index('ix_scan_registrations_user_time', 'scan_registrations', ['user_id', 'scan_time'])
        op.create_index('ix_scan_registrations_date_meal', 'scan_registrations', ['dining_date', 'meal_type'])


def downgrade():
    op.drop_table('scan_registrations')
    op.drop_table('qr_codes')
    op.drop_table('dining_confirmation_logs')
    op.drop_table('dining_orders')
    op.drop_table('menu_dishes')
    op.drop_table('menus')
    op.drop_table('dishes')
    op.drop_table('users')
    op.drop_table('departments')
