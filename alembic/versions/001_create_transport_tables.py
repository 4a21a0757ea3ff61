"""Create transport tracking tables

Revision ID: 001
Revises:
Create Date: 2025-10-09

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'transport_vehicles',
        sa.Column('id', sa.String(50), primary_key=True),
        sa.Column('school_id', sa.String(50), nullable=False),
        sa.Column('registration_number', sa.String(30), nullable=False),
        sa.Column('capacity', sa.Integer, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=True),
    )
    op.create_index('ix_transport_vehicles_school_id', 'transport_vehicles', ['school_id'])
    op.create_index('ix_transport_vehicles_school_registration', 'transport_vehicles', ['school_id', 'registration_number'])

    op.create_table(
        'transport_stops',
        sa.Column('id', sa.String(50), primary_key=True),
        sa.Column('school_id', sa.String(50), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('latitude', sa.Float, nullable=False),
        sa.Column('longitude', sa.Float, nullable=False),
    )
    op.create_index('ix_transport_stops_school_id', 'transport_stops', ['school_id'])

    op.create_table(
        'transport_routes',
        sa.Column('id', sa.String(50), primary_key=True),
        sa.Column('school_id', sa.String(50), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
    )
    op.create_index('ix_transport_routes_school_id', 'transport_routes', ['school_id'])

    op.create_table(
        'transport_route_stops',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('route_id', sa.String(50), sa.ForeignKey('transport_routes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('stop_id', sa.String(50), sa.ForeignKey('transport_stops.id'), nullable=False),
        sa.Column('sequence', sa.Integer, nullable=False),
        sa.Column('wait_time_minutes', sa.Integer, nullable=True),
    )
    op.create_index('ix_route_stops_route_sequence', 'transport_route_stops', ['route_id', 'sequence'], unique=True)

    op.create_table(
        'transport_trips',
        sa.Column('id', sa.String(50), primary_key=True),
        sa.Column('school_id', sa.String(50), nullable=False),
        sa.Column('route_id', sa.String(50), sa.ForeignKey('transport_routes.id'), nullable=False),
        sa.Column('vehicle_id', sa.String(50), sa.ForeignKey('transport_vehicles.id'), nullable=False),
        sa.Column(
            'status',
            sa.Enum('SCHEDULED', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED', name='tripstatusenum'),
            nullable=False,
        ),
        sa.Column('trip_date', sa.Date, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=True),
    )
    op.create_index('ix_transport_trips_school_id', 'transport_trips', ['school_id'])
    op.create_index('ix_transport_trips_route_id', 'transport_trips', ['route_id'])
    op.create_index('ix_transport_trips_vehicle_id', 'transport_trips', ['vehicle_id'])

    # alighted implies boarded; absent implies neither
    op.create_table(
        'transport_student_trip_records',
        sa.Column('id', sa.String(50), primary_key=True),
        sa.Column('trip_id', sa.String(50), sa.ForeignKey('transport_trips.id', ondelete='CASCADE'), nullable=False),
        sa.Column('student_id', sa.String(50), nullable=False),
        sa.Column('pickup_stop_id', sa.String(50), sa.ForeignKey('transport_stops.id'), nullable=True),
        sa.Column('drop_stop_id', sa.String(50), sa.ForeignKey('transport_stops.id'), nullable=True),
        sa.Column('boarded', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('boarding_time', sa.DateTime, nullable=True),
        sa.Column('alighted', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('alighting_time', sa.DateTime, nullable=True),
        sa.Column('absent', sa.Boolean, nullable=False, server_default=sa.false()),
    )
    op.create_index('ix_transport_student_trip_records_student_id', 'transport_student_trip_records', ['student_id'])
    op.create_index('ix_student_trip_records_trip', 'transport_student_trip_records', ['trip_id'])
    op.create_index('ix_student_trip_records_trip_drop', 'transport_student_trip_records', ['trip_id', 'drop_stop_id'])

    # Sparse position snapshots, one per vehicle per snapshot interval
    op.create_table(
        'transport_gps_locations',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('vehicle_id', sa.String(50), nullable=False),
        sa.Column('trip_id', sa.String(50), nullable=True),
        sa.Column('latitude', sa.Float, nullable=False),
        sa.Column('longitude', sa.Float, nullable=False),
        sa.Column('accuracy', sa.Float, nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('timestamp', sa.DateTime, nullable=False),
        sa.Column('recorded_at', sa.DateTime, nullable=True),
    )
    op.create_index('ix_transport_gps_locations_vehicle_id', 'transport_gps_locations', ['vehicle_id'])
    op.create_index('ix_transport_gps_locations_trip_id', 'transport_gps_locations', ['trip_id'])
    op.create_index('ix_transport_gps_locations_timestamp', 'transport_gps_locations', ['timestamp'])
    op.create_index('ix_transport_gps_locations_recorded_at', 'transport_gps_locations', ['recorded_at'])
    op.create_index('ix_gps_locations_vehicle_time', 'transport_gps_locations', ['vehicle_id', 'timestamp'])


def downgrade() -> None:
    op.drop_table('transport_gps_locations')
    op.drop_table('transport_student_trip_records')
    op.drop_table('transport_trips')
    op.execute('DROP TYPE IF EXISTS tripstatusenum')
    op.drop_table('transport_route_stops')
    op.drop_table('transport_routes')
    op.drop_table('transport_stops')
    op.drop_table('transport_vehicles')
