import os
from datetime import datetime
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite://')

from petsync.database import Base  # noqa: E402
from petsync.models.appointment import Appointment  # noqa: E402
from petsync.models.audit_log import AuditLog  # noqa: E402,F401
from petsync.models.business import Business  # noqa: E402
from petsync.models.pet import Pet  # noqa: E402
from petsync.models.user import User  # noqa: E402
from petsync.services.access_policy import Actor  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def world(db):
    """Two businesses with admins, staff, clients and pets."""
    b1 = Business(name='Happy Paws')
    b2 = Business(name='Clean Tails')
    db.add_all([b1, b2])
    db.flush()

    super_admin = User(email='root@petsync.test', full_name='Root', role='super_admin')
    admin1 = User(email='admin1@petsync.test', full_name='Admin One', role='business_admin', businesses=[b1])
    admin2 = User(email='admin2@petsync.test', full_name='Admin Two', role='business_admin', businesses=[b2])
    staff1 = User(email='staff1@petsync.test', full_name='Staff One', role='staff', businesses=[b1])
    staff2 = User(email='staff2@petsync.test', full_name='Staff Two', role='staff', businesses=[b1])
    outsider = User(email='outsider@petsync.test', full_name='Floating Staff', role='staff')
    client = User(email='client@petsync.test', full_name='Casey Client', role='client')
    other_client = User(email='other@petsync.test', full_name='Other Client', role='client')
    db.add_all([super_admin, admin1, admin2, staff1, staff2, outsider, client, other_client])
    db.flush()

    pet = Pet(owner_id=client.id, name='Biscuit', species='dog')
    other_pet = Pet(owner_id=other_client.id, name='Mochi', species='cat')
    db.add_all([pet, other_pet])
    db.commit()

    return SimpleNamespace(
        b1=b1,
        b2=b2,
        super_admin=super_admin,
        admin1=admin1,
        admin2=admin2,
        staff1=staff1,
        staff2=staff2,
        outsider=outsider,
        client=client,
        other_client=other_client,
        pet=pet,
        other_pet=other_pet,
    )


@pytest.fixture
def actor_for():
    def _actor_for(user: User) -> Actor:
        return Actor.from_user(user)

    return _actor_for


@pytest.fixture
def make_appointment(db, world):
    def _make_appointment(
        start: datetime,
        end: datetime,
        *,
        business=None,
        staff=None,
        client=None,
        pet=None,
        status: str = 'scheduled',
    ) -> Appointment:
        business = business or world.b1
        client = client or world.client
        pet = pet or world.pet
        appointment = Appointment(
            business_id=business.id,
            client_id=client.id,
            pet_id=pet.id,
            staff_id=staff.id if staff is not None else None,
            service_name='Full Groom',
            duration_minutes=int((end - start).total_seconds() // 60),
            price_amount=50,
            start_time=start,
            end_time=end,
            status=status,
            photos=[],
            created_by_id=world.admin1.id,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _make_appointment
