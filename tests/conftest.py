from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from app import create_app
from errors import NotificationError
from models import db
from models.booking import Booking
from models.radio_jockey import RadioJockey
from models.slot import Slot
from models.station import Station
from models.user import User, Role
from security.session import create_session
from services.gateway import StubPaymentGateway
from services.payments import PaymentService
from utils.roles import ADVERTISER, STATION_ADMIN
from utils.seed import seed_roles


class FakeMailer:
    def __init__(self):
        self.sent = []
        self.fail_with = None

    def send_payment_notice(self, to_email, station_name, amount_major, payment_id):
        if self.fail_with:
            raise NotificationError(self.fail_with, payment_id=payment_id)
        self.sent.append({
            "to": to_email,
            "station": station_name,
            "amount": amount_major,
            "payment_id": payment_id,
        })


@pytest.fixture
def gateway():
    return StubPaymentGateway(key_secret="test-secret")


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def app(gateway, mailer):
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "PAYMENT_CURRENCY": "INR",
        },
        gateway=gateway,
        mailer=mailer,
    )
    with app.app_context():
        db.create_all()
        seed_roles()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def service(app, gateway, mailer):
    return PaymentService(gateway, mailer)


def _user(email, role_name):
    user = User(email=email, full_name=email.split("@")[0])
    user.roles.append(Role.query.filter_by(name=role_name).first())
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def advertiser(app):
    return _user("ads@brand.test", ADVERTISER)


@pytest.fixture
def other_advertiser(app):
    return _user("rival@brand.test", ADVERTISER)


@pytest.fixture
def station_admin(app):
    return _user("admin@fm.test", STATION_ADMIN)


@pytest.fixture
def auth_headers(app):
    def make(user):
        return {"Authorization": f"Bearer {create_session(user.id)}"}
    return make


@pytest.fixture
def station(station_admin):
    station = Station(name="Radio City", contact_email="sales@radiocity.test", owner_user_id=station_admin.id)
    db.session.add(station)
    db.session.commit()
    return station


@pytest.fixture
def rj(station):
    rj = RadioJockey(station_id=station.id, name="RJ Malishka")
    db.session.add(rj)
    db.session.commit()
    return rj


@pytest.fixture
def slot(station, rj):
    slot = Slot(
        station_id=station.id,
        rj_id=rj.id,
        slot_time=(datetime.utcnow() + timedelta(days=3)).replace(microsecond=0),
        price=Decimal("1500.00"),
    )
    db.session.add(slot)
    db.session.commit()
    return slot


@pytest.fixture
def booking(advertiser, slot):
    booking = Booking(
        user_id=advertiser.id,
        station_id=slot.station_id,
        rj_id=slot.rj_id,
        slot_id=slot.id,
    )
    db.session.add(booking)
    db.session.commit()
    return booking
