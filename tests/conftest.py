import os
import tempfile
from decimal import Decimal

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="dokan-uploads-"))

import pytest
from fastapi.testclient import TestClient

from dokan import models
from dokan.auth import create_session_token, get_password_hash
from dokan.client import DokanClient
from dokan.database import Base, SessionLocal, engine
from dokan.main import create_app

PASSWORD = "Secret@123"


@pytest.fixture
def app():
    # New app per test: fresh rate limiter and slow-down counters
    Base.metadata.drop_all(bind=engine)
    application = create_app()
    yield application
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(app):
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def csrf_headers(client):
    token = client.get("/api/csrf-token").json()["csrfToken"]
    return {"x-csrf-token": token}


def login_as(client, user):
    client.cookies.set("session", create_session_token(user))
    return client


def make_user(db, role="user", username=None, email=None, password=PASSWORD, **fields):
    username = username or f"{role}{db.query(models.User).count() + 1}"
    user = models.User(
        username=username,
        email=email or f"{username}@example.com",
        password=get_password_hash(password),
        role=role,
        first_name=fields.pop("first_name", "Test"),
        last_name=fields.pop("last_name", username.capitalize()),
        **fields,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_vendor(db, store_name="Corner Shop", **fields):
    user = make_user(db, role="vendor")
    vendor = models.Vendor(user_id=user.id, store_name=store_name, **fields)
    db.add(vendor)
    db.commit()
    db.refresh(vendor)
    return vendor


def make_product(db, vendor, name="Tea", price="10.00", discount_price=None, **fields):
    product = models.Product(
        vendor_id=vendor.id,
        name=name,
        description=fields.pop("description", f"{name} description"),
        price=Decimal(price),
        discount_price=Decimal(discount_price) if discount_price else None,
        stock=fields.pop("stock", 10),
        sku=fields.pop("sku", f"SKU-{name}-{vendor.id[:6]}"),
        **fields,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def make_order(db, user, vendor, products, status="pending"):
    total = sum((p.price for p in products), Decimal("0"))
    order = models.Order(user_id=user.id, vendor_id=vendor.id, total=total, status=status,
                         delivery_address={"city": "Dhaka"})
    db.add(order)
    db.flush()
    for p in products:
        db.add(models.OrderItem(order_id=order.id, product_id=p.id, quantity=1, price=p.price, total=p.price))
    db.commit()
    db.refresh(order)
    return order


@pytest.fixture
def buyer(db):
    return make_user(db, role="user", username="buyer")


@pytest.fixture
def admin(db):
    return make_user(db, role="admin", username="root")


@pytest.fixture
def vendor(db):
    return make_vendor(db)


@pytest.fixture
def vendor_user(db, vendor):
    return db.query(models.User).filter(models.User.id == vendor.user_id).one()


@pytest.fixture
def api(client):
    """DokanClient talking to the in-process app."""
    return DokanClient(http=client)


ADDRESS = {
    "firstName": "Asha",
    "lastName": "Rai",
    "phone": "9800000000",
    "street": "12 Lake Road",
    "city": "Kathmandu",
    "state": "Bagmati",
    "zipCode": "44600",
    "country": "Nepal",
}
