import logging

from conftest import PASSWORD, csrf_headers, login_as, make_user
from dokan import models
from dokan.auth import password_problems

NEW_USER = {
    "username": "asha",
    "email": "asha@example.com",
    "password": "Strong@123",
    "confirmPassword": "Strong@123",
    "firstName": "Asha",
    "lastName": "Rai",
}


def test_register_creates_user_and_session(client, db, caplog):
    with caplog.at_level(logging.INFO, logger="dokan.audit"):
        res = client.post("/api/auth/register", json=NEW_USER, headers=csrf_headers(client))
    assert res.status_code == 200
    user = res.json()["user"]
    assert user["email"] == "asha@example.com"
    assert user["role"] == "user"
    assert "password" not in user
    assert client.cookies.get("session")
    assert '"type": "registration"' in caplog.text

    assert client.get("/api/auth/me").json()["user"]["id"] == user["id"]


def test_register_as_vendor_opens_a_store(client, db):
    res = client.post("/api/auth/register", json={**NEW_USER, "role": "vendor"}, headers=csrf_headers(client))
    assert res.status_code == 200
    vendor = db.query(models.Vendor).filter(models.Vendor.user_id == res.json()["user"]["id"]).one()
    assert vendor.store_name == "Asha Rai's Store"
    assert vendor.is_approved


def test_register_rejects_admin_role(client):
    res = client.post("/api/auth/register", json={**NEW_USER, "role": "admin"}, headers=csrf_headers(client))
    assert res.status_code == 400
    assert res.json()["message"] == "Validation error"


def test_register_rejects_weak_password(client):
    body = {**NEW_USER, "password": "weakpass", "confirmPassword": "weakpass"}
    res = client.post("/api/auth/register", json=body, headers=csrf_headers(client))
    assert res.status_code == 400
    assert res.json()["message"] == "Password does not meet security requirements"
    assert "Password must contain at least one uppercase letter" in res.json()["errors"]


def test_register_rejects_password_mismatch(client):
    body = {**NEW_USER, "confirmPassword": "Other@123"}
    res = client.post("/api/auth/register", json=body, headers=csrf_headers(client))
    assert res.status_code == 400
    assert res.json()["errors"][0]["message"].endswith("Passwords don't match")


def test_register_duplicate_email(client, buyer):
    body = {**NEW_USER, "email": buyer.email}
    res = client.post("/api/auth/register", json=body, headers=csrf_headers(client))
    assert res.status_code == 400
    assert res.json() == {"message": "User already exists"}


def test_login_and_logout(client, buyer):
    res = client.post("/api/auth/login", json={"email": buyer.email, "password": PASSWORD})
    assert res.status_code == 200
    assert res.json()["user"]["username"] == "buyer"
    assert client.get("/api/auth/me").status_code == 200

    assert client.post("/api/auth/logout").json() == {"message": "Logged out successfully"}
    assert client.get("/api/auth/me").status_code == 401


def test_login_wrong_password(client, buyer):
    res = client.post("/api/auth/login", json={"email": buyer.email, "password": "Wrong@123"})
    assert res.status_code == 401
    assert res.json() == {"message": "Invalid credentials"}


def test_login_disabled_account(client, db):
    user = make_user(db, is_active=False)
    res = client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
    assert res.status_code == 401
    assert res.json() == {"message": "Account is disabled"}


def test_disabled_user_session_is_ignored(client, db):
    user = make_user(db)
    login_as(client, user)
    user.is_active = False
    db.commit()
    assert client.get("/api/auth/me").status_code == 401


def test_admin_login_creates_admin(client, db):
    res = client.post("/api/auth/admin-login", json={"username": "admin", "password": "admin123"},
                      headers=csrf_headers(client))
    assert res.status_code == 200
    assert res.json()["user"]["role"] == "admin"
    assert db.query(models.User).filter(models.User.role == "admin").count() == 1

    res = client.post("/api/auth/admin-login", json={"username": "admin", "password": "nope"},
                      headers=csrf_headers(client))
    assert res.status_code == 401


def test_update_profile(client, buyer):
    login_as(client, buyer)
    res = client.put("/api/profile", json={"firstName": "Maya", "phone": "9811111111"}, headers=csrf_headers(client))
    assert res.status_code == 200
    assert res.json()["user"]["firstName"] == "Maya"
    assert res.json()["user"]["phone"] == "9811111111"

    res = client.put("/api/profile", json={}, headers=csrf_headers(client))
    assert res.status_code == 400
    assert res.json() == {"message": "No valid fields to update"}


def test_change_password(client, buyer):
    login_as(client, buyer)
    headers = csrf_headers(client)
    res = client.put("/api/auth/change-password", headers=headers, json={
        "currentPassword": "Wrong@123", "newPassword": "Better@456", "confirmPassword": "Better@456",
    })
    assert res.status_code == 400

    res = client.put("/api/auth/change-password", headers=headers, json={
        "currentPassword": PASSWORD, "newPassword": "Better@456", "confirmPassword": "Better@456",
    })
    assert res.status_code == 200
    res = client.post("/api/auth/login", json={"email": buyer.email, "password": "Better@456"})
    assert res.status_code == 200


def test_change_email(client, buyer):
    login_as(client, buyer)
    res = client.put("/api/auth/change-email", json={"newEmail": "new@example.com", "password": PASSWORD},
                     headers=csrf_headers(client))
    assert res.status_code == 200
    assert res.json()["user"]["email"] == "new@example.com"
    assert res.json()["message"]


def test_password_problems():
    assert password_problems("Strong@123") == []
    assert len(password_problems("short")) == 4
