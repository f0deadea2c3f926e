from datetime import datetime, timedelta

import pytest

from core.extensions import db, mail
from models.userModel import User, PhoneOTP, PasswordResetToken
from routes.auth import normalize_phone
from tests.conftest import make_user, auth_headers


def register(client, **overrides):
    body = {
        "email": "Meera@Example.com",
        "password": "secret123",
        "firstName": "Meera",
        "lastName": "Munda",
    }
    body.update(overrides)
    return client.post("/api/auth/register", json=body)


@pytest.mark.parametrize("raw, expected", [
    ("9876543210", "+919876543210"),
    ("+91 98765 43210", "+919876543210"),
    ("09876543210", "+919876543210"),
    ("919876543210", "+919876543210"),
    ("12345", None),
    ("5876543210", None),
    ("", None),
])
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


def test_register_returns_token(client):
    response = register(client, phone="9876543210")

    assert response.status_code == 201
    data = response.get_json()["data"]
    assert data["token"]
    assert data["user"]["email"] == "meera@example.com"
    assert data["user"]["role"] == "USER"
    assert data["user"]["phone"] == "+919876543210"
    assert "password" not in data["user"]


def test_register_rejects_duplicate_email(client):
    register(client)
    response = register(client)

    assert response.status_code == 400
    assert response.get_json()["message"] == "User already exists with this email"


@pytest.mark.parametrize("overrides", [
    {"email": ""},
    {"email": "not-an-email"},
    {"password": "123"},
    {"firstName": "  "},
    {"phone": "12345"},
])
def test_register_validation(client, overrides):
    response = register(client, **overrides)
    assert response.status_code == 400
    assert User.query.count() == 0


def test_register_cannot_pick_role(client):
    data = register(client, role="ADMIN").get_json()["data"]
    assert data["user"]["role"] == "USER"


def test_login(client):
    register(client)

    response = client.post("/api/auth/login", json={"email": "meera@example.com", "password": "secret123"})

    assert response.status_code == 200
    token = response.get_json()["data"]["token"]
    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.get_json()["data"]["firstName"] == "Meera"


def test_login_with_wrong_password(client):
    register(client)

    response = client.post("/api/auth/login", json={"email": "meera@example.com", "password": "wrong-one"})

    assert response.status_code == 401
    assert response.get_json() == {"success": False, "message": "Invalid credentials"}


def test_me_requires_token(client):
    response = client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.get_json()["success"] is False


def test_garbage_token_is_rejected(client):
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not.a.jwt"})
    assert response.status_code == 401
    assert response.get_json() == {"success": False, "message": "Token is not valid"}


def test_update_profile_resets_phone_verification(client, app):
    user = make_user("meera@example.com", phone="+919876543210")
    user.phone_verified = True
    db.session.commit()

    response = client.put(
        "/api/auth/profile",
        json={"firstName": "Meera Devi", "phone": "9123456789"},
        headers=auth_headers(user),
    )

    data = response.get_json()["data"]
    assert response.status_code == 200
    assert data["firstName"] == "Meera Devi"
    assert data["phone"] == "+919123456789"
    assert data["phoneVerified"] is False


def test_update_profile_rejects_taken_phone(client, app):
    make_user("first@example.com", phone="+919876543210")
    second = make_user("second@example.com")

    response = client.put("/api/auth/profile", json={"phone": "9876543210"}, headers=auth_headers(second))

    assert response.status_code == 400


def send_otp(client, phone="9876543210"):
    return client.post("/api/auth/phone/send-otp", json={"phoneNumber": phone})


def test_otp_round_trip_logs_in_owner(client, app):
    make_user("meera@example.com", phone="+919876543210")

    sent = send_otp(client).get_json()["data"]
    response = client.post(
        "/api/auth/phone/verify-otp",
        json={"phoneNumber": "98765 43210", "otpCode": sent["developmentCode"]},
    )

    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["phoneNumber"] == "+919876543210"
    assert data["token"]
    assert data["user"]["phoneVerified"] is True


def test_otp_for_unknown_number_only_verifies(client, app):
    code = send_otp(client).get_json()["data"]["developmentCode"]

    data = client.post(
        "/api/auth/phone/verify-otp",
        json={"phoneNumber": "9876543210", "otpCode": code},
    ).get_json()["data"]

    assert "token" not in data
    assert data["phoneNumber"] == "+919876543210"


def test_otp_cannot_be_reused(client, app):
    code = send_otp(client).get_json()["data"]["developmentCode"]
    body = {"phoneNumber": "9876543210", "otpCode": code}
    client.post("/api/auth/phone/verify-otp", json=body)

    response = client.post("/api/auth/phone/verify-otp", json=body)

    assert response.status_code == 400
    assert response.get_json()["error"] == "already_used"


def test_expired_otp(client, app):
    code = send_otp(client).get_json()["data"]["developmentCode"]
    otp = PhoneOTP.query.filter_by(otp_code=code).first()
    otp.expires_at = datetime.utcnow() - timedelta(minutes=1)
    db.session.commit()

    response = client.post("/api/auth/phone/verify-otp", json={"phoneNumber": "9876543210", "otpCode": code})

    assert response.status_code == 400
    assert response.get_json()["error"] == "expired"


def test_wrong_otp(client, app):
    code = send_otp(client).get_json()["data"]["developmentCode"]
    wrong = "000000" if code != "000000" else "111111"

    response = client.post("/api/auth/phone/verify-otp", json={"phoneNumber": "9876543210", "otpCode": wrong})

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_code"


def test_send_otp_rejects_bad_number(client):
    assert send_otp(client, phone="12345").status_code == 400
    assert client.post("/api/auth/phone/send-otp", json={}).status_code == 400


def test_password_reset_flow(client, app):
    make_user("meera@example.com", password="old-password")

    with mail.record_messages() as outbox:
        response = client.post("/api/auth/forgot-password", json={"email": "meera@example.com"})
    assert response.status_code == 200
    assert len(outbox) == 1

    token = PasswordResetToken.query.one().token
    assert token in outbox[0].html

    reset = client.post("/api/auth/reset-password", json={"token": token, "password": "new-password"})
    assert reset.status_code == 200

    login = client.post("/api/auth/login", json={"email": "meera@example.com", "password": "new-password"})
    assert login.status_code == 200

    again = client.post("/api/auth/reset-password", json={"token": token, "password": "another-one"})
    assert again.status_code == 400


def test_forgot_password_does_not_reveal_accounts(client, app):
    with mail.record_messages() as outbox:
        response = client.post("/api/auth/forgot-password", json={"email": "nobody@example.com"})

    assert response.status_code == 200
    assert outbox == []


def test_send_otp_texts_the_code_to_the_normalized_number(client, monkeypatch):
    sent = []
    monkeypatch.setattr("routes.auth.send_otp_sms", lambda phone, code: sent.append((phone, code)))

    data = send_otp(client, phone="+91 98765 43210").get_json()["data"]

    assert sent == [("+919876543210", data["developmentCode"])]


def test_send_otp_reports_sms_outage(client, app):
    app.config["NOTIFICATION_FAILURE_RATES"] = dict(app.config["NOTIFICATION_FAILURE_RATES"], sms=1.0)

    response = send_otp(client)

    assert response.status_code == 500
    assert response.get_json() == {"success": False, "message": "Failed to send SMS"}
