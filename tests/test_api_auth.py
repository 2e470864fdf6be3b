from fastapi.testclient import TestClient

import config
from email_service import EmailService
from main import create_app
from tests.helpers import FailingChannel, auth

REGISTRATION = {
    "email": "maria@mail.com",
    "first_name": "Maria",
    "last_name": "Lopez",
    "phone": "555-0199",
    "password": "hunter22",
    "address": "7 Oak Road",
    "city": "Springfield",
}


def register(client):
    r = client.post("/api/register", json=REGISTRATION)
    assert r.status_code == 201, r.text
    return r.json()


def test_register_sends_otp_and_hides_it_from_response(client, storage, channel):
    body = register(client)

    assert body["email"] == "maria@mail.com"
    assert "otp_code" not in body
    stored = storage.get_user(body["user_id"])
    assert stored["is_verified"] is False
    otp_mails = channel.of_type("OTP")
    assert len(otp_mails) == 1
    assert otp_mails[0].recipient == "maria@mail.com"
    assert stored["otp_code"] in otp_mails[0].text


def test_register_rejects_duplicate_email(client):
    register(client)
    r = client.post("/api/register", json=REGISTRATION)
    assert r.status_code == 400


def test_register_validates_payload(client):
    r = client.post("/api/register", json={**REGISTRATION, "email": "not-an-email"})
    assert r.status_code == 422
    r = client.post("/api/register", json={**REGISTRATION, "password": "123"})
    assert r.status_code == 422


def test_verify_otp_then_login(client, storage):
    body = register(client)
    otp = storage.get_user(body["user_id"])["otp_code"]

    r = client.post("/api/login", json={"email": "maria@mail.com", "password": "hunter22"})
    assert r.status_code == 401

    r = client.post("/api/verify-otp", json={"email": "maria@mail.com", "otp": "000000"})
    assert r.status_code == 400

    r = client.post("/api/verify-otp", json={"email": "maria@mail.com", "otp": otp})
    assert r.status_code == 200
    assert r.json()["user"]["is_verified"] is True
    assert "password" not in r.json()["user"]

    r = client.post("/api/login", json={"email": "maria@mail.com", "password": "hunter22"})
    assert r.status_code == 200
    login = r.json()
    assert login["user_id"] == body["user_id"]
    assert login["is_admin"] is False
    assert "password" not in login["user"]


def test_login_with_wrong_password(client, user):
    r = client.post("/api/login", json={"email": user["email"], "password": "nope-nope"})
    assert r.status_code == 401
    r = client.post("/api/login", json={"email": "ghost@mail.com", "password": "whatever"})
    assert r.status_code == 401


def test_admin_account_is_created_on_startup(client):
    r = client.post("/api/login", json={"email": config.ADMIN_EMAIL, "password": config.ADMIN_PASSWORD})
    assert r.status_code == 200
    assert r.json()["is_admin"] is True


def test_resend_otp_issues_a_new_code(client, storage, channel):
    body = register(client)
    first = storage.get_user(body["user_id"])["otp_code"]

    r = client.post("/api/resend-otp", json={"email": "maria@mail.com"})
    assert r.status_code == 200

    latest = storage.get_user(body["user_id"])["otp_code"]
    assert len(channel.of_type("OTP")) == 2
    assert latest in channel.of_type("OTP")[-1].text
    if latest != first:
        r = client.post("/api/verify-otp", json={"email": "maria@mail.com", "otp": first})
        assert r.status_code == 400


def test_resend_otp_errors(client, user):
    r = client.post("/api/resend-otp", json={"email": "ghost@mail.com"})
    assert r.status_code == 404
    r = client.post("/api/resend-otp", json={"email": user["email"]})
    assert r.status_code == 400


def test_registration_survives_mail_outage(storage):
    app = create_app(storage=storage, email_service=EmailService(FailingChannel()), start_tracker=False)
    with TestClient(app) as client:
        body = register(client)
        r = client.post("/api/resend-otp", json={"email": "maria@mail.com"})
        assert r.status_code == 200
    assert storage.get_user(body["user_id"]) is not None


def test_identity_header_is_required(client, storage, user):
    assert client.get("/api/cart").status_code == 401
    assert client.get("/api/cart", headers={"X-User-Id": "nobody"}).status_code == 401
    assert client.get("/api/cart", headers=auth(user)).status_code == 200


def test_email_lookup_ignores_case(client, storage):
    register(client)

    r = client.post("/api/register", json={**REGISTRATION, "email": "MARIA@mail.com"})
    assert r.status_code == 400
    assert storage.get_user_by_email("Maria@Mail.com")["email"] == "maria@mail.com"


def test_admin_email_cannot_be_registered_in_another_case(client, storage):
    r = client.post("/api/register", json={**REGISTRATION, "email": config.ADMIN_EMAIL.upper()})

    assert r.status_code == 400
    assert len(storage.get_all_users()) == 1


def test_unverified_accounts_cannot_act(client):
    body = register(client)
    headers = {"X-User-Id": body["user_id"]}

    assert client.get("/api/cart", headers=headers).status_code == 403
    assert client.get("/api/admin/users", headers=headers).status_code == 403


def test_admin_login_with_wrong_password(client):
    r = client.post("/api/login", json={"email": config.ADMIN_EMAIL, "password": "not-the-password"})
    assert r.status_code == 401
