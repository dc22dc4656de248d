import pytest

from accounts.authentication import issue_tokens
from accounts.models import User
from administration.models import AdminNotification
from tests.conftest import PASSWORD, make_user

pytestmark = pytest.mark.django_db

REGISTER_URL = "/api/v1/auth/register/"
LOGIN_URL = "/api/v1/auth/login/"
ME_URL = "/api/v1/auth/me/"


def test_register_creates_pending_farmer_and_alerts_admins(client):
    response = client.post(REGISTER_URL, {
        "email": "New.Farmer@Example.com",
        "password": PASSWORD,
        "first_name": "Nadia",
        "last_name": "Trabelsi",
    }, content_type="application/json")

    assert response.status_code == 201
    user = User.objects.get(email="new.farmer@example.com")
    assert user.role == User.ROLE_FARMER
    assert user.status == User.STATUS_PENDING

    alert = AdminNotification.objects.get(type="user_pending_approval")
    assert alert.title == "New Account Approval Required"
    assert alert.severity == "warning"
    assert alert.context["email"] == "new.farmer@example.com"


def test_register_duplicate_email_is_conflict(client, farmer):
    response = client.post(REGISTER_URL, {
        "email": farmer.email.upper(),
        "password": PASSWORD,
    }, content_type="application/json")

    assert response.status_code == 409
    body = response.json()
    assert body["statusCode"] == 409
    assert body["path"] == REGISTER_URL
    assert body["method"] == "POST"


def test_login_sets_cookie_and_returns_tokens(client, farmer):
    response = client.post(LOGIN_URL, {"email": farmer.email, "password": PASSWORD},
                           content_type="application/json")

    assert response.status_code == 200
    body = response.json()
    assert body["access"] and body["refresh"]
    assert body["user"]["role"] == "farmer"
    assert response.cookies["sf_auth"].value == body["access"]

    # the cookie alone authenticates the next request
    me = client.get(ME_URL)
    assert me.status_code == 200
    assert me.json()["email"] == farmer.email


def test_login_refuses_pending_account(client):
    make_user("waiting@smartfarm.test", status=User.STATUS_PENDING)

    response = client.post(LOGIN_URL, {"email": "waiting@smartfarm.test", "password": PASSWORD},
                           content_type="application/json")

    assert response.status_code == 401
    assert response.json()["error"]["detail"] == "Account is not active."


def test_login_wrong_password(client, farmer):
    response = client.post(LOGIN_URL, {"email": farmer.email, "password": "nope-nope-nope"},
                           content_type="application/json")

    assert response.status_code == 401
    assert response.json()["error"]["detail"] == "Invalid email or password."


def test_bearer_header_is_accepted(client, farmer):
    tokens = client.post(LOGIN_URL, {"email": farmer.email, "password": PASSWORD},
                         content_type="application/json").json()
    client.cookies.clear()

    response = client.get(ME_URL, HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")

    assert response.status_code == 200


def test_cookie_wins_over_a_conflicting_bearer_header(client, farmer, admin_user):
    client.cookies["sf_auth"] = issue_tokens(farmer)["access"]

    response = client.get(ME_URL, HTTP_AUTHORIZATION=f"Bearer {issue_tokens(admin_user)['access']}")

    assert response.status_code == 200
    assert response.json()["email"] == farmer.email


def test_me_requires_authentication(client):
    response = client.get(ME_URL)

    assert response.status_code == 401
    assert response.json()["statusCode"] == 401


def test_logout_clears_cookie(client, farmer):
    client.post(LOGIN_URL, {"email": farmer.email, "password": PASSWORD}, content_type="application/json")

    response = client.post("/api/v1/auth/logout/")

    assert response.status_code == 200
    assert response.cookies["sf_auth"].value == ""
    assert client.get(ME_URL).status_code == 401
