import datetime
import json

import jwt
import pytest

from safetatt.models import Profile
from safetatt.services.permissions import PERMISSION_FLAGS, get_permissions, has_permission
from safetatt.utils.auth import create_invite_token


@pytest.mark.auth
class TestAuthLogin:
    """Test suite for staff login."""

    def test_login_success(self, client, master):
        response = client.post(
            "/api/auth/login",
            data=json.dumps({"email": "Mestre@TintaFina.com", "password": "segredo123"}),
            content_type="application/json",
        )

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data["status"] == "success"
        assert "token" in data
        assert data["user"]["email"] == "mestre@tintafina.com"

    def test_login_wrong_password(self, client, master):
        response = client.post(
            "/api/auth/login",
            data=json.dumps({"email": "mestre@tintafina.com", "password": "errada"}),
            content_type="application/json",
        )

        assert response.status_code == 401
        assert json.loads(response.data)["status"] == "error"

    def test_login_missing_fields(self, client, db):
        response = client.post(
            "/api/auth/login",
            data=json.dumps({"email": "mestre@tintafina.com"}),
            content_type="application/json",
        )

        assert response.status_code == 400

    def test_invited_profile_cannot_log_in_yet(self, client, db):
        db.session.add(Profile(email="novo@tintafina.com", full_name="Novo"))
        db.session.commit()

        response = client.post(
            "/api/auth/login",
            json={"email": "novo@tintafina.com", "password": "qualquer"},
        )

        assert response.status_code == 401


@pytest.mark.auth
class TestBearerToken:
    def test_missing_token(self, client, db):
        response = client.get("/api/auth/me")

        assert response.status_code == 401
        assert json.loads(response.data)["message"] == "Missing bearer token"

    def test_garbage_token(self, client, db):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401

    def test_expired_token(self, app, client, master):
        token = jwt.encode(
            {
                "user_id": master.id,
                "email": master.email,
                "exp": datetime.datetime.now(datetime.timezone.utc)
                - datetime.timedelta(minutes=1),
            },
            app.config["SECRET_KEY"],
            algorithm="HS256",
        )

        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert json.loads(response.data)["message"] == "Token expired"

    def test_invite_token_is_not_a_session(self, client, master):
        token = create_invite_token(master)

        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_me_lists_studios(self, client, master, auth_headers):
        response = client.get("/api/auth/me", headers=auth_headers)

        assert response.status_code == 200
        studios = json.loads(response.data)["studios"]
        assert studios[0]["name"] == "Estúdio Tinta Fina"
        assert studios[0]["role"] == "MASTER"


@pytest.mark.auth
class TestAcceptInvite:
    def test_sets_password_and_allows_login(self, client, db):
        profile = Profile(email="novo@tintafina.com", full_name="Novo")
        db.session.add(profile)
        db.session.commit()
        token = create_invite_token(profile)

        accepted = client.post(
            "/api/auth/accept-invite", json={"token": token, "password": "tatuagem"}
        )
        login = client.post(
            "/api/auth/login", json={"email": "novo@tintafina.com", "password": "tatuagem"}
        )

        assert accepted.status_code == 200
        assert login.status_code == 200

    def test_short_password(self, client, master):
        response = client.post(
            "/api/auth/accept-invite",
            json={"token": create_invite_token(master), "password": "123"},
        )

        assert response.status_code == 400

    def test_access_token_is_not_an_invitation(self, client, master, auth_headers):
        token = auth_headers["Authorization"].split(" ", 1)[1]

        response = client.post(
            "/api/auth/accept-invite", json={"token": token, "password": "outrasenha"}
        )

        assert response.status_code == 401


@pytest.mark.auth
class TestPermissions:
    def test_master_has_everything(self):
        assert all(get_permissions("MASTER").values())

    def test_artist_sees_only_own_work(self):
        flags = get_permissions("ARTIST")

        assert flags["can_create_session"] is True
        assert flags["can_view_financials"] is False
        assert flags["can_view_all_agenda"] is False

    def test_receptionist(self):
        assert has_permission("RECEPTIONIST", "can_access_marketing")
        assert not has_permission("RECEPTIONIST", "can_view_financials")

    def test_unknown_role_gets_nothing(self):
        assert get_permissions(None) == {flag: False for flag in PERMISSION_FLAGS}

    def test_permissions_endpoint(self, client, studio, artist_headers):
        response = client.get(f"/api/auth/permissions/{studio.id}", headers=artist_headers)

        data = json.loads(response.data)
        assert response.status_code == 200
        assert data["role"] == "ARTIST"
        assert data["permissions"]["can_access_settings"] is False

    def test_non_member(self, client, studio, admin_headers):
        response = client.get(f"/api/auth/permissions/{studio.id}", headers=admin_headers)

        assert json.loads(response.data)["role"] is None
