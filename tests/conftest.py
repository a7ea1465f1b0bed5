"""
Pytest configuration and shared fixtures for the SafeTatt backend tests.
"""

import os

os.environ["FLASK_ENV"] = "testing"
os.environ["TESTING"] = "True"

import sys  # noqa: E402

import bcrypt  # noqa: E402
import pytest  # noqa: E402
from flask import Flask  # noqa: E402

from main import create_app  # noqa: E402
from safetatt.config import is_production_database  # noqa: E402
from safetatt.extensions import db as database  # noqa: E402
from safetatt.models import (  # noqa: E402
    Base,
    Client,
    Profile,
    Session,
    Studio,
    StudioMember,
)
from safetatt.utils.auth import create_access_token  # noqa: E402


@pytest.fixture(scope="session")
def app():
    """Create and configure a test app instance."""
    app = create_app()
    app.config.update(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret-key-for-testing-only",
            "STUDIO_TIMEZONE": "America/Sao_Paulo",
            "CAMPAIGN_MIN_DELAY_SECONDS": 0,
            "CAMPAIGN_MAX_DELAY_SECONDS": 0,
        }
    )

    db_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if is_production_database(db_uri):
        print(f" DANGER: Database URL appears to be production: {db_uri}")
        print(" Tests aborted to prevent data loss!")
        sys.exit(1)

    print(f"✅ Running tests against: {db_uri}")
    yield app


@pytest.fixture
def db(app: Flask):
    """Fresh schema for every test."""
    with app.app_context():
        if not app.config.get("TESTING"):
            print(" DANGER: Not in testing mode!")
            sys.exit(1)

        Base.metadata.create_all(bind=database.engine)

        yield database

        database.session.remove()
        Base.metadata.drop_all(bind=database.engine)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def studio(db):
    studio = Studio(name="Estúdio Tinta Fina", slug="estudio-tinta-fina")
    db.session.add(studio)
    db.session.commit()
    return studio


def _member(db, studio, email, full_name, role, password=None, is_admin=False):
    password_hash = None
    if password:
        password_hash = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
    profile = Profile(
        email=email,
        full_name=full_name,
        password_hash=password_hash,
        is_admin=is_admin,
    )
    db.session.add(profile)
    db.session.flush()
    if studio is not None:
        db.session.add(StudioMember(studio_id=studio.id, profile_id=profile.id, role=role))
    db.session.commit()
    return profile


@pytest.fixture
def master(db, studio):
    """Studio owner that can log in with segredo123."""
    return _member(db, studio, "mestre@tintafina.com", "Mestre Tatuador", "MASTER", "segredo123")


@pytest.fixture
def artist(db, studio):
    return _member(db, studio, "artista@tintafina.com", "Ana Artista", "ARTIST", "artista123")


@pytest.fixture
def other_artist(db, studio):
    return _member(db, studio, "bruno@tintafina.com", "Bruno Traço", "ARTIST")


@pytest.fixture
def admin(db):
    return _member(db, None, "admin@safetatt.com", "Admin", None, "admin123", is_admin=True)


@pytest.fixture
def sample_client(db, studio):
    client = Client(
        studio_id=studio.id,
        full_name="Maria Silva",
        first_name="Maria",
        last_name="Silva",
        email="maria@example.com",
        phone="(11) 99999-0000",
        cpf="123.456.789-00",
    )
    db.session.add(client)
    db.session.commit()
    return client


@pytest.fixture
def sample_session(db, studio, artist, sample_client):
    session = Session(
        studio_id=studio.id,
        client_id=sample_client.id,
        professional_id=artist.id,
        status="pending",
        service_type="tattoo",
        title="Fechamento de braço",
        price=500,
    )
    db.session.add(session)
    db.session.commit()
    return session


@pytest.fixture
def auth_headers(master):
    """Bearer headers of the studio MASTER."""
    return {"Authorization": f"Bearer {create_access_token(master)}"}


@pytest.fixture
def artist_headers(artist):
    return {"Authorization": f"Bearer {create_access_token(artist)}"}


@pytest.fixture
def admin_headers(admin):
    return {"Authorization": f"Bearer {create_access_token(admin)}"}


@pytest.fixture
def rival_studio(db):
    """A second tenant; its staff must never reach the first studio's data."""
    studio = Studio(name="Agulha Norte", slug="agulha-norte")
    db.session.add(studio)
    db.session.commit()
    return studio


@pytest.fixture
def rival_headers(db, rival_studio):
    owner = _member(db, rival_studio, "dono@agulhanorte.com", "Dono Agulha", "MASTER", "agulha123")
    return {"Authorization": f"Bearer {create_access_token(owner)}"}


@pytest.fixture
def receptionist_headers(db, studio):
    profile = _member(db, studio, "recepcao@tintafina.com", "Rita Recepção", "RECEPTIONIST")
    return {"Authorization": f"Bearer {create_access_token(profile)}"}
