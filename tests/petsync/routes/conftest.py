import pytest
from fastapi.testclient import TestClient

from petsync.auth import jwt_handler
from petsync.database import get_db
from petsync.main import app


@pytest.fixture
def client(session_factory, monkeypatch: pytest.MonkeyPatch):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    for module in ('appointment_routes', 'audit_routes'):
        monkeypatch.setattr(f'petsync.routes.{module}.ensure_database_ready', lambda: None)
    monkeypatch.setattr('petsync.main.ensure_schema', lambda: None)

    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _auth_headers(user) -> dict[str, str]:
        token = jwt_handler.create_access_token(subject=str(user.id), extra_claims={'role': user.role})
        return {'Authorization': f'Bearer {token}'}

    return _auth_headers
