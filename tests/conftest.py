import pytest
from fastapi.testclient import TestClient

from copi.api.dependencies import get_identity_resolver, get_optional_user_repository
from copi.main import app
from tests.fakes import FakeIdentityResolver, FakeUserRepository


@pytest.fixture
def repository():
    return FakeUserRepository(
        users=[
            {"id": "u1", "institution": "Stanford", "department": "Genetics"},
            {"id": "u2", "institution": "MIT", "department": "Biology"},
            {"id": "u3", "institution": "Yale", "department": None},
            {"id": "u4", "institution": "MIT", "department": "Chemistry"},
            {"id": "u5", "institution": "mit", "department": "Biology"},
        ]
    )


@pytest.fixture
def caller_id():
    return "u1"


@pytest.fixture
def client(repository, caller_id):
    app.dependency_overrides[get_optional_user_repository] = lambda: repository
    app.dependency_overrides[get_identity_resolver] = lambda: FakeIdentityResolver(caller_id)
    yield TestClient(app)
    app.dependency_overrides.clear()
