from dataclasses import replace
from typing import Any, Callable, Dict

import pytest
from fastapi.testclient import TestClient

from recipe_platform.api.server import create_app
from recipe_platform.config import Config, load_config
from recipe_platform.db import InMemoryStore
from recipe_platform.images.client import InMemoryImageStore

API = "/api/v1"

INGREDIENTS = '[{"name": "flour", "quantity": "200", "unit": "g"}, {"name": "egg", "quantity": 2, "unit": "pcs"}]'


@pytest.fixture
def cfg(tmp_path) -> Config:
    return replace(
        load_config(),
        MONGODB_URI="",
        API_PREFIX=API,
        ACCESS_TOKEN_SECRET="test-access-secret",
        REFRESH_TOKEN_SECRET="test-refresh-secret",
        AUTH_COOKIE_SECURE=False,
        AUTH_COOKIE_SAMESITE="lax",
        AUTH_COOKIE_DOMAIN=None,
        CLOUDINARY_CLOUD_NAME="",
        UPLOAD_TMP_DIR=str(tmp_path / "uploads"),
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def images() -> InMemoryImageStore:
    return InMemoryImageStore()


@pytest.fixture
def app(cfg, store, images):
    return create_app(cfg, store=store, images=images)


@pytest.fixture
def make_client(app) -> Callable[[], TestClient]:
    """One TestClient per simulated browser, so cookie jars don't mix."""

    def _make() -> TestClient:
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()


def register(client: TestClient, username: str, email: str | None = None, password: str = "secret1", **extra: Any):
    body = {
        "username": username,
        "email": email or f"{username}@example.com",
        "fullName": extra.pop("fullName", username.title()),
        "password": password,
    }
    body.update(extra)
    return client.post(f"{API}/auth/register", json=body)


def login(client: TestClient, identifier: str, password: str = "secret1"):
    return client.post(f"{API}/auth/login", json={"identifier": identifier, "password": password})


def signed_in(client: TestClient, username: str) -> Dict[str, Any]:
    """Register + login; returns {"token", "user", "headers"}."""
    assert register(client, username).status_code == 201
    res = login(client, username)
    assert res.status_code == 200
    data = res.json()["data"]
    return {
        "token": data["accessToken"],
        "user": data["user"],
        "headers": {"Authorization": f"Bearer {data['accessToken']}"},
    }


def create_recipe(client: TestClient, headers: Dict[str, str], name: str = "Pancakes", **fields: Any):
    data = {"name": name, "instructions": "Mix and fry.", "ingredients": INGREDIENTS}
    data.update(fields)
    files = {"thumbnailImage": ("thumb.png", b"\x89PNG fake", "image/png")}
    return client.post(f"{API}/recipes/create", data=data, files=files, headers=headers)
