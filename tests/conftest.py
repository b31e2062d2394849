import pytest
from httpx import ASGITransport, AsyncClient

from media_api.config import settings
from tests.factories import make_image_bytes

ADMIN_TOKEN = "test-admin-token"


# ── Patch settings so every test writes into its own directory ──────────────
@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    directory = tmp_path / "uploads" / "images"
    monkeypatch.setattr(settings, "upload_dir", str(directory))
    monkeypatch.setattr(settings, "admin_api_token", ADMIN_TOKEN)
    return directory


@pytest.fixture
def png_bytes():
    return make_image_bytes("PNG")


@pytest.fixture
def jpeg_bytes():
    return make_image_bytes("JPEG", (120, 80))


@pytest.fixture
def app():
    """Application wired exactly like production, pointed at the temp upload dir."""
    from media_api.main import create_app

    return create_app(settings)


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}
