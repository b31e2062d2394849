"""HTTP tests for the upload and delete endpoints."""
from pathlib import Path
from unittest.mock import patch

from PIL import Image

from media_api.config import settings
from tests.factories import make_image_bytes, stored_files

UPLOAD_URL = "/api/upload/images"


def _files(*items):
    return [("images", item) for item in items]


class TestUploadEndpoint:
    async def test_uploads_single_image(self, client, upload_dir, png_bytes):
        resp = await client.post(UPLOAD_URL, files=_files(("fachada.png", png_bytes, "image/png")))

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["message"] == "1 image(s) uploaded successfully"
        [image] = body["files"]
        assert image["originalName"] == "fachada.png"
        assert image["size"] == len(png_bytes)
        assert image["url"] == f"/uploads/images/{image['filename']}"
        assert image["webp"]["url"] == f"/uploads/images/{image['webp']['filename']}"
        assert (upload_dir / image["filename"]).exists()
        assert (upload_dir / image["webp"]["filename"]).exists()

    async def test_uploads_every_supported_format(self, client, upload_dir):
        resp = await client.post(
            UPLOAD_URL,
            files=_files(
                ("a.jpg", make_image_bytes("JPEG"), "image/jpeg"),
                ("b.png", make_image_bytes("PNG"), "image/png"),
                ("c.gif", make_image_bytes("GIF"), "image/gif"),
                ("d.webp", make_image_bytes("WEBP"), "image/webp"),
            ),
        )

        assert resp.status_code == 200
        files = resp.json()["files"]
        assert len(files) == 4
        assert len({f["filename"] for f in files}) == 4

    async def test_no_files(self, client):
        resp = await client.post(UPLOAD_URL, files={"other": ("notes.txt", b"hi", "text/plain")})

        assert resp.status_code == 400
        body = resp.json()
        assert body == {"success": False, "message": "No images uploaded", "error": "NoFilesProvided"}

    async def test_disguised_file_is_rejected_and_removed(self, client, upload_dir):
        resp = await client.post(
            UPLOAD_URL, files=_files(("casa.jpg", b"MZ\x90\x00 definitely an exe", "image/jpeg"))
        )

        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert "magic bytes" in body["message"]
        assert "InvalidSignature" in body["error"]
        assert stored_files(upload_dir) == []

    async def test_batch_rejected_when_second_file_is_corrupt(self, client, upload_dir, png_bytes, jpeg_bytes):
        resp = await client.post(
            UPLOAD_URL,
            files=_files(
                ("one.png", png_bytes, "image/png"),
                ("two.gif", b"GIF8" + b"\x00" * 64, "image/gif"),
                ("three.jpg", jpeg_bytes, "image/jpeg"),
            ),
        )

        assert resp.status_code == 400
        assert "InvalidImage" in resp.json()["error"]
        assert stored_files(upload_dir) == []

    async def test_disallowed_declared_type(self, client, upload_dir):
        resp = await client.post(UPLOAD_URL, files=_files(("x.svg", b"<svg/>", "image/svg+xml")))

        assert resp.status_code == 400
        assert "UnsupportedMediaType" in resp.json()["error"]
        assert stored_files(upload_dir) == []

    async def test_more_than_ten_files(self, client, upload_dir, png_bytes):
        resp = await client.post(
            UPLOAD_URL, files=_files(*[(f"{i}.png", png_bytes, "image/png") for i in range(11)])
        )

        assert resp.status_code == 400
        assert resp.json()["error"] == "TooManyFiles"
        assert stored_files(upload_dir) == []

    async def test_response_has_request_id(self, client, png_bytes):
        resp = await client.post(
            UPLOAD_URL,
            files=_files(("a.png", png_bytes, "image/png")),
            headers={"x-request-id": "req-123"},
        )
        assert resp.headers["X-Request-ID"] == "req-123"

    async def test_rate_limited_after_ten_attempts(self, client):
        for _ in range(10):
            resp = await client.post(UPLOAD_URL, files={"other": ("a.txt", b"x", "text/plain")})
            assert resp.status_code == 400

        resp = await client.post(UPLOAD_URL, files={"other": ("a.txt", b"x", "text/plain")})
        assert resp.status_code == 429
        assert resp.json()["error"] == "RateLimited"
        assert int(resp.headers["Retry-After"]) >= 1

    async def test_deletes_count_against_the_upload_budget(self, client):
        for _ in range(10):
            resp = await client.delete(f"{UPLOAD_URL}/not-ours.png")
            assert resp.status_code == 400

        resp = await client.post(UPLOAD_URL, files={"other": ("a.txt", b"x", "text/plain")})
        assert resp.status_code == 429

        resp = await client.delete(f"{UPLOAD_URL}/not-ours.png")
        assert resp.status_code == 429

    async def test_upload_directory_cannot_be_created(self, client, tmp_path, monkeypatch, png_bytes):
        blocker = tmp_path / "blocker"
        blocker.write_bytes(b"not a directory")
        monkeypatch.setattr(settings, "upload_dir", str(blocker / "images"))

        resp = await client.post(UPLOAD_URL, files=_files(("a.png", png_bytes, "image/png")))

        assert resp.status_code == 500
        assert resp.json() == {
            "success": False,
            "message": "Failed to create upload directory",
            "error": "DirectoryCreateFailed",
        }

    async def test_configured_pixel_cap_rejects_large_images(self, client, upload_dir, monkeypatch):
        monkeypatch.setattr(settings, "max_image_pixels", 50_000)

        resp = await client.post(
            UPLOAD_URL, files=_files(("big.png", make_image_bytes("PNG", (300, 300)), "image/png"))
        )

        assert resp.status_code == 400
        assert "InvalidImage" in resp.json()["error"]
        assert stored_files(upload_dir) == []


class TestDeleteEndpoint:
    async def test_invalid_filename(self, client):
        resp = await client.delete(f"{UPLOAD_URL}/not-ours.png")

        assert resp.status_code == 400
        assert resp.json() == {
            "success": False,
            "message": "Invalid filename format",
            "error": "InvalidFilename",
        }

    async def test_traversal_attempt_is_rejected(self, client, tmp_path):
        secret = tmp_path / "passed.png"
        secret.write_bytes(b"secret")

        resp = await client.delete(f"{UPLOAD_URL}/..%2F..%2Fpassed.png")

        assert resp.status_code == 400
        assert resp.json()["success"] is False
        assert secret.exists()

    async def test_not_found(self, client, upload_dir):
        upload_dir.mkdir(parents=True)
        resp = await client.delete(f"{UPLOAD_URL}/image-1700000000000-1.png")

        assert resp.status_code == 404
        assert resp.json()["error"] == "NotFound"

    async def test_unlink_failure_is_a_server_error(self, client, upload_dir):
        upload_dir.mkdir(parents=True)
        original = upload_dir / "image-1-2.png"
        original.write_bytes(make_image_bytes("PNG"))

        with patch.object(Path, "unlink", side_effect=PermissionError("denied")):
            resp = await client.delete(f"{UPLOAD_URL}/image-1-2.png")

        assert resp.status_code == 500
        assert resp.json() == {
            "success": False,
            "message": "Failed to delete image",
            "error": "DeleteFailed",
        }
        assert original.exists()

    async def test_delete_without_derivative(self, client, upload_dir):
        upload_dir.mkdir(parents=True)
        (upload_dir / "image-1700000000000-99.gif").write_bytes(make_image_bytes("GIF"))

        resp = await client.delete(f"{UPLOAD_URL}/image-1700000000000-99.gif")

        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Image deleted successfully"}
        assert stored_files(upload_dir) == []

    async def test_round_trip_large_jpeg(self, client, upload_dir):
        original = make_image_bytes("JPEG", (3000, 2000))
        resp = await client.post(UPLOAD_URL, files=_files(("obra.jpg", original, "image/jpeg")))
        assert resp.status_code == 200
        [image] = resp.json()["files"]

        with Image.open(upload_dir / image["webp"]["filename"]) as webp:
            assert webp.format == "WEBP"
            assert webp.width <= 1920
            assert abs(webp.width / webp.height - 1.5) < 0.01

        resp = await client.delete(f"{UPLOAD_URL}/{image['filename']}")

        assert resp.status_code == 200
        assert stored_files(upload_dir) == []


class TestStaticServing:
    async def test_uploaded_image_is_served(self, client, png_bytes):
        resp = await client.post(UPLOAD_URL, files=_files(("a.png", png_bytes, "image/png")))
        url = resp.json()["files"][0]["url"]

        served = await client.get(url)

        assert served.status_code == 200
        assert served.headers["content-type"].startswith("image/")
        assert served.content == png_bytes
