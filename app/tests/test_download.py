"""
Secure download route tests
"""

import io
import zipfile
from unittest.mock import patch

import pytest

from app.models.analytics import AnalyticsEvent
from app.models.template import Template
from app.services.download_service import ArchiveBuildError
from app.services.token_service import TokenService, token_service, MS_PER_DAY, _now_ms
from config import settings
from conftest import auth_headers, create_purchase, create_template, create_user


def download(client, purchase_id, token=None):
    params = {"token": token} if token is not None else {}
    return client.get(f"/api/download/{purchase_id}", params=params)


def stale_token(purchase_id, days_old):
    issued_at = _now_ms() - days_old * MS_PER_DAY
    return TokenService(
        secret=settings.TOKEN_SIGNING_SECRET, clock=lambda: issued_at
    ).issue_download_token(purchase_id)


@pytest.fixture
def purchase(db):
    return create_purchase(db, create_template(db))


class TestDownloadArchive:
    """GET /api/download/{purchase_id}"""

    def test_happy_path_streams_zip(self, client, db, purchase):
        response = download(client, purchase.id, token_service.issue_download_token(purchase.id))

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/zip"
        assert response.headers["content-disposition"] == 'attachment; filename="beach-resort-landing-template.zip"'

        archive = zipfile.ZipFile(io.BytesIO(response.content))
        assert sorted(archive.namelist()) == sorted(
            ["README.md", "index.html", "styles.css", "script.js", "LICENSE"]
        )
        assert archive.read("index.html") == b"<h1>A</h1>"

    def test_download_side_effects(self, client, db, purchase):
        download(client, purchase.id, token_service.issue_download_token(purchase.id))

        db.expire_all()
        assert db.get(Template, 42).downloads == 1

        event = db.query(AnalyticsEvent).one()
        assert event.event_type == "download"
        assert event.user_id == "u1"
        assert event.template_id == 42
        assert event.event_data["purchaseId"] == purchase.id

    def test_saas_template_includes_package_json(self, client, db):
        purchase = create_purchase(db, create_template(db, category="saas"))

        response = download(client, purchase.id, token_service.issue_download_token(purchase.id))

        assert "package.json" in zipfile.ZipFile(io.BytesIO(response.content)).namelist()

    def test_expired_token(self, client, db, purchase):
        response = download(client, purchase.id, stale_token(purchase.id, days_old=8))

        assert response.status_code == 401
        assert response.json() == {
            "error": "Invalid or expired download token",
            "details": "Token expired"
        }

        db.expire_all()
        assert db.get(Template, 42).downloads == 0

    def test_token_for_another_purchase(self, client, db, purchase):
        response = download(client, purchase.id, token_service.issue_download_token(purchase.id + 1))

        assert response.status_code == 401
        assert response.json()["details"] == "Invalid signature"

    def test_missing_token(self, client, db, purchase):
        response = download(client, purchase.id)

        assert response.status_code == 401
        assert response.json() == {"error": "Download token required"}

    @pytest.mark.parametrize("purchase_id", ["abc", "0", "-3", "1.5", "%C2%B2", "%D9%A3"])
    def test_invalid_purchase_id(self, client, db, purchase_id):
        response = download(client, purchase_id, "whatever")

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid purchase ID"}

    def test_unknown_purchase(self, client, db):
        response = download(client, 999, token_service.issue_download_token(999))

        assert response.status_code == 404
        assert response.json() == {"error": "Purchase not found"}

    def test_build_failure_returns_500(self, client, db, purchase):
        with patch(
            "app.routes.download.build_template_archive",
            side_effect=ArchiveBuildError("boom")
        ):
            response = download(client, purchase.id, token_service.issue_download_token(purchase.id))

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to generate download"}


class TestGenerateLink:
    """POST /api/download/generate-link/{purchase_id}"""

    def test_owner_gets_working_link(self, client, db, purchase):
        owner = create_user(db, "u1")

        response = client.post(f"/api/download/generate-link/{purchase.id}", headers=auth_headers(owner))

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["expiresIn"] == "7 days"
        assert data["downloadUrl"].startswith(f"https://runyourtrip.test/api/download/{purchase.id}?token=")

        token = data["downloadUrl"].split("token=", 1)[1]
        assert download(client, purchase.id, token).status_code == 200

    def test_wrong_owner_is_forbidden(self, client, db, purchase):
        intruder = create_user(db, "u2")

        response = client.post(f"/api/download/generate-link/{purchase.id}", headers=auth_headers(intruder))

        assert response.status_code == 403
        assert response.json() == {"error": "Access denied"}

    def test_requires_authentication(self, client, db, purchase):
        response = client.post(f"/api/download/generate-link/{purchase.id}")
        assert response.status_code == 401

    def test_unknown_purchase(self, client, db):
        owner = create_user(db, "u1")

        response = client.post("/api/download/generate-link/999", headers=auth_headers(owner))

        assert response.status_code == 404
        assert response.json() == {"error": "Purchase not found"}

    def test_invalid_purchase_id(self, client, db):
        owner = create_user(db, "u1")

        response = client.post("/api/download/generate-link/nope", headers=auth_headers(owner))

        assert response.status_code == 400

    def test_unicode_digit_purchase_id(self, client, db):
        owner = create_user(db, "u1")

        response = client.post("/api/download/generate-link/%C2%B2", headers=auth_headers(owner))

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid purchase ID"}
