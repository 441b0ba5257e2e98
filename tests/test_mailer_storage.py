"""Unit tests for core/mailer.py and core/storage.py.

Network and SMTP are never touched: send_mail() is exercised with no host
configured and with a fake SMTP class; RemoteStorage gets a fake session.post.
"""

import smtplib
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import requests

from core import mailer, storage
from core.mailer import Mail, build_message, password_reset_mail, send_mail, welcome_mail
from core.storage import (
    DOCUMENT_TYPES,
    IMAGE_TYPES,
    FileTooLarge,
    LocalStorage,
    RemoteStorage,
    StorageError,
    UnsupportedFileType,
    validate_upload,
)


def _smtp_settings(**overrides):
    values = {
        "smtp_host": "smtp.example.com",
        "smtp_port": 587,
        "smtp_use_tls": True,
        "smtp_username": "",
        "smtp_password": "",
        "mail_from": "noreply@jobboard.example",
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class TestMailer:
    def test_skips_without_host(self):
        assert send_mail("ada@example.com", welcome_mail("Ada")) is False

    def test_reset_mail_carries_link(self):
        mail = password_reset_mail("https://jobs.example/reset-password?token=abc")
        assert "https://jobs.example/reset-password?token=abc" in mail.text
        assert "token=abc" in mail.html

    def test_welcome_mail_escapes_name_in_html(self):
        mail = welcome_mail("<script>")
        assert "<script>" not in mail.html
        assert "&lt;script&gt;" in mail.html

    def test_build_message_has_both_parts(self):
        msg = build_message("ada@example.com", Mail(subject="Hi", text="plain", html="<p>rich</p>"))
        assert msg["To"] == "ada@example.com"
        assert msg["Subject"] == "Hi"
        assert msg.is_multipart()

    def test_sends_through_smtp(self, monkeypatch):
        settings = _smtp_settings(smtp_username="bot", smtp_password="pw")
        monkeypatch.setattr(mailer, "get_settings", lambda: settings)
        smtp = MagicMock()
        monkeypatch.setattr(mailer.smtplib, "SMTP", MagicMock(return_value=smtp))
        smtp.__enter__.return_value = smtp

        assert send_mail("ada@example.com", welcome_mail("Ada")) is True
        smtp.starttls.assert_called_once()
        smtp.login.assert_called_once_with("bot", "pw")
        smtp.send_message.assert_called_once()

    def test_smtp_failure_is_logged_not_raised(self, monkeypatch):
        monkeypatch.setattr(mailer, "get_settings", lambda: _smtp_settings())
        monkeypatch.setattr(mailer.smtplib, "SMTP", MagicMock(side_effect=smtplib.SMTPConnectError(421, "busy")))
        assert send_mail("ada@example.com", welcome_mail("Ada")) is False


class TestValidateUpload:
    def test_accepts_known_types(self):
        assert validate_upload("image/png", 10, IMAGE_TYPES, 100) == ".png"
        assert validate_upload("IMAGE/JPEG", 10, IMAGE_TYPES, 100) == ".jpg"
        assert validate_upload("application/pdf", 10, DOCUMENT_TYPES, 100) == ".pdf"

    def test_rejects_unknown_type(self):
        with pytest.raises(UnsupportedFileType) as exc_info:
            validate_upload("image/gif", 10, IMAGE_TYPES, 100)
        assert exc_info.value.code == "unsupported_file_type"
        with pytest.raises(UnsupportedFileType):
            validate_upload(None, 10, IMAGE_TYPES, 100)

    def test_rejects_oversized(self):
        with pytest.raises(FileTooLarge) as exc_info:
            validate_upload("image/png", 101, IMAGE_TYPES, 100)
        assert exc_info.value.code == "file_too_large"


class TestLocalStorage:
    def test_save_writes_unique_files(self, tmp_path):
        backend = LocalStorage(str(tmp_path), "/media/")
        first = backend.save("resumes", b"one", ".pdf")
        second = backend.save("resumes", b"two", ".pdf")

        assert first != second
        assert first.startswith("/media/resumes/")
        assert (tmp_path / first.removeprefix("/media/")).read_bytes() == b"one"

    def test_write_failure_becomes_storage_error(self, tmp_path):
        blocker = tmp_path / "blocked"
        blocker.write_text("not a directory")
        backend = LocalStorage(str(blocker))
        with pytest.raises(StorageError) as exc_info:
            backend.save("avatars", b"x", ".png")
        assert exc_info.value.code == "upload_failed"


class TestRemoteStorage:
    def test_returns_secure_url(self, monkeypatch):
        response = MagicMock()
        response.json.return_value = {"secure_url": "https://cdn.example/a.png"}
        post = MagicMock(return_value=response)
        monkeypatch.setattr(storage._session, "post", post)

        url = RemoteStorage("https://upload.example/v1", preset="jobboard").save("avatars", b"img", ".png")
        assert url == "https://cdn.example/a.png"
        _, kwargs = post.call_args
        assert kwargs["data"] == {"folder": "avatars", "upload_preset": "jobboard"}
        assert kwargs["timeout"] == 30

    def test_http_error_becomes_storage_error(self, monkeypatch):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("502")
        monkeypatch.setattr(storage._session, "post", MagicMock(return_value=response))
        with pytest.raises(StorageError):
            RemoteStorage("https://upload.example/v1").save("avatars", b"img", ".png")

    def test_missing_url_becomes_storage_error(self, monkeypatch):
        response = MagicMock()
        response.json.return_value = {}
        monkeypatch.setattr(storage._session, "post", MagicMock(return_value=response))
        with pytest.raises(StorageError):
            RemoteStorage("https://upload.example/v1").save("avatars", b"img", ".png")


def test_get_storage_remote_requires_url():
    settings = SimpleNamespace(storage_backend="remote", storage_remote_url="", storage_remote_preset="")
    with pytest.raises(ValueError):
        storage.get_storage(settings)
