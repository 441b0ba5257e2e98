"""Tests for the maintenance CLI in main.py, run against a temporary SQLite file."""

import json

import pytest

from auth.models import Employer
from auth.store import PrincipalStore
from auth.tokens import verify_password
from main import main


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'cli.db'}"


def _create_admin_args(db_url: str, email: str, password: str = "pw123456") -> list[str]:
    return ["--database-url", db_url, "create-admin", "--name", "Root", "--email", email, "--password", password]


def test_init_db_is_idempotent(db_url, capsys):
    assert main(["--database-url", db_url, "init-db"]) == 0
    assert main(["--database-url", db_url, "init-db"]) == 0
    assert "Database ready" in capsys.readouterr().out


def test_create_admin(db_url):
    rc = main(_create_admin_args(db_url, "Root@Example.com"))
    assert rc == 0
    store = PrincipalStore(db_url)
    try:
        admin = store.get_user_by_email("root@example.com")
        assert admin.role == "admin"
        assert verify_password("pw123456", admin.hashed_password)
    finally:
        store.close()


def test_create_admin_rejects_duplicate_and_bad_input(db_url):
    args = ["--database-url", db_url, "create-admin", "--name", "Root", "--password", "pw123456"]
    assert main(args + ["--email", "root@example.com"]) == 0
    assert main(args + ["--email", "root@example.com"]) == 1
    assert main(args + ["--email", "not-an-email"]) == 2
    assert main(_create_admin_args(db_url, "r@example.com", password="x")) == 2


def test_verify_employer(db_url):
    store = PrincipalStore(db_url)
    employer_id = store.create_employer(Employer(company_name="Acme", email="hr@acme.example", hashed_password="x"))

    assert main(["--database-url", db_url, "verify-employer", str(employer_id)]) == 0
    assert store.get_employer(employer_id).is_verified is True
    assert main(["--database-url", db_url, "verify-employer", str(employer_id), "--revoke"]) == 0
    assert store.get_employer(employer_id).is_verified is False
    assert main(["--database-url", db_url, "verify-employer", "999"]) == 1
    store.close()


def test_stats_json(db_url, capsys):
    main(_create_admin_args(db_url, "root@example.com"))
    capsys.readouterr()

    assert main(["--database-url", db_url, "stats", "--json"]) == 0
    stats = json.loads(capsys.readouterr().out)
    assert stats["users"] == 1
    assert stats["admins"] == 1
    assert stats["jobs"] == 0
    assert stats["applications_by_status"] == {}


def test_no_command_prints_help(capsys):
    assert main([]) == 0
    assert "usage" in capsys.readouterr().out.lower()
