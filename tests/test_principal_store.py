"""Unit tests for auth/store.py -- PrincipalStore.

Covers:
- Email normalization and cross-collection email_exists()
- Cross-table email uniqueness enforced by the database
- Substring filters treat % and _ literally
- find_by_email() checks users before employers
- get_principal() dispatches on kind
- update_user() whitelist, list filters, admin counting
- Reset token lifecycle: set, find (unexpired only), cleared by set_password()
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import Employer, User
from auth.store import to_principal


def _user(email: str = "ada@example.com", role: str = "candidate") -> User:
    return User(name="Ada", email=email, role=role, hashed_password="hash")


def _employer(email: str = "hr@acme.example", **kwargs) -> Employer:
    return Employer(company_name="Acme Corp", email=email, hashed_password="hash", **kwargs)


def test_email_normalized_and_shared_across_collections(principal_store):
    principal_store.create_user(_user(email="  Ada@Example.COM "))
    assert principal_store.get_user_by_email("ada@example.com") is not None
    assert principal_store.email_exists("ADA@example.com")

    principal_store.create_employer(_employer())
    assert principal_store.email_exists("hr@acme.example")
    assert not principal_store.email_exists("nobody@example.com")


def test_duplicate_email_in_same_table_raises(principal_store):
    principal_store.create_user(_user())
    with pytest.raises(IntegrityError):
        principal_store.create_user(_user())


def test_duplicate_email_across_tables_raises(principal_store):
    # No email_exists() check here: the database itself must refuse the second owner.
    principal_store.create_user(_user(email="shared@example.com"))
    with pytest.raises(IntegrityError):
        principal_store.create_employer(_employer(email="Shared@Example.com"))
    assert principal_store.get_employer_by_email("shared@example.com") is None

    principal_store.create_employer(_employer())
    with pytest.raises(IntegrityError):
        principal_store.create_user(_user(email="hr@acme.example"))
    assert principal_store.get_user_by_email("hr@acme.example") is None


def test_deleted_account_frees_email(principal_store):
    user_id = principal_store.create_user(_user())
    assert principal_store.delete_user(user_id)
    assert not principal_store.email_exists("ada@example.com")
    assert principal_store.create_employer(_employer(email="ada@example.com"))


def test_find_by_email_returns_either_kind(principal_store):
    principal_store.create_user(_user())
    principal_store.create_employer(_employer())
    assert isinstance(principal_store.find_by_email("ada@example.com"), User)
    assert isinstance(principal_store.find_by_email("hr@acme.example"), Employer)
    assert principal_store.find_by_email("nobody@example.com") is None


def test_get_principal_dispatches_on_kind(principal_store):
    user_id = principal_store.create_user(_user())
    employer_id = principal_store.create_employer(_employer())

    user_principal = principal_store.get_principal("user", user_id)
    employer_principal = principal_store.get_principal("employer", employer_id)

    assert user_principal.kind == "user"
    assert user_principal.role == "candidate"
    assert user_principal.is_verified is None
    assert employer_principal.kind == "employer"
    assert employer_principal.role == "employer"
    assert employer_principal.is_verified is False
    assert principal_store.get_principal("robot", user_id) is None
    assert principal_store.get_principal("user", 9999) is None


def test_new_employer_is_unverified(principal_store):
    employer = principal_store.get_employer(principal_store.create_employer(_employer()))
    assert employer.is_verified is False
    assert employer.role == "employer"
    assert to_principal(employer).is_verified is False


def test_update_user_fields_and_skills(principal_store):
    user_id = principal_store.create_user(_user())
    assert principal_store.update_user(user_id, professional_title="Engineer", skills=["python", "sql"])
    user = principal_store.get_user(user_id)
    assert user.professional_title == "Engineer"
    assert user.skills == ["python", "sql"]


def test_update_user_rejects_unknown_fields(principal_store):
    user_id = principal_store.create_user(_user())
    with pytest.raises(ValueError):
        principal_store.update_user(user_id, hashed_password="evil")


def test_update_missing_user_returns_false(principal_store):
    assert principal_store.update_user(404, name="Nobody") is False


def test_list_users_filters(principal_store):
    principal_store.create_user(_user("a@example.com"))
    inactive_id = principal_store.create_user(_user("b@example.com"))
    principal_store.create_user(_user("c@example.com", role="admin"))
    principal_store.update_user(inactive_id, is_active=False)

    assert len(principal_store.list_users()) == 3
    assert [u.email for u in principal_store.list_users(role="admin")] == ["c@example.com"]
    assert [u.email for u in principal_store.list_users(is_active=False)] == ["b@example.com"]
    assert principal_store.count_users(role="candidate") == 2
    assert principal_store.count_active_admins() == 1


def test_list_employers_filters(principal_store):
    principal_store.create_employer(_employer("a@acme.example", location="Berlin, DE", industry="Software"))
    globex = Employer(company_name="Globex", email="b@globex.example", hashed_password="h", location="Paris")
    globex.is_verified = True
    principal_store.create_employer(globex)

    assert [e.company_name for e in principal_store.list_employers(company_name="acme")] == ["Acme Corp"]
    assert [e.company_name for e in principal_store.list_employers(location="berlin")] == ["Acme Corp"]
    assert [e.company_name for e in principal_store.list_employers(industry="Software")] == ["Acme Corp"]
    assert [e.company_name for e in principal_store.list_employers(is_verified=True)] == ["Globex"]
    assert principal_store.count_employers(is_verified=False) == 1


def test_list_employers_treats_wildcards_literally(principal_store):
    principal_store.create_employer(_employer("a@acme.example", location="Berlin"))
    principal_store.create_employer(Employer(company_name="100% Remote", email="b@remote.example", hashed_password="h"))

    def names(**kwargs) -> list[str]:
        return [e.company_name for e in principal_store.list_employers(**kwargs)]

    assert names(company_name="%") == ["100% Remote"]
    assert names(company_name="_") == []
    assert names(location="%") == []


def test_reset_token_lifecycle(principal_store):
    user_id = principal_store.create_user(_user())
    expires = (datetime.now(timezone.utc) + timedelta(hours=1)).isoformat()
    principal_store.set_reset_token("user", user_id, "a" * 64, expires)

    found = principal_store.find_by_reset_token("a" * 64)
    assert found is not None and found.id == user_id

    principal_store.set_password("user", user_id, "new-hash")
    assert principal_store.find_by_reset_token("a" * 64) is None
    assert principal_store.get_user(user_id).hashed_password == "new-hash"


def test_expired_reset_token_not_found(principal_store):
    employer_id = principal_store.create_employer(_employer())
    expired = (datetime.now(timezone.utc) - timedelta(minutes=1)).isoformat()
    principal_store.set_reset_token("employer", employer_id, "b" * 64, expired)
    assert principal_store.find_by_reset_token("b" * 64) is None


def test_delete_employer(principal_store):
    employer_id = principal_store.create_employer(_employer())
    assert principal_store.delete_employer(employer_id)
    assert principal_store.get_employer(employer_id) is None
    assert principal_store.delete_employer(employer_id) is False
    assert not principal_store.email_exists("hr@acme.example")
