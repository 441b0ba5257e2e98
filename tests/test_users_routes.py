"""Integration tests for /api/v1/users -- profiles, suspension and deletion."""

from conftest import bearer


def test_self_profile_read_and_update(api):
    token, user_id = api.register_candidate(name="Ada")
    resp = api.client.put(
        f"/api/v1/users/{user_id}",
        json={"professional_title": "Data Engineer", "skills": ["python", "sql"]},
        headers=bearer(token),
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["skills"] == ["python", "sql"]

    got = api.client.get(f"/api/v1/users/{user_id}", headers=bearer(token)).json()["data"]
    assert got["professional_title"] == "Data Engineer"
    assert got["name"] == "Ada"


def test_null_on_required_fields_is_ignored(api):
    token, user_id = api.register_candidate(name="Ada", phone="+49 30 1234")
    resp = api.client.put(
        f"/api/v1/users/{user_id}",
        json={"name": None, "phone": None, "location": "Berlin"},
        headers=bearer(token),
    )
    assert resp.status_code == 200
    user = api.principals.get_user(user_id)
    assert user.name == "Ada"
    assert user.phone == "+49 30 1234"
    assert user.location == "Berlin"

    cleared = api.client.put(f"/api/v1/users/{user_id}", json={"location": None}, headers=bearer(token))
    assert cleared.status_code == 200
    assert api.principals.get_user(user_id).location is None


def test_other_user_forbidden(api):
    _, ada_id = api.register_candidate()
    bob_token, _ = api.register_candidate()
    assert api.client.get(f"/api/v1/users/{ada_id}", headers=bearer(bob_token)).status_code == 403
    assert api.client.put(f"/api/v1/users/{ada_id}", json={"name": "x"}, headers=bearer(bob_token)).status_code == 403


def test_employer_with_colliding_id_forbidden(api):
    _, user_id = api.register_candidate()
    employer_token, employer_id = api.register_employer()
    assert user_id == employer_id
    assert api.client.get(f"/api/v1/users/{user_id}", headers=bearer(employer_token)).status_code == 403


def test_role_not_updatable(api):
    token, user_id = api.register_candidate()
    api.client.put(f"/api/v1/users/{user_id}", json={"role": "admin"}, headers=bearer(token))
    assert api.principals.get_user(user_id).role == "candidate"


def test_admin_reads_any_profile(api):
    admin_token, _ = api.create_admin()
    _, user_id = api.register_candidate()
    assert api.client.get(f"/api/v1/users/{user_id}", headers=bearer(admin_token)).status_code == 200


def test_suspension_blocks_next_request(api):
    admin_token, _ = api.create_admin()
    token, user_id = api.register_candidate()
    assert api.client.get("/api/v1/auth/me", headers=bearer(token)).status_code == 200

    resp = api.client.patch(f"/api/v1/users/{user_id}/status", headers=bearer(admin_token))
    assert resp.status_code == 200
    assert resp.json()["data"]["is_active"] is False

    blocked = api.client.get("/api/v1/auth/me", headers=bearer(token))
    assert blocked.status_code == 403
    assert blocked.json()["code"] == "account_suspended"

    # No body flips the flag back.
    api.client.patch(f"/api/v1/users/{user_id}/status", headers=bearer(admin_token))
    assert api.client.get("/api/v1/auth/me", headers=bearer(token)).status_code == 200


def test_explicit_status(api):
    admin_token, _ = api.create_admin()
    _, user_id = api.register_candidate()
    resp = api.client.patch(
        f"/api/v1/users/{user_id}/status",
        json={"is_active": True},
        headers=bearer(admin_token),
    )
    assert resp.json()["data"]["is_active"] is True


def test_admin_cannot_suspend_self(api):
    admin_token, admin_id = api.create_admin()
    resp = api.client.patch(f"/api/v1/users/{admin_id}/status", headers=bearer(admin_token))
    assert resp.status_code == 400
    assert resp.json()["code"] == "cannot_suspend_self"


def test_non_admin_cannot_change_status(api):
    token, _ = api.register_candidate()
    _, other_id = api.register_candidate()
    assert api.client.patch(f"/api/v1/users/{other_id}/status", headers=bearer(token)).status_code == 403


def test_delete_user_withdraws_applications(api):
    admin_token, _ = api.create_admin()
    employer_token, _ = api.register_employer(verified=True)
    job = api.create_job(employer_token)
    token, user_id = api.register_candidate()
    api.apply(token, job["id"])
    assert api.board.get_job(job["id"]).application_count == 1

    resp = api.client.delete(f"/api/v1/users/{user_id}", headers=bearer(admin_token))
    assert resp.status_code == 200
    assert api.principals.get_user(user_id) is None
    assert api.board.list_applications(candidate_id=user_id) == []
    assert api.board.get_job(job["id"]).application_count == 0


def test_admin_cannot_delete_self(api):
    admin_token, admin_id = api.create_admin()
    api.create_admin()
    resp = api.client.delete(f"/api/v1/users/{admin_id}", headers=bearer(admin_token))
    assert resp.status_code == 400
    assert resp.json()["code"] == "cannot_delete_self"
