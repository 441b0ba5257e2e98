"""Integration tests for /api/v1/applications.

Covers:
- Submission increments application_count; withdrawal decrements it
- One application per (job, candidate): 400 duplicate_application
- Closed jobs: inactive -> 404 job_unavailable, past deadline -> 400 deadline_passed
- Profile fallbacks for name, email and resume
- Role-scoped listings and the status workflow
"""

from datetime import datetime, timedelta, timezone

from conftest import bearer


def _posted_job(api) -> tuple[str, int, dict]:
    employer_token, employer_id = api.register_employer(verified=True)
    return employer_token, employer_id, api.create_job(employer_token)


class TestSubmit:
    def test_apply_increments_count(self, api):
        _, employer_id, job = _posted_job(api)
        token, candidate_id = api.register_candidate(name="Casey")

        resp = api.apply(token, job["id"], cover_letter="Hire me.")
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["candidate_id"] == candidate_id
        assert data["employer_id"] == employer_id
        assert data["status"] == "submitted"
        assert data["name"] == "Casey"
        assert api.board.get_job(job["id"]).application_count == 1

    def test_duplicate_application(self, api):
        _, _, job = _posted_job(api)
        token, _ = api.register_candidate()
        assert api.apply(token, job["id"]).status_code == 201

        again = api.apply(token, job["id"])
        assert again.status_code == 400
        assert again.json()["code"] == "duplicate_application"
        assert api.board.get_job(job["id"]).application_count == 1

    def test_inactive_job_unavailable(self, api):
        _, _, job = _posted_job(api)
        api.board.update_job(job["id"], is_active=False)
        token, _ = api.register_candidate()
        resp = api.apply(token, job["id"])
        assert resp.status_code == 404
        assert resp.json()["code"] == "job_unavailable"

    def test_missing_job_unavailable(self, api):
        token, _ = api.register_candidate()
        resp = api.apply(token, 999)
        assert resp.status_code == 404
        assert resp.json()["code"] == "job_unavailable"

    def test_deadline_passed(self, api):
        _, _, job = _posted_job(api)
        past = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
        api.board.update_job(job["id"], deadline=past)
        token, _ = api.register_candidate()
        resp = api.apply(token, job["id"])
        assert resp.status_code == 400
        assert resp.json()["code"] == "deadline_passed"
        assert api.board.get_job(job["id"]).application_count == 0

    def test_resume_falls_back_to_profile(self, api):
        _, _, job = _posted_job(api)
        token, candidate_id = api.register_candidate()
        api.principals.update_user(candidate_id, resume="/media/resumes/cv.pdf")

        resp = api.client.post("/api/v1/applications", json={"job_id": job["id"]}, headers=bearer(token))
        assert resp.status_code == 201
        assert resp.json()["data"]["resume"] == "/media/resumes/cv.pdf"

    def test_resume_required(self, api):
        _, _, job = _posted_job(api)
        token, _ = api.register_candidate()
        resp = api.client.post("/api/v1/applications", json={"job_id": job["id"]}, headers=bearer(token))
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"

    def test_only_candidates_apply(self, api):
        employer_token, _, job = _posted_job(api)
        guest = api.client.post(
            "/api/v1/auth/register",
            json={"name": "Gus", "email": "gus@example.com", "password": "secret123", "role": "guest"},
        ).json()["data"]["access_token"]

        assert api.apply(employer_token, job["id"]).status_code == 403
        assert api.apply(guest, job["id"]).status_code == 403


class TestWithdraw:
    def test_delete_decrements_count(self, api):
        _, _, job = _posted_job(api)
        tokens = [api.register_candidate()[0] for _ in range(3)]
        app_ids = [api.apply(t, job["id"]).json()["data"]["id"] for t in tokens]
        assert api.board.get_job(job["id"]).application_count == 3

        resp = api.client.delete(f"/api/v1/applications/{app_ids[0]}", headers=bearer(tokens[0]))
        assert resp.status_code == 200
        assert api.board.get_job(job["id"]).application_count == 2
        assert api.board.get_application(app_ids[0]) is None

    def test_cannot_withdraw_someone_elses(self, api):
        _, _, job = _posted_job(api)
        owner_token, _ = api.register_candidate()
        other_token, _ = api.register_candidate()
        app_id = api.apply(owner_token, job["id"]).json()["data"]["id"]

        resp = api.client.delete(f"/api/v1/applications/{app_id}", headers=bearer(other_token))
        assert resp.status_code == 403
        assert api.board.get_job(job["id"]).application_count == 1

    def test_can_reapply_after_withdrawal(self, api):
        _, _, job = _posted_job(api)
        token, _ = api.register_candidate()
        app_id = api.apply(token, job["id"]).json()["data"]["id"]
        api.client.delete(f"/api/v1/applications/{app_id}", headers=bearer(token))
        assert api.apply(token, job["id"]).status_code == 201
        assert api.board.get_job(job["id"]).application_count == 1


class TestListingAndReview:
    def test_listing_is_scoped_per_role(self, api):
        acme_token, _, acme_job = _posted_job(api)
        globex_token, _, globex_job = _posted_job(api)
        admin_token, _ = api.create_admin()
        ada_token, _ = api.register_candidate()
        bob_token, _ = api.register_candidate()

        api.apply(ada_token, acme_job["id"])
        api.apply(ada_token, globex_job["id"])
        api.apply(bob_token, acme_job["id"])

        def count(token: str) -> int:
            return api.client.get("/api/v1/applications", headers=bearer(token)).json()["count"]

        assert count(admin_token) == 3
        assert count(acme_token) == 2
        assert count(globex_token) == 1
        assert count(ada_token) == 2
        assert count(bob_token) == 1

    def test_guest_cannot_list(self, api):
        guest = api.client.post(
            "/api/v1/auth/register",
            json={"name": "Gus", "email": "gus@example.com", "password": "secret123", "role": "guest"},
        ).json()["data"]["access_token"]
        assert api.client.get("/api/v1/applications", headers=bearer(guest)).status_code == 403

    def test_job_listing_only_for_owner(self, api):
        owner_token, _, job = _posted_job(api)
        other_token, _ = api.register_employer(verified=True)
        candidate_token, _ = api.register_candidate()
        api.apply(candidate_token, job["id"])

        own = api.client.get(f"/api/v1/applications/job/{job['id']}", headers=bearer(owner_token))
        other = api.client.get(f"/api/v1/applications/job/{job['id']}", headers=bearer(other_token))
        assert own.json()["count"] == 1
        assert other.status_code == 403

    def test_user_listing_only_for_self(self, api):
        _, _, job = _posted_job(api)
        ada_token, ada_id = api.register_candidate()
        bob_token, _ = api.register_candidate()
        api.apply(ada_token, job["id"])

        assert api.client.get(f"/api/v1/applications/user/{ada_id}", headers=bearer(ada_token)).json()["count"] == 1
        assert api.client.get(f"/api/v1/applications/user/{ada_id}", headers=bearer(bob_token)).status_code == 403

    def test_status_update_by_owner(self, api):
        owner_token, _, job = _posted_job(api)
        candidate_token, _ = api.register_candidate()
        app_id = api.apply(candidate_token, job["id"]).json()["data"]["id"]

        resp = api.client.put(
            f"/api/v1/applications/{app_id}/status",
            json={"status": "shortlisted", "notes": "Strong portfolio"},
            headers=bearer(owner_token),
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "shortlisted"
        assert resp.json()["data"]["notes"] == "Strong portfolio"

        seen = api.client.get(f"/api/v1/applications/{app_id}", headers=bearer(candidate_token))
        assert seen.json()["data"]["status"] == "shortlisted"

    def test_status_update_by_other_employer_forbidden(self, api):
        _, _, job = _posted_job(api)
        other_token, _ = api.register_employer(verified=True)
        candidate_token, _ = api.register_candidate()
        app_id = api.apply(candidate_token, job["id"]).json()["data"]["id"]

        resp = api.client.put(
            f"/api/v1/applications/{app_id}/status",
            json={"status": "hired"},
            headers=bearer(other_token),
        )
        assert resp.status_code == 403
        assert api.board.get_application(app_id).status == "submitted"

    def test_unknown_status_rejected(self, api):
        owner_token, _, job = _posted_job(api)
        candidate_token, _ = api.register_candidate()
        app_id = api.apply(candidate_token, job["id"]).json()["data"]["id"]
        resp = api.client.put(
            f"/api/v1/applications/{app_id}/status",
            json={"status": "ghosted"},
            headers=bearer(owner_token),
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"
