"""
Test suite for candidate referral endpoints.

Tests cover:
- Referral submission (JSON and multipart with resume)
- Listing, filtering and stats
- Resume download
- Edits, status changes and deletion
- Error envelope and status codes
"""

import pytest

from referral_tracker.api.endpoints.candidates import _content_disposition
from referral_tracker.core.security import create_access_token


CANDIDATES_URL = "/api/v1/candidates/"


def create(client, data, headers=None, resume=None):
    if resume is None:
        return client.post(CANDIDATES_URL, json=data, headers=headers)
    return client.post(CANDIDATES_URL, data=data, files={"resume": resume}, headers=headers)


class TestCreateCandidate:
    """Tests for referral submission endpoint"""

    def test_create_candidate_json(self, client, sample_candidate_data):
        """Test successful referral without a resume"""
        response = create(client, sample_candidate_data)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Candidate created successfully"
        data = body["data"]
        assert data["email"] == "jane@example.com"
        assert data["status"] == "Pending"
        assert data["notes"] == ""
        assert data["has_resume"] is False
        assert data["referred_by"] is None

    def test_create_candidate_with_resume(self, client, sample_candidate_data, pdf_bytes):
        response = create(
            client, sample_candidate_data, resume=("jane_doe.pdf", pdf_bytes, "application/pdf")
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["has_resume"] is True
        assert data["resume_filename"] == "jane_doe.pdf"
        assert data["resume_mime_type"] == "application/pdf"
        assert "attachment_locator" not in data

    def test_referrer_comes_from_token(self, client, sample_candidate_data, auth_headers, referrer):
        response = create(client, sample_candidate_data, headers=auth_headers)

        assert response.status_code == 201
        referred_by = response.json()["data"]["referred_by"]
        assert referred_by["id"] == str(referrer.id)
        assert referred_by["name"] == "Alice Referrer"

    def test_referrer_in_body_is_ignored(self, client, sample_candidate_data, referrer):
        data = dict(sample_candidate_data, referred_by=str(referrer.id))

        response = create(client, data)

        assert response.status_code == 201
        assert response.json()["data"]["referred_by"] is None

    def test_invalid_token_records_anonymous_referral(self, client, sample_candidate_data):
        headers = {"Authorization": "Bearer not-a-jwt"}

        response = create(client, sample_candidate_data, headers=headers)

        assert response.status_code == 201
        assert response.json()["data"]["referred_by"] is None

    def test_token_signed_with_other_key_is_ignored(self, client, sample_candidate_data, referrer):
        token = create_access_token({"sub": str(referrer.id)}, secret_key="someone-else")

        response = create(client, sample_candidate_data, headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 201
        assert response.json()["data"]["referred_by"] is None

    def test_missing_fields(self, client):
        """Every missing field is reported at once"""
        response = create(client, {"name": "Jane Doe"})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["kind"] == "validation_error"
        assert {e["field"] for e in body["errors"]} == {"email", "phone", "job_title"}

    def test_non_pdf_resume_rejected(self, client, sample_candidate_data):
        response = create(
            client, sample_candidate_data, resume=("resume.docx", b"PK\x03\x04", "application/msword")
        )

        assert response.status_code == 400
        assert [e["field"] for e in response.json()["errors"]] == ["resume"]

    def test_duplicate_email_conflict(self, client, sample_candidate_data):
        create(client, sample_candidate_data)

        response = create(client, dict(sample_candidate_data, email="  jane@EXAMPLE.com "))

        assert response.status_code == 409
        body = response.json()
        assert body["success"] is False
        assert body["kind"] == "conflict"
        assert body["message"] == "Candidate with this email already exists"


class TestListCandidates:
    """Tests for listing and filtering"""

    @pytest.fixture
    def three_candidates(self, client):
        for name, email, title in [
            ("John Doe", "john@example.com", "Backend Engineer"),
            ("Mary Major", "mary@example.com", "Designer"),
            ("Sam Smith", "sam@example.com", "Frontend Engineer"),
        ]:
            create(client, {"name": name, "email": email, "phone": "5550100", "job_title": title})

    def test_list_all(self, client, three_candidates):
        response = client.get(CANDIDATES_URL)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["count"] == 3
        assert len(body["data"]) == 3

    def test_list_with_filters(self, client, three_candidates):
        response = client.get(CANDIDATES_URL, params={"job_title": "engineer", "search": "smith"})

        body = response.json()
        assert body["count"] == 1
        assert body["data"][0]["name"] == "Sam Smith"

    def test_unknown_status_filter_is_empty_not_error(self, client, three_candidates):
        response = client.get(CANDIDATES_URL, params={"status": "Interviewing"})

        assert response.status_code == 200
        assert response.json() == {"success": True, "count": 0, "data": []}

    def test_status_all(self, client, three_candidates):
        response = client.get(CANDIDATES_URL, params={"status": "all"})

        assert response.json()["count"] == 3


class TestGetCandidate:

    def test_get_by_id(self, client, sample_candidate_data):
        candidate_id = create(client, sample_candidate_data).json()["data"]["id"]

        response = client.get(f"{CANDIDATES_URL}{candidate_id}")

        assert response.status_code == 200
        assert response.json()["data"]["id"] == candidate_id

    @pytest.mark.parametrize("candidate_id", ["00000000-0000-0000-0000-000000000000", "not-a-uuid"])
    def test_get_missing(self, client, candidate_id):
        response = client.get(f"{CANDIDATES_URL}{candidate_id}")

        assert response.status_code == 404
        assert response.json()["kind"] == "not_found"
        assert response.json()["message"] == "Candidate not found"


class TestResumeDownload:

    def test_download_inline(self, client, sample_candidate_data, pdf_bytes):
        candidate_id = create(
            client, sample_candidate_data, resume=("jane_doe.pdf", pdf_bytes, "application/pdf")
        ).json()["data"]["id"]

        response = client.get(f"{CANDIDATES_URL}{candidate_id}/resume")

        assert response.status_code == 200
        assert response.content == pdf_bytes
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["content-disposition"] == 'inline; filename="jane_doe.pdf"'

    def test_download_non_ascii_filename(self, client, sample_candidate_data, pdf_bytes):
        candidate_id = create(
            client, sample_candidate_data, resume=("简历.pdf", pdf_bytes, "application/pdf")
        ).json()["data"]["id"]

        response = client.get(f"{CANDIDATES_URL}{candidate_id}/resume")

        assert response.status_code == 200
        assert response.content == pdf_bytes
        assert response.headers["content-disposition"] == (
            "inline; filename=\"resume.pdf\"; filename*=UTF-8''%E7%AE%80%E5%8E%86.pdf"
        )

    @pytest.mark.parametrize("filename,expected", [
        ("cv.pdf", 'inline; filename="cv.pdf"'),
        ("r\u00e9sum\u00e9.pdf", "inline; filename=\"rsum.pdf\"; filename*=UTF-8''r%C3%A9sum%C3%A9.pdf"),
        ("a\"b\r\n.pdf", "inline; filename=\"ab.pdf\"; filename*=UTF-8''a%22b.pdf"),
    ])
    def test_content_disposition_is_header_safe(self, filename, expected):
        value = _content_disposition(filename)

        assert value == expected
        value.encode("latin-1")

    def test_no_resume(self, client, sample_candidate_data):
        candidate_id = create(client, sample_candidate_data).json()["data"]["id"]

        response = client.get(f"{CANDIDATES_URL}{candidate_id}/resume")

        assert response.status_code == 404
        assert response.json()["message"] == "No resume found for this candidate"


class TestUpdateCandidate:

    def test_partial_update(self, client, sample_candidate_data):
        candidate_id = create(client, dict(sample_candidate_data, notes="Initial")).json()["data"]["id"]

        response = client.put(f"{CANDIDATES_URL}{candidate_id}", json={"job_title": "Staff Engineer"})

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Candidate updated successfully"
        assert body["data"]["job_title"] == "Staff Engineer"
        assert body["data"]["notes"] == "Initial"

    def test_clear_notes(self, client, sample_candidate_data):
        candidate_id = create(client, dict(sample_candidate_data, notes="Initial")).json()["data"]["id"]

        response = client.put(f"{CANDIDATES_URL}{candidate_id}", json={"notes": ""})

        assert response.json()["data"]["notes"] == ""

    def test_replace_resume_via_form(self, client, sample_candidate_data, pdf_bytes):
        candidate_id = create(client, sample_candidate_data).json()["data"]["id"]

        response = client.put(
            f"{CANDIDATES_URL}{candidate_id}",
            data={"phone": "+1-555-0199"},
            files={"resume": ("new.pdf", pdf_bytes, "application/pdf")},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["phone"] == "+1-555-0199"
        assert data["resume_filename"] == "new.pdf"

    def test_update_missing(self, client):
        response = client.put(
            f"{CANDIDATES_URL}00000000-0000-0000-0000-000000000000", json={"name": "Nobody Here"}
        )

        assert response.status_code == 404

    def test_update_invalid_email(self, client, sample_candidate_data):
        candidate_id = create(client, sample_candidate_data).json()["data"]["id"]

        response = client.put(f"{CANDIDATES_URL}{candidate_id}", json={"email": "nope"})

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "email"


class TestStatusUpdate:

    def test_set_status(self, client, sample_candidate_data):
        candidate = create(client, sample_candidate_data).json()["data"]

        response = client.put(f"{CANDIDATES_URL}{candidate['id']}/status", json={"status": "Hired"})

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Status updated successfully"
        assert body["data"]["status"] == "Hired"
        assert body["data"]["updated_at"] > candidate["updated_at"]

    def test_invalid_status(self, client, sample_candidate_data):
        candidate_id = create(client, sample_candidate_data).json()["data"]["id"]

        response = client.put(f"{CANDIDATES_URL}{candidate_id}/status", json={"status": "Interviewing"})

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "status"

    def test_missing_status_body(self, client, sample_candidate_data):
        candidate_id = create(client, sample_candidate_data).json()["data"]["id"]

        response = client.put(f"{CANDIDATES_URL}{candidate_id}/status", json={})

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "status"


class TestDeleteCandidate:

    def test_delete(self, client, sample_candidate_data, pdf_bytes):
        candidate_id = create(
            client, sample_candidate_data, resume=("cv.pdf", pdf_bytes, "application/pdf")
        ).json()["data"]["id"]

        response = client.delete(f"{CANDIDATES_URL}{candidate_id}")

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Candidate deleted successfully"}
        assert client.get(f"{CANDIDATES_URL}{candidate_id}").status_code == 404
        assert client.get(f"{CANDIDATES_URL}{candidate_id}/resume").status_code == 404

    def test_delete_missing(self, client):
        response = client.delete(f"{CANDIDATES_URL}00000000-0000-0000-0000-000000000000")

        assert response.status_code == 404


class TestStats:

    def test_stats(self, client, sample_candidate_data):
        first = create(client, sample_candidate_data).json()["data"]["id"]
        create(client, dict(sample_candidate_data, email="second@example.com"))
        client.put(f"{CANDIDATES_URL}{first}/status", json={"status": "Reviewed"})

        response = client.get(f"{CANDIDATES_URL}stats")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "data": {
                "total": 2,
                "by_status": {"pending": 1, "reviewed": 1, "hired": 0, "rejected": 0},
            },
        }


class TestMiscRoutes:

    def test_unknown_route(self, client):
        response = client.get("/api/v1/nowhere")

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Route not found"}

    def test_health(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["message"] == "Server is running"

    def test_detailed_health(self, client):
        response = client.get("/api/v1/health/detailed")

        body = response.json()
        assert body["status"] == "healthy"
        assert body["checks"] == {"database": {"status": "healthy"}, "storage": {"status": "healthy"}}
