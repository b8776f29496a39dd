"""
Tests for referrer identity resolution.

Tests:
- Token subject decoding
- Expired and foreign tokens
- Inactive referrers
"""

from datetime import timedelta

from referral_tracker.core.security import create_access_token, get_subject


class TestTokenSubject:

    def test_round_trip_subject(self):
        token = create_access_token({"sub": "user-123"})
        assert get_subject(token) == "user-123"

    def test_expired_token(self):
        token = create_access_token({"sub": "user-123"}, expires_delta=timedelta(seconds=-5))
        assert get_subject(token) is None

    def test_wrong_signing_key(self):
        token = create_access_token({"sub": "user-123"}, secret_key="another-service")
        assert get_subject(token) is None

    def test_garbage_token(self):
        assert get_subject("definitely.not.a.token") is None

    def test_token_without_subject(self):
        token = create_access_token({"role": "employee"})
        assert get_subject(token) is None


class TestReferrerDependency:
    """The referrer is optional: bad credentials never block a referral"""

    def test_inactive_referrer_is_dropped(self, client, db_session, referrer, auth_headers, sample_candidate_data):
        referrer.is_active = False
        db_session.commit()

        response = client.post("/api/v1/candidates/", json=sample_candidate_data, headers=auth_headers)

        assert response.status_code == 201
        assert response.json()["data"]["referred_by"] is None

    def test_unknown_user_in_token(self, client, sample_candidate_data):
        token = create_access_token({"sub": "00000000-0000-0000-0000-000000000000"})

        response = client.post(
            "/api/v1/candidates/", json=sample_candidate_data, headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 201
        assert response.json()["data"]["referred_by"] is None
