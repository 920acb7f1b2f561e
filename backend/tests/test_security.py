import unittest
from unittest import mock

from testkit import JWT_AUDIENCE, JWT_SECRET, mint_token

from magazine_api.core.errors import AuthenticationError, ConfigurationError
from magazine_api.core.security import _get_bearer_token, resolve_user_from_token
from magazine_api.core.settings import settings


class _FakeRequest:
    def __init__(self, headers):
        self.headers = headers


class TestBearerToken(unittest.TestCase):
    def test_extracts_token(self):
        self.assertEqual(_get_bearer_token(_FakeRequest({"authorization": "Bearer abc"})), "abc")

    def test_missing_or_malformed_header(self):
        for headers in ({}, {"authorization": "Basic abc"}, {"authorization": "Bearer   "}):
            with self.assertRaises(AuthenticationError):
                _get_bearer_token(_FakeRequest(headers))


class TestLocalJwt(unittest.TestCase):
    def setUp(self):
        for name, value in (("supabase_jwt_secret", JWT_SECRET), ("supabase_jwt_audience", JWT_AUDIENCE)):
            p = mock.patch.object(settings, name, value)
            p.start()
            self.addCleanup(p.stop)

    def test_valid_token_resolves_user(self):
        user = resolve_user_from_token(mint_token("user-1", email="a@example.com"))
        self.assertEqual(user.id, "user-1")
        self.assertEqual(user.email, "a@example.com")

    def test_wrong_secret_is_rejected(self):
        with self.assertRaises(AuthenticationError):
            resolve_user_from_token(mint_token("user-1", secret="another-secret-that-is-long-enough-too"))

    def test_expired_token_is_rejected(self):
        with self.assertRaises(AuthenticationError):
            resolve_user_from_token(mint_token("user-1", expires_in=-10))


class TestSupabaseFallback(unittest.TestCase):
    def setUp(self):
        for name, value in (
            ("supabase_jwt_secret", None),
            ("supabase_url", "https://project.supabase.test/"),
            ("supabase_anon_key", "anon-key"),
        ):
            p = mock.patch.object(settings, name, value)
            p.start()
            self.addCleanup(p.stop)

    def test_user_is_fetched_from_supabase(self):
        resp = mock.Mock(status_code=200)
        resp.json.return_value = {"id": "user-9", "email": "nine@example.com"}
        with mock.patch("requests.get", return_value=resp) as get:
            user = resolve_user_from_token("opaque-token")
        self.assertEqual(user.id, "user-9")
        url = get.call_args.args[0]
        self.assertEqual(url, "https://project.supabase.test/auth/v1/user")
        self.assertEqual(get.call_args.kwargs["headers"]["authorization"], "Bearer opaque-token")

    def test_rejected_token(self):
        with mock.patch("requests.get", return_value=mock.Mock(status_code=401)):
            with self.assertRaises(AuthenticationError):
                resolve_user_from_token("opaque-token")

    def test_unconfigured_provider(self):
        with mock.patch.object(settings, "supabase_url", None):
            with self.assertRaises(ConfigurationError):
                resolve_user_from_token("opaque-token")


if __name__ == "__main__":
    unittest.main()
