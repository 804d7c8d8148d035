import unittest
from datetime import datetime, timezone

from fastapi.testclient import TestClient

from companion.api import get_service
from companion.main import app as fastapi_app
from test_companion_service import FakeClock, build_test_service


class TestApi(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))
        self.service = build_test_service(clock=self.clock)
        fastapi_app.dependency_overrides[get_service] = lambda: self.service
        self.client = TestClient(fastapi_app)

    def tearDown(self):
        fastapi_app.dependency_overrides.clear()

    def _register(self, username="alice", pin="1234"):
        return self.client.post("/v1/auth/register", json={"username": username, "pin": pin})

    def test_session_starts_as_guest(self):
        resp = self.client.get("/v1/session")
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["username"], "guest")
        self.assertTrue(body["is_guest"])
        self.assertEqual(body["settings"]["city"], "Bucharest")

    def test_register_login_logout(self):
        resp = self._register()
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["username"], "alice")

        self.assertEqual(self.client.post("/v1/auth/logout").json()["username"], "guest")

        resp = self.client.post("/v1/auth/login", json={"username": "alice", "pin": "1234"})
        self.assertEqual(resp.json()["username"], "alice")
        self.assertFalse(resp.json()["is_guest"])

    def test_error_status_codes(self):
        self._register()
        self.assertEqual(self._register().status_code, 409)
        self.assertEqual(self._register("bob", "12ab").status_code, 400)
        self.assertEqual(self._register("guest", "1234").status_code, 400)

        resp = self.client.post("/v1/auth/login", json={"username": "alice", "pin": "9999"})
        self.assertEqual(resp.status_code, 401)
        resp = self.client.post("/v1/auth/switch", json={"username": "nobody", "pin": "1234"})
        self.assertEqual(resp.status_code, 404)

    def test_switch_replaces_active_user(self):
        self._register("alice", "1234")
        self._register("bob", "5678")
        resp = self.client.post("/v1/auth/switch", json={"username": "alice", "pin": "1234"})
        self.assertEqual(resp.json()["username"], "alice")

    def test_users_and_delete(self):
        self._register("alice", "1234")
        self._register("bob", "5678")
        self.assertEqual(self.client.get("/v1/users").json(), {"users": ["alice", "bob"]})

        resp = self.client.delete("/v1/users/bob")
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()["is_guest"])
        self.assertEqual(self.client.get("/v1/users").json(), {"users": ["alice"]})
        self.assertEqual(self.client.delete("/v1/users/bob").status_code, 404)

    def test_settings_roundtrip_and_validation(self):
        self._register()
        resp = self.client.put("/v1/settings", json={"city": " Paris ", "units": "imperial", "news_topic": "rust"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["city"], "Paris")
        self.assertEqual(self.client.get("/v1/settings").json()["units"], "imperial")

        resp = self.client.put("/v1/settings", json={"units": "kelvin"})
        self.assertEqual(resp.status_code, 422)

    def test_weather_fresh_then_cached(self):
        self._register()
        resp = self.client.get("/v1/weather")
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["owner"], "alice")
        self.assertEqual(body["status"], "Updated")
        self.assertEqual(body["city"], "Bucharest")
        self.assertEqual(body["units"], "metric")
        self.assertEqual(body["rows"][0]["time"], "Now")

        self.clock.advance(minutes=3)
        body = self.client.get("/v1/weather").json()
        self.assertEqual(body["status"], "Cached • updated 3m ago")

        body = self.client.get("/v1/weather", params={"refresh": "true"}).json()
        self.assertEqual(body["status"], "Updated")

    def test_weather_offline(self):
        self.service.data_source.online = False
        resp = self.client.get("/v1/weather")
        self.assertEqual(resp.status_code, 503)

        self.service.data_source.online = True
        self.client.get("/v1/weather")
        self.service.data_source.online = False
        self.clock.advance(hours=2)
        body = self.client.get("/v1/weather").json()
        self.assertTrue(body["stale"])
        self.assertTrue(body["status"].startswith("Offline • Cached"))

    def test_weather_unknown_city_detail(self):
        self.client.put("/v1/settings", json={"city": "Atlantis"})
        resp = self.client.get("/v1/weather")
        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.json()["detail"], "City not found: Atlantis")

    def test_news_topic(self):
        body = self.client.get("/v1/news").json()
        self.assertEqual(body["topic"], "Top Stories")
        self.assertEqual(body["rows"][0]["source"], "example.com")

        body = self.client.get("/v1/news", params={"topic": "rust"}).json()
        self.assertEqual(body["topic"], "rust")
        self.assertEqual(body["owner"], "guest")


if __name__ == "__main__":
    unittest.main()
