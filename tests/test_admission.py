"""Tests for the admission gate: role tiers, local decision service and middleware responses."""

import asyncio
import unittest

from fastapi.testclient import TestClient
from pydantic import SecretStr

from app.core.config import Settings
from app.core.security import create_access_token
from app.main import create_app
from app.services.admission import (
    Decision,
    DecisionKind,
    LocalDecisionService,
    RateLimitRule,
    RequestContext,
    rule_for_tier,
    tier_for_role,
)


def _settings(**overrides: object) -> Settings:
    values: dict[str, object] = {"JWT_SECRET": SecretStr("gate-test-secret")}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def _context(**overrides: str) -> RequestContext:
    values = {
        "client_ip": "10.0.0.1",
        "user_agent": "Mozilla/5.0",
        "path": "/api/v1/auth/sign-in",
        "method": "POST",
        "query": "",
    }
    values.update(overrides)
    return RequestContext(**values)


class TestRateTiers(unittest.TestCase):
    """tier_for_role maps roles to limits; unknown roles are guests."""

    def test_tiers(self) -> None:
        settings = _settings()
        self.assertEqual(tier_for_role(None, settings).limit, 5)
        self.assertEqual(tier_for_role("user", settings).limit, 10)
        self.assertEqual(tier_for_role("admin", settings).limit, 20)

    def test_unknown_role_is_guest(self) -> None:
        tier = tier_for_role("superuser", _settings())
        self.assertEqual(tier.role, "guest")
        self.assertEqual(tier.limit, 5)

    def test_messages(self) -> None:
        settings = _settings()
        self.assertEqual(
            tier_for_role("admin", settings).message,
            "Admin rate limit exceeded (20 per min). Slow down.",
        )
        self.assertEqual(
            tier_for_role("guest", settings).message,
            "Guest rate limit exceeded (5 per min). Slow down.",
        )

    def test_rule_name_and_window(self) -> None:
        settings = _settings()
        rule = rule_for_tier(tier_for_role("user", settings), settings)
        self.assertEqual(rule, RateLimitRule(name="user-rate-limit", interval_seconds=60, max_requests=10))


class TestLocalDecisionService(unittest.TestCase):
    def setUp(self) -> None:
        self.service = LocalDecisionService(bot_patterns=["bot", "curl"])
        self.rule = RateLimitRule(name="guest-rate-limit", interval_seconds=60, max_requests=2)

    def classify(self, **overrides: str) -> Decision:
        return asyncio.run(self.service.classify(_context(**overrides), self.rule))

    def test_allows_normal_request(self) -> None:
        self.assertFalse(self.classify().is_denied)

    def test_bot_user_agents(self) -> None:
        self.assertIs(self.classify(user_agent="Googlebot/2.1").kind, DecisionKind.DENY_BOT)
        self.assertIs(self.classify(user_agent="curl/8.4.0").kind, DecisionKind.DENY_BOT)
        self.assertIs(self.classify(user_agent="").kind, DecisionKind.DENY_BOT)

    def test_shield_signatures(self) -> None:
        self.assertIs(
            self.classify(query="q=%3Cscript%3Ealert(1)%3C/script%3E").kind,
            DecisionKind.DENY_SHIELD,
        )
        self.assertIs(self.classify(path="/static/../../etc/passwd").kind, DecisionKind.DENY_SHIELD)
        self.assertIs(
            self.classify(query="email=x%27%20OR%20%271%27%3D%271").kind,
            DecisionKind.DENY_SHIELD,
        )

    def test_sliding_window_per_client(self) -> None:
        self.assertFalse(self.classify().is_denied)
        self.assertFalse(self.classify().is_denied)
        self.assertIs(self.classify().kind, DecisionKind.DENY_RATE_LIMIT)
        # Another client has its own window.
        self.assertFalse(self.classify(client_ip="10.0.0.2").is_denied)

    def test_rules_are_counted_separately(self) -> None:
        self.classify()
        self.classify()
        other = RateLimitRule(name="user-rate-limit", interval_seconds=60, max_requests=2)
        decision = asyncio.run(self.service.classify(_context(), other))
        self.assertFalse(decision.is_denied)


class FailingDecisionService:
    async def classify(self, context: RequestContext, rule: RateLimitRule) -> Decision:
        raise RuntimeError("decision backend unavailable")


class TestAdmissionGate(unittest.TestCase):
    """The middleware in front of the app: role from cookie, denial responses, fail-closed."""

    def _client(self, decision_service=None, **overrides: object) -> tuple[TestClient, Settings]:
        settings = _settings(**overrides)
        app = create_app(
            settings,
            decision_service=decision_service or LocalDecisionService.from_settings(settings),
        )
        return TestClient(app, raise_server_exceptions=False), settings

    def test_admin_limited_after_twenty_requests(self) -> None:
        client, settings = self._client()
        token = create_access_token({"id": 1, "email": "a@b.com", "role": "admin"}, settings)
        client.cookies.set("token", token)
        for _ in range(20):
            self.assertEqual(client.get("/").status_code, 200)
        res = client.get("/")
        self.assertEqual(res.status_code, 429)
        self.assertEqual(
            res.json(),
            {
                "detail": "Rate limit exceeded",
                "message": "Admin rate limit exceeded (20 per min). Slow down.",
            },
        )

    def test_guest_under_limit_passes(self) -> None:
        client, _ = self._client()
        for _ in range(4):
            self.assertEqual(client.get("/").status_code, 200)

    def test_guest_limited_after_five_requests(self) -> None:
        client, _ = self._client()
        for _ in range(5):
            client.get("/")
        res = client.get("/")
        self.assertEqual(res.status_code, 429)
        self.assertEqual(res.json()["message"], "Guest rate limit exceeded (5 per min). Slow down.")

    def test_invalid_cookie_counts_as_guest(self) -> None:
        client, _ = self._client()
        client.cookies.set("token", "forged")
        for _ in range(5):
            self.assertEqual(client.get("/").status_code, 200)
        self.assertEqual(client.get("/").status_code, 429)

    def test_bot_is_forbidden(self) -> None:
        client, _ = self._client()
        with self.assertLogs("app.middleware.admission", level="WARNING") as logs:
            res = client.get("/", headers={"User-Agent": "Googlebot/2.1"})
        self.assertEqual(res.status_code, 403)
        self.assertEqual(res.json()["detail"], "Access denied for bots")
        self.assertIn("Bot request blocked", logs.output[0])
        self.assertEqual(logs.records[0].user_agent, "Googlebot/2.1")
        line = logs.output[0]
        self.assertIn("Googlebot/2.1", line)
        self.assertIn("ip=testclient", line)
        self.assertIn("path=/", line)
        self.assertIn("method=GET", line)

    def test_shield_log_line_names_the_signature(self) -> None:
        client, _ = self._client()
        with self.assertLogs("app.middleware.admission", level="WARNING") as logs:
            client.get("/", params={"q": "<script>alert(1)</script>"})
        self.assertIn("Shield request blocked", logs.output[0])
        self.assertIn("script", logs.output[0].split("reason=", 1)[1])

    def test_rate_limit_log_line_has_request_context(self) -> None:
        client, _ = self._client(RATE_LIMIT_GUEST=1)
        client.post("/nowhere")
        with self.assertLogs("app.middleware.admission", level="WARNING") as logs:
            res = client.post("/nowhere")
        self.assertEqual(res.status_code, 429)
        self.assertIn("Rate limit request blocked", logs.output[0])
        self.assertIn("path=/nowhere", logs.output[0])
        self.assertIn("method=POST", logs.output[0])
        self.assertIn("role=guest", logs.output[0])

    def test_shield_is_forbidden(self) -> None:
        client, _ = self._client()
        res = client.get("/", params={"q": "<script>alert(1)</script>"})
        self.assertEqual(res.status_code, 403)
        self.assertEqual(res.json()["message"], "Request blocked by Shield.")

    def test_gate_fault_fails_closed(self) -> None:
        client, _ = self._client(decision_service=FailingDecisionService())
        res = client.get("/")
        self.assertEqual(res.status_code, 500)
        self.assertEqual(res.json()["detail"], "Internal server error")

    def test_dry_run_logs_but_does_not_block(self) -> None:
        client, _ = self._client(ADMISSION_MODE="DRY_RUN")
        res = client.get("/", headers={"User-Agent": "Googlebot/2.1"})
        self.assertEqual(res.status_code, 200)

    def test_disabled_gate_lets_everything_through(self) -> None:
        client, _ = self._client(
            decision_service=FailingDecisionService(), ADMISSION_ENABLED=False
        )
        self.assertEqual(client.get("/").status_code, 200)

    def test_exempt_paths_skip_the_gate(self) -> None:
        client, _ = self._client(
            decision_service=FailingDecisionService(), ADMISSION_EXEMPT_PATHS=["/docs"]
        )
        self.assertEqual(client.get("/docs").status_code, 200)
        self.assertEqual(client.get("/docs/oauth2-redirect").status_code, 200)
        self.assertEqual(client.get("/").status_code, 500)

    def test_exempt_prefix_matches_whole_segments(self) -> None:
        client, _ = self._client(
            decision_service=FailingDecisionService(), ADMISSION_EXEMPT_PATHS=["/docs/"]
        )
        self.assertEqual(client.get("/docs").status_code, 200)
        self.assertEqual(client.get("/docsfoo").status_code, 500)


if __name__ == "__main__":
    unittest.main()
