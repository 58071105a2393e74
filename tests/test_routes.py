"""End-to-end API tests through the FastAPI app with an in-memory database."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt

from propcalc_platform.agents.base import AgentResult
from propcalc_platform.app.config import get_settings
from propcalc_platform.app.main import app
from propcalc_platform.app.routes.ai import get_insight_agent
from propcalc_platform.app.routes.deals import get_insight_service
from propcalc_platform.domain.enums import InsightVerdict
from propcalc_platform.domain.schemas import InsightPayload
from propcalc_platform.infra.database import get_db
from propcalc_platform.services.deal_insights import DealInsightService

ISSUER = "https://issuer.test"


def _token(subject: str, name: str = "Test Developer", email: str = "dev@example.com") -> str:
    settings = get_settings()
    return jwt.encode(
        {"sub": subject, "iss": ISSUER, "name": name, "email": email},
        settings.identity_jwt_secret,
        algorithm=settings.identity_jwt_algorithm,
    )


def _auth(subject: str, **claims) -> dict:
    return {"Authorization": f"Bearer {_token(subject, **claims)}"}


def _fake_agent(result: AgentResult):
    agent = MagicMock()
    agent.generate_insights = AsyncMock(return_value=result)
    return agent


@pytest.fixture
def insight_agent():
    payload = InsightPayload(summary="Healthy margins.", verdict=InsightVerdict.STRONG)
    return _fake_agent(AgentResult.success(data=payload))


@pytest.fixture
async def client(db_session, insight_agent):
    async def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_insight_service] = lambda: DealInsightService(
        db_session, agent=insight_agent, enabled=True
    )
    app.dependency_overrides[get_insight_agent] = lambda: insight_agent
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def _provision(client, subject: str, **claims) -> dict:
    resp = await client.post("/api/users/store", headers=_auth(subject, **claims))
    assert resp.status_code == 200
    return resp.json()


async def _create_deal(client, subject: str) -> str:
    resp = await client.post(
        "/api/deals",
        json={"name": "Union St", "address": "12 Union St"},
        headers=_auth(subject),
    )
    assert resp.status_code == 201
    return resp.json()["id"]


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class TestUsers:
    async def test_store_then_me(self, client):
        user = await _provision(client, "u1", name="Priya", email="priya@example.com")
        assert user["name"] == "Priya"
        assert user["role"] == "user"

        resp = await client.get("/api/users/me", headers=_auth("u1"))
        assert resp.json()["id"] == user["id"]

    async def test_store_is_idempotent(self, client):
        first = await _provision(client, "u1")
        second = await _provision(client, "u1", name="Renamed")
        assert first["id"] == second["id"]
        assert second["name"] == "Renamed"

    async def test_store_requires_token(self, client):
        resp = await client.post("/api/users/store")
        assert resp.status_code == 401

    async def test_bad_token_is_anonymous(self, client):
        resp = await client.get("/api/users/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 200
        assert resp.json() is None


# ---------------------------------------------------------------------------
# Deals
# ---------------------------------------------------------------------------


class TestDeals:
    async def test_create_requires_provisioned_user(self, client):
        resp = await client.post("/api/deals", json={"name": "X", "address": "Y"})
        assert resp.status_code == 401

        resp = await client.post("/api/deals", json={"name": "X", "address": "Y"}, headers=_auth("ghost"))
        assert resp.status_code == 404

    async def test_create_validates_body(self, client):
        await _provision(client, "u1")
        resp = await client.post("/api/deals", json={"name": "", "address": "Y"}, headers=_auth("u1"))
        assert resp.status_code == 422

    async def test_get_and_list(self, client):
        await _provision(client, "u1")
        deal_id = await _create_deal(client, "u1")

        resp = await client.get(f"/api/deals/{deal_id}")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "draft"
        assert body["current_step"] == 1
        assert body["pd_data"] is None

        resp = await client.get("/api/deals", headers=_auth("u1"))
        assert [d["id"] for d in resp.json()] == [deal_id]

        resp = await client.get("/api/deals")
        assert resp.json() == []

    async def test_get_unknown(self, client):
        resp = await client.get("/api/deals/missing")
        assert resp.status_code == 404

    async def test_submit_step_with_reasoning_skips_ai(self, client, insight_agent, step_payload):
        await _provision(client, "u1")
        deal_id = await _create_deal(client, "u1")

        resp = await client.put(
            f"/api/deals/{deal_id}/steps/1",
            json=step_payload(1, reasoning="Own analysis"),
            headers=_auth("u1"),
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["current_step"] == 2
        assert body["insight"] is None
        insight_agent.generate_insights.assert_not_called()

    async def test_submit_step_generates_reasoning(self, client, step_payload):
        await _provision(client, "u1")
        deal_id = await _create_deal(client, "u1")

        resp = await client.put(f"/api/deals/{deal_id}/steps/4", json=step_payload(4), headers=_auth("u1"))
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "complete"
        assert body["insight"]["summary"] == "Healthy margins."

        deal = (await client.get(f"/api/deals/{deal_id}")).json()
        assert deal["finance_data"]["reasoning"] == "Healthy margins."

    async def test_submit_step_survives_ai_failure(self, client, insight_agent, step_payload):
        insight_agent.generate_insights.return_value = AgentResult.failure("timed out")
        await _provision(client, "u1")
        deal_id = await _create_deal(client, "u1")

        resp = await client.put(f"/api/deals/{deal_id}/steps/2", json=step_payload(2), headers=_auth("u1"))
        assert resp.status_code == 200
        assert resp.json()["insight"] is None

        deal = (await client.get(f"/api/deals/{deal_id}")).json()
        assert deal["gdv_data"]["total_gdv"] == 6210000.0
        assert deal["current_step"] == 3

    async def test_submit_step_errors(self, client, step_payload):
        await _provision(client, "u1")
        deal_id = await _create_deal(client, "u1")

        resp = await client.put(f"/api/deals/{deal_id}/steps/1", json=step_payload(1))
        assert resp.status_code == 401

        resp = await client.put(f"/api/deals/{deal_id}/steps/9", json=step_payload(1), headers=_auth("u1"))
        assert resp.status_code == 422

        resp = await client.put(f"/api/deals/{deal_id}/steps/1", json={"completed": True}, headers=_auth("u1"))
        assert resp.status_code == 422

        resp = await client.put("/api/deals/missing/steps/1", json=step_payload(1), headers=_auth("u1"))
        assert resp.status_code == 404

    async def test_other_user_can_submit_by_default(self, client, step_payload):
        await _provision(client, "u1")
        await _provision(client, "u2", email="u2@example.com")
        deal_id = await _create_deal(client, "u1")

        resp = await client.put(
            f"/api/deals/{deal_id}/steps/1?augment=false", json=step_payload(1), headers=_auth("u2")
        )
        assert resp.status_code == 200

    async def test_delete(self, client):
        await _provision(client, "u1")
        deal_id = await _create_deal(client, "u1")

        assert (await client.delete(f"/api/deals/{deal_id}")).status_code == 401
        assert (await client.delete(f"/api/deals/{deal_id}", headers=_auth("u1"))).status_code == 204
        assert (await client.get(f"/api/deals/{deal_id}")).status_code == 404


class TestAdminDeals:
    async def test_set_external_status(self, client, make_user):
        await make_user(role="admin", token_identifier=f"{ISSUER}|admin")
        await _provision(client, "u1")
        deal_id = await _create_deal(client, "u1")

        resp = await client.patch(
            f"/api/admin/deals/{deal_id}/status",
            json={"status": "finance_submitted"},
            headers=_auth("admin"),
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "finance_submitted"

    async def test_non_admin_forbidden(self, client):
        await _provision(client, "u1")
        deal_id = await _create_deal(client, "u1")
        resp = await client.patch(
            f"/api/admin/deals/{deal_id}/status", json={"status": "finance_approved"}, headers=_auth("u1")
        )
        assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Calculators
# ---------------------------------------------------------------------------


class TestCalculators:
    async def test_pd(self, client):
        resp = await client.post(
            "/api/calculators/pd", json={"gia": 820, "market_psf": 715, "article_four": False}
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["build_cost"] == 1459600
        assert body["pd_route"] == "Class MA permitted"

    async def test_gdv(self, client):
        resp = await client.post(
            "/api/calculators/gdv",
            json={"units": [{"bedrooms": 1, "quantity": 2, "avg_sqft": 500, "price_per_sqft": 700}], "new_build_premium": 0},
        )
        assert resp.json()["total_gdv"] == 700000

    async def test_build_cost(self, client):
        resp = await client.post("/api/calculators/build-cost", json={"total_gia": 100, "contingency": 0, "professional_fees": 0})
        assert resp.json()["total_cost"] == pytest.approx(100 * 1780 * 1.25)

    async def test_finance(self, client):
        resp = await client.post(
            "/api/calculators/finance",
            json={"purchase_price": 1850000, "build_cost": 2012000, "gdv": 6210000, "target_ltc_pct": 65},
        )
        body = resp.json()
        assert body["senior_debt_amount"] == pytest.approx(2510300)
        assert body["lender_appetite"] == "strong"
        assert body["summary"].startswith("Recommended structure")

    async def test_finance_senior_above_mezzanine_ceiling(self, client):
        resp = await client.post(
            "/api/calculators/finance",
            json={
                "purchase_price": 1000000,
                "build_cost": 1000000,
                "gdv": 3000000,
                "target_ltc_pct": 90,
                "require_mezzanine": True,
            },
        )
        body = resp.json()
        assert body["mezzanine_amount"] == pytest.approx(-100000)
        assert body["equity_required"] == pytest.approx(300000)
        assert "Mezzanine layer" not in body["summary"]


# ---------------------------------------------------------------------------
# Calculator submissions
# ---------------------------------------------------------------------------


SUBMISSION = {
    "calculator_type": "Development Finance",
    "calculator_slug": "finance-calculator",
    "form_data": json.dumps({"gdv": 6210000}),
}


class TestSubmissions:
    async def test_anonymous_and_mine(self, client):
        resp = await client.post("/api/calculator-submissions", json=SUBMISSION)
        assert resp.status_code == 201

        await _provision(client, "u1")
        first = await client.post("/api/calculator-submissions", json=SUBMISSION, headers=_auth("u1"))
        second = await client.post("/api/calculator-submissions", json=SUBMISSION, headers=_auth("u1"))
        assert first.json()["id"] == second.json()["id"]

        mine = (await client.get("/api/calculator-submissions/mine", headers=_auth("u1"))).json()
        assert [s["id"] for s in mine] == [first.json()["id"]]

        by_calc = (await client.get("/api/calculator-submissions/by-calculator/finance-calculator")).json()
        assert len(by_calc) == 2

    async def test_admin_dashboard(self, client, make_user):
        await make_user(role="admin", token_identifier=f"{ISSUER}|admin")
        submission_id = (await client.post("/api/calculator-submissions", json=SUBMISSION)).json()["id"]

        resp = await client.get("/api/admin/calculator-submissions")
        assert resp.status_code == 401

        resp = await client.get("/api/admin/calculator-submissions", headers=_auth("admin"))
        assert [s["id"] for s in resp.json()] == [submission_id]

        resp = await client.patch(
            f"/api/admin/calculator-submissions/{submission_id}",
            json={"status": "contacted", "notes": "Left voicemail"},
            headers=_auth("admin"),
        )
        assert resp.status_code == 200
        assert resp.json()["follow_up_status"] == "contacted"

        stats = (await client.get("/api/admin/calculator-submissions/stats", headers=_auth("admin"))).json()
        assert stats["total"] == 1
        assert stats["by_status"] == {"contacted": 1}
        assert stats["recent_count"] == 1

    async def test_update_unknown_submission(self, client, make_user):
        await make_user(role="admin", token_identifier=f"{ISSUER}|admin")
        resp = await client.patch(
            "/api/admin/calculator-submissions/missing", json={"status": "contacted"}, headers=_auth("admin")
        )
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Free-form analysis
# ---------------------------------------------------------------------------


class TestAnalyze:
    async def test_missing_prompts(self, client):
        resp = await client.post("/api/ai/analyze", json={"user_prompt": "x"})
        assert resp.status_code == 400

    async def test_success(self, client):
        resp = await client.post(
            "/api/ai/analyze",
            json={"system_prompt": "You are a valuer.", "user_prompt": "Value this", "calculator_id": "gdv"},
        )
        assert resp.status_code == 200
        assert resp.json()["verdict"] == "strong"

    async def test_upstream_failure(self, client, insight_agent):
        insight_agent.generate_insights.return_value = AgentResult.failure("quota")
        resp = await client.post(
            "/api/ai/analyze", json={"system_prompt": "s", "user_prompt": "u"}
        )
        assert resp.status_code == 502


async def test_health(client):
    resp = await client.get("/health")
    assert resp.json() == {"status": "ok", "service": "propcalc-platform"}
