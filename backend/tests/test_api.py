"""
API Tests

End-to-end through the FastAPI app with the database and the check
executor swapped for test doubles.
"""

from uuid import uuid4

import pytest

from visibility_engine.models import SubscriptionTier
from visibility_engine.services.errors import ExecutorConfigurationError, TransientError
from visibility_engine.utils import rate_limit


@pytest.fixture
async def pro_user(create_user):
    return await create_user(SubscriptionTier.PRO)


@pytest.fixture
async def project(pro_user, create_project):
    return await create_project(pro_user, keywords=["best crm"])


# ============================================================================
# AUTH & ERRORS
# ============================================================================

@pytest.mark.asyncio
class TestAuthAndErrors:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_missing_token(self, client, project):
        response = await client.get(f"/api/v1/visibility/{project.id}")
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_ERROR"

    async def test_invalid_token(self, client, project):
        response = await client.get(
            f"/api/v1/visibility/{project.id}",
            headers={"Authorization": "Bearer not-a-token"},
        )
        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid session token"

    async def test_foreign_project_is_404(self, client, project, create_user, auth_headers):
        stranger = await create_user()
        response = await client.get(f"/api/v1/visibility/{project.id}", headers=auth_headers(stranger))

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    async def test_request_validation_uses_error_envelope(self, client, project, pro_user, auth_headers):
        response = await client.post(
            f"/api/v1/visibility/{project.id}/run",
            json={"keyword_ids": [], "providers": ["chatgpt"]},
            headers=auth_headers(pro_user),
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


# ============================================================================
# PROVIDERS & CONFIDENCE
# ============================================================================

@pytest.mark.asyncio
class TestProviderRoutes:
    async def test_catalog(self, client):
        response = await client.get("/api/v1/providers")

        data = response.json()
        assert response.status_code == 200
        assert data["providers"][0] == {"id": "chatgpt", "label": "ChatGPT"}
        full = next(p for p in data["presets"] if p["id"] == "full_coverage")
        assert full["requires_pro"] is True
        assert data["intents"] == ["discovery", "comparison", "transactional"]

    async def test_recommended_depends_on_tier(self, client, create_user, auth_headers):
        starter = await create_user(SubscriptionTier.STARTER)
        response = await client.get(
            "/api/v1/providers/recommended",
            params={"intent": "discovery"},
            headers=auth_headers(starter),
        )
        assert response.json()["providers"] == ["chatgpt", "claude", "perplexity"]

    async def test_full_coverage_rejected_for_free(self, client, create_user, create_project, auth_headers):
        free_user = await create_user(SubscriptionTier.FREE)
        project = await create_project(free_user)

        response = await client.put(
            f"/api/v1/providers/{project.id}/preset",
            json={"preset": "full_coverage"},
            headers=auth_headers(free_user),
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "PLAN_LIMIT_REACHED"

    async def test_preset_replaces_selection(self, client, project, pro_user, auth_headers):
        response = await client.put(
            f"/api/v1/providers/{project.id}/preset",
            json={"preset": "ai_search_focus"},
            headers=auth_headers(pro_user),
        )
        assert response.json()["providers"] == ["perplexity", "gemini", "gemini_ai_mode"]

        response = await client.put(
            f"/api/v1/providers/{project.id}/intent",
            json={"intent": "comparison"},
            headers=auth_headers(pro_user),
        )
        assert response.json()["providers"] == ["perplexity", "gemini", "chatgpt", "grok"]


@pytest.mark.asyncio
class TestConfidenceRoutes:
    async def test_page_sample(self, client):
        response = await client.get("/api/v1/confidence/page-sample", params={"pages_sampled": 25})
        assert response.json() == {"label": "Medium", "variant": "warning"}

    async def test_coverage(self, client):
        response = await client.get(
            "/api/v1/confidence/coverage",
            params={"checks": 50, "providers": 1, "queries": 20},
        )
        assert response.json()["label"] == "Low"

    async def test_recommendation(self, client):
        response = await client.post(
            "/api/v1/confidence/recommendation",
            json={"severity": "critical", "score_impact": 12, "affected_pages": 8, "total_pages": 10},
        )
        assert response.json() == {"label": "High", "variant": "success", "points": 8}


# ============================================================================
# KEYWORDS & VISIBILITY
# ============================================================================

@pytest.mark.asyncio
class TestVisibilityRoutes:
    async def test_run_with_persona_query_then_refetch(
        self, client, project, pro_user, auth_headers, project_keywords, fake_executor
    ):
        existing_id = (await project_keywords(project))["best crm"]
        headers = auth_headers(pro_user)

        response = await client.post(
            f"/api/v1/visibility/{project.id}/run",
            json={
                "keyword_ids": [existing_id, "persona:founder:crm for a 5 person startup"],
                "providers": ["chatgpt", "claude"],
            },
            headers=headers,
        )

        assert response.status_code == 200
        checks = response.json()
        assert len(checks) == 4
        assert {c["source"] for c in checks} == {"manual"}
        assert "crm for a 5 person startup" in await project_keywords(project)

        history = (await client.get(f"/api/v1/visibility/{project.id}", headers=headers)).json()
        assert len(history) == 4
        for stored in (checks, history):
            assert not any(c["query"].startswith("persona:") for c in stored)
            assert {c["query"] for c in stored} == {"best crm", "crm for a 5 person startup"}

        meta = (await client.get(f"/api/v1/visibility/{project.id}/meta", headers=headers)).json()
        assert meta["has_history"] is True
        assert meta["provider_count"] == 2
        assert meta["confidence"]["label"] == "Low"

    async def test_empty_meta(self, client, project, pro_user, auth_headers):
        response = await client.get(f"/api/v1/visibility/{project.id}/meta", headers=auth_headers(pro_user))
        assert response.json()["has_history"] is False

    async def test_empty_persona_query_is_rejected(self, client, project, pro_user, auth_headers, fake_executor):
        response = await client.post(
            f"/api/v1/visibility/{project.id}/run",
            json={"keyword_ids": ["persona:founder:"], "providers": ["chatgpt"]},
            headers=auth_headers(pro_user),
        )

        assert response.status_code == 422
        assert fake_executor.calls == 0

    async def test_unknown_provider_saves_no_persona_keyword(
        self, client, project, pro_user, auth_headers, project_keywords, fake_executor
    ):
        before = set(await project_keywords(project))

        response = await client.post(
            f"/api/v1/visibility/{project.id}/run",
            json={"keyword_ids": ["persona:p1:best crm software"], "providers": ["not_a_provider"]},
            headers=auth_headers(pro_user),
        )

        assert response.status_code == 422
        assert set(await project_keywords(project)) == before
        assert fake_executor.calls == 0

    async def test_region_below_plan_saves_no_persona_keyword(
        self, client, create_user, create_project, auth_headers, project_keywords, fake_executor
    ):
        starter = await create_user(SubscriptionTier.STARTER)
        project = await create_project(starter)

        response = await client.post(
            f"/api/v1/visibility/{project.id}/run",
            json={
                "keyword_ids": ["persona:p1:best crm software"],
                "providers": ["chatgpt"],
                "region": "de",
            },
            headers=auth_headers(starter),
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "PLAN_LIMIT_REACHED"
        assert await project_keywords(project) == {}
        assert fake_executor.calls == 0

    async def test_monthly_allowance_saves_no_persona_keyword(
        self, client, create_user, create_project, auth_headers, project_keywords, fake_executor
    ):
        free_user = await create_user(SubscriptionTier.FREE)
        project = await create_project(free_user)

        # 1 query x 4 providers is over the free allowance of 3
        response = await client.post(
            f"/api/v1/visibility/{project.id}/run",
            json={
                "keyword_ids": ["persona:p1:best crm software"],
                "providers": ["chatgpt", "claude", "perplexity", "gemini"],
            },
            headers=auth_headers(free_user),
        )

        assert response.status_code == 403
        assert await project_keywords(project) == {}

    async def test_rejected_executor_credentials_are_not_a_session_error(
        self, client, project, pro_user, auth_headers, project_keywords, fake_executor
    ):
        fake_executor.error = ExecutorConfigurationError("Check executor is not available, try again later")
        response = await client.post(
            f"/api/v1/visibility/{project.id}/run",
            json={"keyword_ids": list((await project_keywords(project)).values()), "providers": ["chatgpt"]},
            headers=auth_headers(pro_user),
        )

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "EXECUTOR_MISCONFIGURED"

    async def test_rate_limited_run_uses_error_envelope(
        self, client, project, pro_user, auth_headers, project_keywords, fake_executor, monkeypatch
    ):
        async def deny(*args, **kwargs):
            return False, 0

        monkeypatch.setattr(rate_limit, "check_rate_limit", deny)
        response = await client.post(
            f"/api/v1/visibility/{project.id}/run",
            json={"keyword_ids": list((await project_keywords(project)).values()), "providers": ["chatgpt"]},
            headers=auth_headers(pro_user),
        )

        assert response.status_code == 429
        assert response.json()["error"]["code"] == "RATE_LIMITED"
        assert response.headers["Retry-After"] == "60"
        assert fake_executor.calls == 0

    async def test_executor_outage_is_503(
        self, client, project, pro_user, auth_headers, project_keywords, fake_executor
    ):
        fake_executor.error = TransientError("provider down")
        response = await client.post(
            f"/api/v1/visibility/{project.id}/run",
            json={"keyword_ids": list((await project_keywords(project)).values()), "providers": ["chatgpt"]},
            headers=auth_headers(pro_user),
        )

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "TRANSIENT_ERROR"

    async def test_gaps(self, client, project, pro_user, auth_headers, project_keywords, fake_executor):
        fake_executor.mentioning = set()
        fake_executor.competitor_positions = {"rival.com": 1}
        headers = auth_headers(pro_user)
        await client.post(
            f"/api/v1/visibility/{project.id}/run",
            json={"keyword_ids": list((await project_keywords(project)).values()), "providers": ["chatgpt"]},
            headers=headers,
        )

        gaps = (await client.get(f"/api/v1/visibility/{project.id}/gaps", headers=headers)).json()

        assert gaps == [{
            "query": "best crm",
            "providers": ["chatgpt"],
            "user_mentioned": False,
            "user_cited": False,
            "competitors_cited": [{"domain": "rival.com", "position": 1}],
        }]

    async def test_keyword_batch(self, client, project, pro_user, auth_headers):
        response = await client.post(
            f"/api/v1/keywords/{project.id}/batch",
            json={"keywords": ["Best CRM", "crm pricing"]},
            headers=auth_headers(pro_user),
        )

        assert response.status_code == 201
        assert [k["keyword"] for k in response.json()] == ["best crm", "crm pricing"]

    async def test_materialize(self, client, project, pro_user, auth_headers, project_keywords):
        response = await client.post(
            f"/api/v1/keywords/{project.id}/materialize",
            json={"tokens": ["persona:p1:is acme good"]},
            headers=auth_headers(pro_user),
        )

        assert response.json()["keyword_ids"] == [(await project_keywords(project))["is acme good"]]


# ============================================================================
# SCHEDULES
# ============================================================================

@pytest.mark.asyncio
class TestScheduleRoutes:
    async def test_lifecycle(self, client, project, pro_user, auth_headers):
        headers = auth_headers(pro_user)

        created = await client.post(
            "/api/v1/schedules",
            json={
                "project_id": str(project.id),
                "query": "best crm",
                "providers": ["chatgpt", "perplexity"],
                "frequency": "weekly",
            },
            headers=headers,
        )
        assert created.status_code == 201
        schedule = created.json()
        assert schedule["enabled"] is True

        toggled = await client.post(f"/api/v1/schedules/{schedule['id']}/toggle", headers=headers)
        assert toggled.json()["enabled"] is False
        assert toggled.json()["next_run_at"] == schedule["next_run_at"]

        patched = await client.patch(
            f"/api/v1/schedules/{schedule['id']}",
            json={"query": "best crm 2026"},
            headers=headers,
        )
        assert patched.json()["query"] == "best crm 2026"

        listed = await client.get("/api/v1/schedules", params={"project_id": str(project.id)}, headers=headers)
        assert [s["id"] for s in listed.json()] == [schedule["id"]]

        deleted = await client.delete(f"/api/v1/schedules/{schedule['id']}", headers=headers)
        assert deleted.status_code == 204

        missing = await client.post(f"/api/v1/schedules/{schedule['id']}/toggle", headers=headers)
        assert missing.status_code == 404

    async def test_free_plan_cannot_schedule(self, client, create_user, create_project, auth_headers):
        free_user = await create_user(SubscriptionTier.FREE)
        project = await create_project(free_user)

        response = await client.post(
            "/api/v1/schedules",
            json={"project_id": str(project.id), "query": "q", "providers": ["chatgpt"], "frequency": "weekly"},
            headers=auth_headers(free_user),
        )

        assert response.status_code == 403

    async def test_unknown_schedule(self, client, pro_user, auth_headers):
        response = await client.delete(f"/api/v1/schedules/{uuid4()}", headers=auth_headers(pro_user))
        assert response.status_code == 404

    async def test_suggestion_flow(self, client, project, pro_user, auth_headers, project_keywords):
        headers = auth_headers(pro_user)
        params = {"project_id": str(project.id)}

        before = await client.get("/api/v1/schedules/suggestion", params=params, headers=headers)
        assert before.json()["suggested"] is False

        await client.post(
            f"/api/v1/visibility/{project.id}/run",
            json={"keyword_ids": list((await project_keywords(project)).values()), "providers": ["claude"]},
            headers=headers,
        )

        offered = (await client.get("/api/v1/schedules/suggestion", params=params, headers=headers)).json()
        assert offered == {
            "suggested": True,
            "query": "best crm",
            "providers": ["claude"],
            "frequency": "weekly",
        }

        accepted = await client.post(
            "/api/v1/schedules/suggestion/accept",
            json={"project_id": str(project.id)},
            headers=headers,
        )
        assert accepted.status_code == 201
        assert accepted.json()["frequency"] == "weekly"

        after = await client.get("/api/v1/schedules/suggestion", params=params, headers=headers)
        assert after.json()["suggested"] is False

    async def test_dismiss(self, client, project, pro_user, auth_headers, project_keywords):
        headers = auth_headers(pro_user)
        await client.post(
            f"/api/v1/visibility/{project.id}/run",
            json={"keyword_ids": list((await project_keywords(project)).values()), "providers": ["claude"]},
            headers=headers,
        )

        dismissed = await client.post(
            "/api/v1/schedules/suggestion/dismiss",
            json={"project_id": str(project.id)},
            headers=headers,
        )
        assert dismissed.status_code == 204

        response = await client.get(
            "/api/v1/schedules/suggestion", params={"project_id": str(project.id)}, headers=headers
        )
        assert response.json()["suggested"] is False
