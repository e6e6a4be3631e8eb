"""Integration tests for the progression API, backed by a temporary SQLite database."""

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from mastery_core.ai.evaluator import StubEssayEvaluator
from mastery_core.ai.lesson_generator import StubLessonGenerator
from mastery_core.api.deps import get_evaluator, get_generator
from mastery_core.database import get_db
from mastery_core.main import app

API = "/api/v1"


@pytest_asyncio.fixture
async def client(db_session_maker):
    """HTTP client with the database and AI collaborators swapped for test doubles."""

    async def _get_test_db():
        async with db_session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_generator] = lambda: StubLessonGenerator()
    app.dependency_overrides[get_evaluator] = lambda: StubEssayEvaluator()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def _create_learner(client: AsyncClient, **fields) -> dict:
    response = await client.post(f"{API}/learners", json={"name": "Ada Lovelace", "age": 12, **fields})
    assert response.status_code == 201
    return response.json()


class TestHealth:
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert "X-Request-ID" in response.headers

    async def test_request_id_is_echoed(self, client: AsyncClient):
        response = await client.get("/health", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"

    async def test_error_bodies_are_documented(self, client: AsyncClient):
        schema = (await client.get("/openapi.json")).json()
        responses = schema["paths"][f"{API}/learners/{{learner_id}}"]["get"]["responses"]

        assert responses["404"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")
        assert set(schema["components"]["schemas"]["ErrorResponse"]["properties"]) == {"detail", "code", "request_id"}

    async def test_levels_catalogue(self, client: AsyncClient):
        response = await client.get(f"{API}/levels")
        levels = [entry["level"] for entry in response.json()]
        assert levels[0] == "A"
        assert levels[19] == "T"
        assert levels[20:] == ["Beyond P", "Beyond T"]


class TestLearnersAPI:
    async def test_create_and_fetch(self, client: AsyncClient):
        learner = await _create_learner(client)

        response = await client.get(f"{API}/learners/{learner['id']}")
        assert response.status_code == 200
        assert response.json()["name"] == "Ada Lovelace"
        assert response.json()["learner_level"] == 1

    async def test_unknown_learner_is_404(self, client: AsyncClient):
        response = await client.get(f"{API}/learners/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["code"] == "LearnerNotFoundError"

    async def test_invalid_body_is_422(self, client: AsyncClient):
        response = await client.post(f"{API}/learners", json={"age": 12})
        assert response.status_code == 422
        assert response.json()["errors"][0]["field"].endswith("name")

    async def test_patch(self, client: AsyncClient):
        learner = await _create_learner(client)
        response = await client.patch(f"{API}/learners/{learner['id']}", json={"preferred_language": "French"})
        assert response.status_code == 200
        assert response.json()["preferred_language"] == "French"
        assert response.json()["age"] == 12

    @pytest.mark.parametrize(
        "body",
        [
            {"track": "University"},
            {"xp": 999, "learner_level": 50},
            {
                "transition": {
                    "target_age": 9,
                    "target_structure": "9-9-9",
                    "enrolled_on": "2026-01-01",
                    "expires_on": "2099-01-01",
                }
            },
        ],
    )
    async def test_patch_rejects_pathway_fields(self, client: AsyncClient, body):
        learner = await _create_learner(client)
        url = f"{API}/learners/{learner['id']}"

        response = await client.patch(url, json={"name": "Ada King", **body})

        assert response.status_code == 422
        assert (await client.get(url)).json() == learner

    async def test_transition_lessons_need_an_enrollment(self, client: AsyncClient):
        learner = await _create_learner(client, age=9)
        base = f"{API}/learners/{learner['id']}"

        assert (await client.post(f"{base}/transition", json={"target_structure": "6-3-3"})).status_code == 400
        patched = await client.patch(base, json={"transition": {"target_structure": "9-9-9"}})
        assert patched.status_code == 422

        done = await client.post(
            f"{base}/subjects/math/lessons/complete",
            json={"lesson_index": 1, "correct": 2, "total": 2, "kind": "transition"},
        )
        assert done.status_code == 400
        assert (await client.get(base)).json()["transition"] is None

    async def test_transition_enrollment(self, client: AsyncClient):
        learner = await _create_learner(client)
        base = f"{API}/learners/{learner['id']}"

        options = await client.get(f"{base}/transition/options")
        assert options.json()["structures"] == ["6-3-3", "7-3", "8-3"]

        rejected = await client.post(f"{base}/transition", json={"target_structure": "4-4-4"})
        assert rejected.status_code == 400

        enrolled = await client.post(
            f"{base}/transition", json={"target_structure": "6-3-3", "source_program": "Kumon"}
        )
        assert enrolled.status_code == 200
        assert enrolled.json()["transition"]["target_structure"] == "6-3-3"

    async def test_track_change(self, client: AsyncClient):
        learner = await _create_learner(client)
        base = f"{API}/learners/{learner['id']}"
        await client.put(f"{base}/subjects/math/placement", json={"level": "E"})
        await client.put(f"{base}/subjects/art/placement", json={"level": "B"})

        response = await client.put(f"{base}/track", json={"track": "University"})

        assert response.json() == {"track": "University", "subjects_updated": 2}
        progress = (await client.get(f"{base}/progress")).json()
        assert {p["track"] for p in progress} == {"University"}
        assert {p["level"] for p in progress} == {"E", "B"}


class TestProgressionFlow:
    """Lesson requests, completions, exam and verification end to end."""

    async def test_lesson_request_and_completion(self, client: AsyncClient):
        learner = await _create_learner(client)
        base = f"{API}/learners/{learner['id']}/subjects/math"

        lesson = await client.post(f"{base}/lessons", json={"theme": "space"})
        assert lesson.status_code == 200
        assert lesson.json()["rigor_band"] == "steady"
        assert lesson.json()["lesson_number"] == 1

        done = await client.post(f"{base}/lessons/complete", json={"lesson_index": 1, "correct": 4, "total": 4})
        assert done.status_code == 200
        body = done.json()
        assert body["state"] == "advance"
        assert body["progress"]["lesson_index"] == 2
        assert body["learner"]["xp"] == 400

        stale = await client.post(f"{base}/lessons/complete", json={"lesson_index": 1, "correct": 4, "total": 4})
        assert stale.status_code == 409

    async def test_history_is_in_write_order(self, client: AsyncClient):
        learner = await _create_learner(client)
        base = f"{API}/learners/{learner['id']}"
        await client.put(f"{base}/subjects/math/placement", json={"level": "C"})
        for index in (1, 2):
            await client.post(
                f"{base}/subjects/math/lessons/complete",
                json={"lesson_index": index, "correct": 3, "total": 4},
            )

        events = (await client.get(f"{base}/events")).json()

        assert [e["event_type"] for e in events] == [
            "learner.created",
            "subject.placement_applied",
            "lesson.advanced",
            "learner.xp_awarded",
            "lesson.advanced",
            "learner.xp_awarded",
        ]
        assert [e["payload"].get("lesson_index") for e in events if e["event_type"] == "lesson.advanced"] == [1, 2]

    async def test_bad_sample_is_400(self, client: AsyncClient):
        learner = await _create_learner(client)
        base = f"{API}/learners/{learner['id']}/subjects/math"
        response = await client.post(f"{base}/lessons/complete", json={"lesson_index": 1, "correct": 5, "total": 4})
        assert response.status_code == 400

    async def test_level_to_certificate(self, client: AsyncClient):
        learner = await _create_learner(client)
        base = f"{API}/learners/{learner['id']}/subjects/math"
        await client.put(f"{base}/placement", json={"level": "C"})

        for lesson_index in range(1, 13):
            response = await client.post(
                f"{base}/lessons/complete",
                json={"lesson_index": lesson_index, "correct": 3, "total": 4},
            )
            assert response.status_code == 200
        assert response.json()["state"] == "level_complete"

        exam = await client.post(f"{base}/exam", json={})
        assert exam.status_code == 200
        paper = exam.json()
        assert len(paper["questions"]) == 15
        assert "correct_answer" not in paper["questions"][0]

        result = await client.post(
            f"{base}/verification",
            json={"method": "exam", "exam_id": paper["exam_id"], "answers": ["A"] * 15},
        )
        assert result.status_code == 200
        verdict = result.json()
        assert verdict["passed"] is True
        assert verdict["to_level"] == "D"
        assert verdict["certificate"]["level"] == "C"
        assert verdict["certificate"]["verification_id"].startswith("CERT-")

        progress = (await client.get(base)).json()
        assert progress["level"] == "D"
        assert progress["lesson_index"] == 1
        assert progress["awaiting_verification"] is False

        events = (await client.get(f"{API}/learners/{learner['id']}/events")).json()
        assert "certificate.issued" in {e["event_type"] for e in events}

    async def test_exam_before_level_complete_is_409(self, client: AsyncClient):
        learner = await _create_learner(client)
        response = await client.post(f"{API}/learners/{learner['id']}/subjects/math/exam", json={})
        assert response.status_code == 409

    async def test_failed_free_form_verification(self, client: AsyncClient):
        learner = await _create_learner(client)
        base = f"{API}/learners/{learner['id']}/subjects/math"
        await client.put(f"{base}/placement", json={"level": "Beyond P"})
        await client.post(f"{base}/lessons/complete", json={"lesson_index": 1, "correct": 1, "total": 1})

        # 10 words -> 20 skill points with the offline evaluator
        result = await client.post(
            f"{base}/verification",
            json={"method": "project", "text": "one two three four five six seven eight nine ten"},
        )
        assert result.status_code == 200
        assert result.json()["passed"] is False
        assert result.json()["skill_points"] == 20

        progress = (await client.get(base)).json()
        assert progress["level"] == "Beyond P"
        assert progress["awaiting_verification"] is True

    async def test_empty_submission_is_400(self, client: AsyncClient):
        learner = await _create_learner(client)
        base = f"{API}/learners/{learner['id']}/subjects/math"
        await client.put(f"{base}/placement", json={"level": "Beyond T"})
        await client.post(f"{base}/lessons/complete", json={"lesson_index": 1, "correct": 1, "total": 1})

        result = await client.post(f"{base}/verification", json={"method": "questionnaire", "text": ""})
        assert result.status_code == 400


class TestPathwaysAPI:
    async def test_fast_track(self, client: AsyncClient):
        learner = await _create_learner(client)
        base = f"{API}/learners/{learner['id']}/subjects/math"

        bad = await client.put(f"{base}/fast-track", json={"duration": 20})
        assert bad.status_code == 400

        good = await client.put(f"{base}/fast-track", json={"duration": 60})
        assert good.json()["is_fast_track"] is True
        off = await client.delete(f"{base}/fast-track")
        assert off.json()["is_fast_track"] is False

    async def test_relearn_lesson(self, client: AsyncClient):
        learner = await _create_learner(client)
        base = f"{API}/learners/{learner['id']}/subjects/math"

        blocked = await client.post(f"{base}/lessons", json={"kind": "relearn"})
        assert blocked.status_code == 400

        await client.put(f"{base}/relearn", json={"stage": "Primary"})
        done = await client.post(
            f"{base}/lessons/complete",
            json={"lesson_index": 1, "correct": 2, "total": 2, "kind": "relearn"},
        )
        assert done.json()["state"] == "special_completion"
        assert done.json()["certificate"]["verification_id"].startswith("RLN-")
        assert done.json()["progress"]["lesson_index"] == 1

    async def test_specializations_and_media(self, client: AsyncClient):
        learner = await _create_learner(client)
        base = f"{API}/learners/{learner['id']}/subjects/math"

        tags = await client.put(f"{base}/specializations", json={"tags": ["algebra", "algebra", "proofs"]})
        assert tags.json()["specializations"] == ["algebra", "proofs"]

        media = await client.post(f"{base}/media", json={"media_id": "video-7"})
        assert media.json()["completed_media"] == ["video-7"]

    async def test_remove_subject(self, client: AsyncClient):
        learner = await _create_learner(client)
        base = f"{API}/learners/{learner['id']}/subjects/math"
        await client.put(f"{base}/placement", json={"level": "D"})

        assert (await client.delete(base)).status_code == 204
        assert (await client.delete(base)).status_code == 404


class TestCatalogueAPI:
    async def test_create_subject(self, client: AsyncClient):
        created = await client.post(f"{API}/subjects", json={"query": "music theory"})
        assert created.status_code == 201
        assert created.json()["id"] == "music-theory"

        listed = await client.get(f"{API}/subjects")
        assert [s["id"] for s in listed.json()] == ["music-theory"]
