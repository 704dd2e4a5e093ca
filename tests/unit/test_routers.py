"""Route-level tests: envelope, auth guards, and wiring to the services.

Services are patched at the router's module-level ``_service``; auth and DB
dependencies are replaced through ``app.dependency_overrides``.
"""

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.el_common.database import get_db_session
from src.el_common.errors import (
    CourseNotFoundError,
    InsufficientCreditsError,
    TestAlreadySubmittedError,
)
from src.el_gateway.auth.dependencies import get_current_user
from src.el_gateway.user.db_models import UserModel
from src.el_grading.application import schemas as grading_schemas
from src.el_grading.application.schemas import (
    LeaderboardItem,
    LeaderboardResponse,
    LeaderboardStudent,
    SubmitTestResponse,
)
from src.el_ledger.application.schemas import BalanceResponse
from src.el_llm.client import get_llm_client
from src.el_tutor.application.schemas import AskQuestionResponse, MessageItem
from src.main import app

_USER_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")


def _user(role: str = "STUDENT") -> UserModel:
    return UserModel(
        id=_USER_ID,
        email="student@example.com",
        name="Student",
        role=role,
        ai_model="gpt_4o_mini",
        is_active=True,
    )


@pytest.fixture
def db() -> MagicMock:
    session = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest.fixture
def as_student(db):
    app.dependency_overrides[get_current_user] = lambda: _user("STUDENT")
    app.dependency_overrides[get_db_session] = lambda: db
    app.dependency_overrides[get_llm_client] = lambda: AsyncMock()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def as_admin(db):
    app.dependency_overrides[get_current_user] = lambda: _user("ADMIN")
    app.dependency_overrides[get_db_session] = lambda: db
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def no_rate_limit():
    pipe = MagicMock()
    pipe.__aenter__ = AsyncMock(return_value=pipe)
    pipe.__aexit__ = AsyncMock(return_value=None)
    pipe.execute = AsyncMock(return_value=[True, 1])
    redis = MagicMock()
    redis.pipeline.return_value = pipe
    with patch("src.el_gateway.middleware.rate_limit.get_redis", new=AsyncMock(return_value=redis)):
        yield


def _message(msg_id: str, sender: str) -> MessageItem:
    return MessageItem(
        id=msg_id, conversation_id="conv-1", sender=sender, content="x", model=None, created_at=None
    )


class TestAuth:
    async def test_missing_token_401(self, client) -> None:
        resp = await client.get("/api/v1/credits/balance")
        assert resp.status_code == 401

    async def test_admin_route_forbidden_for_student(self, client, as_student) -> None:
        resp = await client.get("/api/v1/credits/reconciliation")
        assert resp.status_code == 403
        assert resp.json()["code"] == 1003


class TestCreditRoutes:
    async def test_balance(self, client, as_student) -> None:
        data = BalanceResponse.from_amount(str(_USER_ID), Decimal("3.5"))
        with patch(
            "src.el_ledger.api.router._service.get_credit_balance", new=AsyncMock(return_value=data)
        ) as get_balance:
            resp = await client.get("/api/v1/credits/balance")
        body = resp.json()
        assert resp.status_code == 200
        assert body["code"] == 0
        assert body["data"]["balance"] == "3.5"
        assert get_balance.call_args.args[1] == str(_USER_ID)

    async def test_transactions_limit_validated(self, client, as_student) -> None:
        resp = await client.get("/api/v1/credits/transactions?limit=0")
        assert resp.status_code == 422

    async def test_reconciliation_for_admin(self, client, as_admin) -> None:
        with patch(
            "src.el_ledger.api.router._service.reconcile",
            new=AsyncMock(return_value=MagicMock(model_dump=lambda: {"balanced": True, "violations": []})),
        ):
            resp = await client.get("/api/v1/credits/reconciliation")
        assert resp.status_code == 200
        assert resp.json()["data"]["balanced"] is True


class TestTutorRoutes:
    async def test_ask_uses_user_model(self, client, as_student, no_rate_limit) -> None:
        data = AskQuestionResponse(question=_message("m-1", "STUDENT"), answer=_message("m-2", "AI"))
        with patch(
            "src.el_tutor.api.router._service.ask_question", new=AsyncMock(return_value=data)
        ) as ask:
            resp = await client.post("/api/v1/chapters/ch-1/ask", json={"question": "Why?"})
        assert resp.status_code == 201
        assert resp.json()["data"]["answer"]["sender"] == "AI"
        args = ask.call_args.args
        assert args[2:] == (str(_USER_ID), "ch-1", "Why?", "gpt_4o_mini")

    async def test_ask_without_credits_402(self, client, as_student, no_rate_limit) -> None:
        with patch(
            "src.el_tutor.api.router._service.ask_question",
            new=AsyncMock(side_effect=InsufficientCreditsError(str(_USER_ID), Decimal("0"))),
        ):
            resp = await client.post("/api/v1/chapters/ch-1/ask", json={"question": "Why?"})
        assert resp.status_code == 402
        assert resp.json()["code"] == 2001
        assert resp.json()["data"] is None

    async def test_empty_question_422(self, client, as_student, no_rate_limit) -> None:
        resp = await client.post("/api/v1/chapters/ch-1/ask", json={"question": ""})
        assert resp.status_code == 422

    async def test_admin_cannot_ask(self, client, as_admin, no_rate_limit) -> None:
        resp = await client.post("/api/v1/chapters/ch-1/ask", json={"question": "Why?"})
        assert resp.status_code == 403


class TestTestRoutes:
    async def test_submit(self, client, as_student, no_rate_limit) -> None:
        data = SubmitTestResponse(test_id="t-1", total_score=80, max_score=100, question_results=[])
        with patch(
            "src.el_grading.api.router._service.submit_test", new=AsyncMock(return_value=data)
        ) as submit:
            resp = await client.post(
                "/api/v1/tests/t-1/submit",
                json={"answers": [{"question_id": "q-1", "student_answer": "4"}]},
            )
        assert resp.status_code == 200
        assert resp.json()["data"]["total_score"] == 80
        answers = submit.call_args.args[4]
        assert answers[0].question_id == "q-1"

    async def test_double_submit_409(self, client, as_student, no_rate_limit) -> None:
        with patch(
            "src.el_grading.api.router._service.submit_test",
            new=AsyncMock(side_effect=TestAlreadySubmittedError("t-1")),
        ):
            resp = await client.post("/api/v1/tests/t-1/submit", json={"answers": []})
        assert resp.status_code == 409

    async def test_my_tests(self, client, as_student) -> None:
        data = grading_schemas.TestHistoryResponse(
            items=[
                grading_schemas.TestSummaryItem(
                    id="t-2",
                    course_id="c-1",
                    course_title="Calculus I",
                    question_count=10,
                    ai_score=None,
                    submitted_at=None,
                    created_at=None,
                )
            ],
            next_cursor=None,
            has_more=False,
        )
        with patch(
            "src.el_grading.api.router._service.list_my_tests", new=AsyncMock(return_value=data)
        ) as listing:
            resp = await client.get("/api/v1/tests/mine?limit=5")
        assert resp.status_code == 200
        assert resp.json()["data"]["items"][0]["question_count"] == 10
        assert listing.call_args.args[1:] == (str(_USER_ID), None, 5)

    async def test_my_tests_admin_forbidden(self, client, as_admin) -> None:
        resp = await client.get("/api/v1/tests/mine")
        assert resp.status_code == 403

    async def test_leaderboard(self, client, as_student) -> None:
        data = LeaderboardResponse(
            course_id="c-1",
            items=[
                LeaderboardItem(
                    rank=1,
                    test_id="t-1",
                    score=95,
                    submitted_at=None,
                    student=LeaderboardStudent(id="s-1", name="Ada"),
                )
            ],
            next_cursor=None,
            has_more=False,
        )
        with patch(
            "src.el_grading.api.router._service.get_leaderboard", new=AsyncMock(return_value=data)
        ) as board:
            resp = await client.get("/api/v1/tests/leaderboard/c-1")
        assert resp.status_code == 200
        body = resp.json()["data"]
        assert body["items"][0]["rank"] == 1
        assert body["items"][0]["student"]["name"] == "Ada"
        assert board.call_args.args[1:] == ("c-1", None, 20)

    async def test_leaderboard_unknown_course_404(self, client, as_student) -> None:
        with patch(
            "src.el_grading.api.router._service.get_leaderboard",
            new=AsyncMock(side_effect=CourseNotFoundError("nope")),
        ):
            resp = await client.get("/api/v1/tests/leaderboard/nope")
        assert resp.status_code == 404

    async def test_leaderboard_limit_bounds(self, client, as_student) -> None:
        resp = await client.get("/api/v1/tests/leaderboard/c-1?limit=0")
        assert resp.status_code == 422


class TestAIModelRoutes:
    async def test_get(self, client, as_student) -> None:
        resp = await client.get("/api/v1/me/ai-model")
        data = resp.json()["data"]
        assert data["model"] == "gpt_4o_mini"
        assert data["available_models"] == ["gpt_4o", "gpt_4o_mini"]

    async def test_put_supported(self, client, as_student, db) -> None:
        resp = await client.put("/api/v1/me/ai-model", json={"model": "gpt_4o"})
        assert resp.status_code == 200
        assert resp.json()["data"]["model"] == "gpt_4o"
        db.commit.assert_awaited_once()

    async def test_put_unsupported_422(self, client, as_student, db) -> None:
        resp = await client.put("/api/v1/me/ai-model", json={"model": "gpt_2"})
        assert resp.status_code == 422
        assert resp.json()["code"] == 1004
        db.commit.assert_not_awaited()


async def test_health(client) -> None:
    resp = await client.get("/health")
    assert resp.json()["status"] == "ok"
