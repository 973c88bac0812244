"""Integration tests for solo sessions and solo completion."""

from __future__ import annotations

import asyncio

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mathmaxxer.db.models import GameAnswer, GameSession
from tests.conftest import auth_headers, log_game_answers, make_profile, make_questions, make_session


class TestCompleteSoloGame:
    @pytest.mark.asyncio
    async def test_new_player_earns_full_base(self, client: AsyncClient, db_session: AsyncSession) -> None:
        """Beginner, 4 of 5 correct, 3 games before -> +15."""
        user = await make_profile(db_session, "alice", practice_rating=1000, total_games=3)
        questions = await make_questions(db_session, 5)
        session = await make_session(db_session, user, total_questions=5)
        await log_game_answers(db_session, session, questions, correct=4)

        resp = await client.post(
            "/api/v1/complete-solo-game", json={"sessionId": session.id}, headers=auth_headers(user)
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data == {
            "success": True,
            "score": 4,
            "points_earned": 15,
            "new_practice_rating": 1015,
            "total_games": 4,
        }

        await db_session.refresh(session)
        await db_session.refresh(user)
        assert session.is_completed is True
        assert session.score == 4
        assert session.completed_at is not None
        assert user.practice_rating == 1015
        assert user.total_games == 4

    @pytest.mark.asyncio
    async def test_experienced_player_decay(self, client: AsyncClient, db_session: AsyncSession) -> None:
        """Same game after 35 games -> floor(15 * 0.67) = 10."""
        user = await make_profile(db_session, "bob", practice_rating=1200, total_games=35)
        questions = await make_questions(db_session, 5)
        session = await make_session(db_session, user, total_questions=5)
        await log_game_answers(db_session, session, questions, correct=4)

        resp = await client.post(
            "/api/v1/complete-solo-game", json={"sessionId": session.id}, headers=auth_headers(user)
        )
        assert resp.status_code == 200
        assert resp.json()["points_earned"] == 10
        assert resp.json()["new_practice_rating"] == 1210

    @pytest.mark.asyncio
    async def test_rating_clamped_at_zero(self, client: AsyncClient, db_session: AsyncSession) -> None:
        user = await make_profile(db_session, "carol", practice_rating=3)
        await make_questions(db_session, 5)
        session = await make_session(db_session, user, total_questions=5)

        resp = await client.post(
            "/api/v1/complete-solo-game", json={"sessionId": session.id}, headers=auth_headers(user)
        )
        assert resp.status_code == 200
        assert resp.json()["points_earned"] == -8
        assert resp.json()["new_practice_rating"] == 0

    @pytest.mark.asyncio
    async def test_second_completion_rejected(self, client: AsyncClient, db_session: AsyncSession) -> None:
        user = await make_profile(db_session, "dave", total_games=0)
        questions = await make_questions(db_session, 5)
        session = await make_session(db_session, user, total_questions=5)
        await log_game_answers(db_session, session, questions, correct=5)
        headers = auth_headers(user)

        first = await client.post("/api/v1/complete-solo-game", json={"sessionId": session.id}, headers=headers)
        assert first.status_code == 200
        second = await client.post("/api/v1/complete-solo-game", json={"sessionId": session.id}, headers=headers)
        assert second.status_code == 409
        assert second.json() == {"error": "Game already completed"}

        await db_session.refresh(user)
        assert user.total_games == 1
        assert user.practice_rating == 1015

    @pytest.mark.asyncio
    async def test_other_users_session_rejected(self, client: AsyncClient, db_session: AsyncSession) -> None:
        owner = await make_profile(db_session, "owner")
        intruder = await make_profile(db_session, "intruder")
        session = await make_session(db_session, owner)

        resp = await client.post(
            "/api/v1/complete-solo-game", json={"sessionId": session.id}, headers=auth_headers(intruder)
        )
        assert resp.status_code == 401
        assert resp.json()["error"] == "Unauthorized: You can only complete your own games"

    @pytest.mark.asyncio
    async def test_unknown_session(self, client: AsyncClient, db_session: AsyncSession) -> None:
        user = await make_profile(db_session, "erin")
        resp = await client.post(
            "/api/v1/complete-solo-game", json={"sessionId": "missing"}, headers=auth_headers(user)
        )
        assert resp.status_code == 404
        assert resp.json() == {"error": "Game session not found"}

    @pytest.mark.asyncio
    async def test_missing_session_id(self, client: AsyncClient, db_session: AsyncSession) -> None:
        user = await make_profile(db_session, "frank")
        resp = await client.post("/api/v1/complete-solo-game", json={}, headers=auth_headers(user))
        assert resp.status_code == 400
        assert "sessionId" in resp.json()["error"]

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client: AsyncClient, db_session: AsyncSession) -> None:
        resp = await client.post("/api/v1/complete-solo-game", json={"sessionId": "x"})
        assert resp.status_code == 401
        assert resp.json() == {"error": "Authentication required"}

    @pytest.mark.asyncio
    async def test_invalid_token(self, client: AsyncClient, db_session: AsyncSession) -> None:
        resp = await client.post(
            "/api/v1/complete-solo-game",
            json={"sessionId": "x"},
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert resp.status_code == 401


class TestSessionAnswers:
    @pytest.mark.asyncio
    async def test_full_flow_score_matches_correct_answers(
        self, client: AsyncClient, db_session: AsyncSession
    ) -> None:
        """Start a session, answer through the API, complete: score == correct answer count."""
        user = await make_profile(db_session, "gina")
        questions = await make_questions(db_session, 5)
        headers = auth_headers(user)

        resp = await client.post(
            "/api/v1/sessions", json={"difficulty": "beginner", "time_control": "5+5"}, headers=headers
        )
        assert resp.status_code == 201
        session = resp.json()
        assert session["total_questions"] == 5
        assert session["is_completed"] is False

        answers = [q.answer for q in questions[:3]] + ["0", "nope"]
        verdicts = []
        for question, answer in zip(questions, answers):
            r = await client.post(
                f"/api/v1/sessions/{session['id']}/answers",
                json={"question_id": question.id, "user_answer": answer},
                headers=headers,
            )
            assert r.status_code == 201
            verdicts.append(r.json()["is_correct"])
        assert verdicts == [True, True, True, False, False]

        done = await client.post("/api/v1/complete-solo-game", json={"sessionId": session["id"]}, headers=headers)
        assert done.status_code == 200
        assert done.json()["score"] == 3

        count = await db_session.execute(
            select(func.count(GameAnswer.id)).where(
                GameAnswer.game_session_id == session["id"], GameAnswer.is_correct.is_(True)
            )
        )
        assert count.scalar_one() == 3

    @pytest.mark.asyncio
    async def test_duplicate_question_rejected(self, client: AsyncClient, db_session: AsyncSession) -> None:
        user = await make_profile(db_session, "hank")
        questions = await make_questions(db_session, 2)
        session = await make_session(db_session, user, total_questions=2)
        headers = auth_headers(user)
        url = f"/api/v1/sessions/{session.id}/answers"
        body = {"question_id": questions[0].id, "user_answer": questions[0].answer}

        assert (await client.post(url, json=body, headers=headers)).status_code == 201
        resp = await client.post(url, json=body, headers=headers)
        assert resp.status_code == 400
        assert resp.json() == {"error": "Question already answered"}

    @pytest.mark.asyncio
    async def test_answers_beyond_total_rejected(self, client: AsyncClient, db_session: AsyncSession) -> None:
        user = await make_profile(db_session, "ivy")
        questions = await make_questions(db_session, 3)
        session = await make_session(db_session, user, total_questions=2)
        headers = auth_headers(user)
        url = f"/api/v1/sessions/{session.id}/answers"

        for q in questions[:2]:
            assert (await client.post(url, json={"question_id": q.id, "user_answer": "1"}, headers=headers)).status_code == 201
        resp = await client.post(url, json={"question_id": questions[2].id, "user_answer": "1"}, headers=headers)
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_answer_after_completion_rejected(self, client: AsyncClient, db_session: AsyncSession) -> None:
        user = await make_profile(db_session, "jack")
        questions = await make_questions(db_session, 1)
        session = await make_session(db_session, user, total_questions=1)
        headers = auth_headers(user)
        await client.post("/api/v1/complete-solo-game", json={"sessionId": session.id}, headers=headers)

        resp = await client.post(
            f"/api/v1/sessions/{session.id}/answers",
            json={"question_id": questions[0].id, "user_answer": questions[0].answer},
            headers=headers,
        )
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_invalid_difficulty(self, client: AsyncClient, db_session: AsyncSession) -> None:
        user = await make_profile(db_session, "kate")
        resp = await client.post(
            "/api/v1/sessions", json={"difficulty": "godlike", "time_control": "5+5"}, headers=auth_headers(user)
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_questions_listing_hides_answers(self, client: AsyncClient, db_session: AsyncSession) -> None:
        user = await make_profile(db_session, "liam")
        await make_questions(db_session, 4, difficulty="expert")
        resp = await client.get("/api/v1/questions?difficulty=expert&limit=3", headers=auth_headers(user))
        assert resp.status_code == 200
        data = resp.json()
        assert len(data) == 3
        assert all("answer" not in q for q in data)
        assert {q["difficulty"] for q in data} == {"expert"}

    @pytest.mark.asyncio
    async def test_session_persisted(self, client: AsyncClient, db_session: AsyncSession) -> None:
        user = await make_profile(db_session, "mia")
        resp = await client.post(
            "/api/v1/sessions", json={"difficulty": "master", "time_control": "3+2"}, headers=auth_headers(user)
        )
        stored = await db_session.get(GameSession, resp.json()["id"])
        assert stored is not None
        assert stored.user_id == user.id
        assert stored.total_questions == 2

    @pytest.mark.asyncio
    async def test_question_from_other_difficulty_rejected(
        self, client: AsyncClient, db_session: AsyncSession
    ) -> None:
        user = await make_profile(db_session, "nora")
        (easy,) = await make_questions(db_session, 1, difficulty="beginner")
        session = await make_session(db_session, user, difficulty="master", total_questions=2)

        resp = await client.post(
            f"/api/v1/sessions/{session.id}/answers",
            json={"question_id": easy.id, "user_answer": easy.answer},
            headers=auth_headers(user),
        )
        assert resp.status_code == 400
        assert resp.json() == {"error": "Question difficulty does not match this game"}

        stored = await db_session.execute(
            select(func.count(GameAnswer.id)).where(GameAnswer.game_session_id == session.id)
        )
        assert stored.scalar_one() == 0


class TestConcurrentSoloCompletion:
    @pytest.mark.asyncio
    async def test_parallel_completions_pay_once(self, client: AsyncClient, db_session: AsyncSession) -> None:
        user = await make_profile(db_session, "olga", practice_rating=1000, total_games=3)
        questions = await make_questions(db_session, 5)
        session = await make_session(db_session, user, total_questions=5)
        await log_game_answers(db_session, session, questions, correct=4)
        headers = auth_headers(user)

        responses = await asyncio.gather(*(
            client.post("/api/v1/complete-solo-game", json={"sessionId": session.id}, headers=headers)
            for _ in range(4)
        ))
        codes = sorted(r.status_code for r in responses)
        assert codes == [200, 409, 409, 409]

        await db_session.refresh(user)
        assert user.practice_rating == 1015
        assert user.total_games == 4
