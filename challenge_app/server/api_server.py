"""FastAPI server that exposes the challenge lifecycle to the web front end."""

from __future__ import annotations

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import uvicorn

from challenge_app.constants.about import APP_NAME, APP_VERSION
from challenge_app.core.challenge_manager import ChallengeManager
from challenge_app.core.errors import PersistenceFailure
from challenge_app.core.markdown_math_renderer import renderer
from challenge_app.core.models import Challenge, TestConfig, TestQuestion, UserAnswer
from challenge_app.core.results import OperationResult
from challenge_app.core.services.scoreboard import RankedRow
from challenge_app.core.states import ChallengeStatus, ParticipantStatus

_STATUS_BY_ERROR_CODE = {
    "not_found": 404,
    "unauthorized": 403,
    "invalid_state": 409,
    "already_finalized": 409,
    "expired": 410,
    "insufficient_questions": 422,
}


class CreateChallengePayload(BaseModel):
    """Payload schema for creating a challenge."""

    creator_id: str
    creator_name: str | None = None
    subject: str
    lesson: str
    num_questions: int = Field(gt=0)
    exam_filter: str | None = "all"
    difficulty: str | None = None
    challenged_user_ids: list[str] = Field(default_factory=list)


class ActorPayload(BaseModel):
    """Identifies the user performing an action."""

    user_id: str


class AnswerPayload(BaseModel):
    question_id: str
    selected_option: str | None = None


class SubmitPayload(BaseModel):
    """Payload schema for a participant's submitted attempt."""

    user_id: str
    answers: list[AnswerPayload] = Field(default_factory=list)
    time_taken_seconds: int = Field(ge=0)


def _get_manager_dependency(manager: ChallengeManager):
    def dependency() -> ChallengeManager:
        return manager

    return dependency


def _unwrap(result: OperationResult):
    if result.ok:
        return result.value
    raise HTTPException(
        status_code=_STATUS_BY_ERROR_CODE.get(result.error_code or "", 400),
        detail={"code": result.error_code, "message": result.message},
    )


def _reveals_answers(challenge: Challenge, viewer_id: str | None) -> bool:
    if challenge.test_status in (ChallengeStatus.COMPLETED, ChallengeStatus.EXPIRED):
        return True
    viewer = challenge.participants.get(viewer_id or "")
    return viewer is not None and viewer.status == ParticipantStatus.COMPLETED


def _question_payload(question: TestQuestion, reveal: bool) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": question.id,
        "type": question.type,
        "question_html": renderer.render_fragment(question.question_text),
        "question_image_url": question.question_image_url,
        "options_html": [renderer.render_inline(option) for option in question.options],
        "marks": question.marks,
    }
    if reveal:
        payload["answer"] = question.answer
        payload["explanation_html"] = renderer.render_fragment(question.explanation_text)
        payload["explanation_image_url"] = question.explanation_image_url
    return payload


def _challenge_payload(challenge: Challenge, viewer_id: str | None = None) -> dict[str, object]:
    reveal = _reveals_answers(challenge, viewer_id)
    document = challenge.to_dict()
    if not reveal:
        for participant in document["participants"].values():
            participant["answers"] = None
    document["testName"] = challenge.test_name
    document["totalMarks"] = challenge.total_marks
    document["questions"] = [_question_payload(q, reveal) for q in challenge.questions]
    return document


def _standing_payload(row: RankedRow) -> dict[str, object]:
    return {
        "rank": row.rank,
        "user_id": row.user_id,
        "name": row.name,
        "score": row.score,
        "time_taken": row.time_taken,
    }


def create_api_app(manager: ChallengeManager) -> FastAPI:
    """Create a FastAPI application wired to the provided challenge manager."""
    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION)
    manager_dep = _get_manager_dependency(manager)

    @app.exception_handler(PersistenceFailure)
    async def persistence_failure_handler(request: Request, exc: PersistenceFailure) -> JSONResponse:
        return JSONResponse(
            status_code=503,
            content={"detail": {"code": "persistence_failure", "message": str(exc)}},
        )

    @app.post("/challenges", status_code=201)
    def create_challenge(
        payload: CreateChallengePayload,
        service: ChallengeManager = Depends(manager_dep),
    ) -> dict[str, object]:
        config = TestConfig(
            subject=payload.subject,
            lesson=payload.lesson,
            num_questions=payload.num_questions,
            exam_filter=payload.exam_filter,
            difficulty=payload.difficulty,
        )
        challenge = _unwrap(
            service.create_challenge(
                payload.creator_id,
                payload.creator_name,
                config,
                payload.challenged_user_ids,
            )
        )
        return {
            "challenge_code": challenge.challenge_code,
            "expires_at": challenge.expires_at,
        }

    @app.get("/challenges/{challenge_code}")
    def get_challenge(
        challenge_code: str,
        user_id: str | None = None,
        service: ChallengeManager = Depends(manager_dep),
    ) -> dict[str, object]:
        challenge = _unwrap(service.get_challenge(challenge_code))
        return _challenge_payload(challenge, user_id)

    @app.post("/challenges/{challenge_code}/accept")
    def accept_challenge(
        challenge_code: str,
        payload: ActorPayload,
        service: ChallengeManager = Depends(manager_dep),
    ) -> dict[str, object]:
        challenge = _unwrap(service.accept_challenge(challenge_code, payload.user_id))
        return _challenge_payload(challenge, payload.user_id)

    @app.post("/challenges/{challenge_code}/reject")
    def reject_challenge(
        challenge_code: str,
        payload: ActorPayload,
        service: ChallengeManager = Depends(manager_dep),
    ) -> dict[str, object]:
        _unwrap(service.reject_challenge(challenge_code, payload.user_id))
        return {"challenge_code": challenge_code, "status": ParticipantStatus.REJECTED.value}

    @app.post("/challenges/{challenge_code}/start")
    def start_challenge(
        challenge_code: str,
        payload: ActorPayload,
        service: ChallengeManager = Depends(manager_dep),
    ) -> dict[str, object]:
        challenge = _unwrap(service.start_challenge(challenge_code, payload.user_id))
        return _challenge_payload(challenge, payload.user_id)

    @app.post("/challenges/{challenge_code}/submit")
    def submit_attempt(
        challenge_code: str,
        payload: SubmitPayload,
        service: ChallengeManager = Depends(manager_dep),
    ) -> dict[str, object]:
        answers = [
            UserAnswer(question_id=answer.question_id, selected_option=answer.selected_option)
            for answer in payload.answers
        ]
        outcome = _unwrap(
            service.submit_attempt(challenge_code, payload.user_id, answers, payload.time_taken_seconds)
        )
        return {
            "challenge_code": challenge_code,
            "score": outcome.breakdown.score,
            "total_marks": outcome.challenge.total_marks,
            "correct": outcome.breakdown.correct,
            "incorrect": outcome.breakdown.incorrect,
            "unanswered": outcome.breakdown.unanswered,
            "points_awarded": outcome.points_awarded,
            "test_status": outcome.challenge.test_status.value,
        }

    @app.get("/challenges/{challenge_code}/results")
    def get_results(
        challenge_code: str,
        service: ChallengeManager = Depends(manager_dep),
    ) -> dict[str, object]:
        results = _unwrap(service.get_results(challenge_code))
        return {
            "challenge": _challenge_payload(results.challenge),
            "standings": [_standing_payload(row) for row in results.standings],
        }

    @app.get("/users/{user_id}/invites")
    def list_invites(
        user_id: str,
        pending_only: bool = False,
        service: ChallengeManager = Depends(manager_dep),
    ) -> dict[str, object]:
        invites = service.list_invites(user_id, pending_only=pending_only)
        return {"user_id": user_id, "invites": [invite.to_dict() for invite in invites]}

    @app.get("/users/{user_id}/history")
    def list_history(
        user_id: str,
        service: ChallengeManager = Depends(manager_dep),
    ) -> dict[str, object]:
        items = service.list_history(user_id)
        return {"user_id": user_id, "completed_challenges": [item.to_dict() for item in items]}

    return app


def run_api_server(
    manager: ChallengeManager,
    host: str,
    port: int,
    log_level: str = "info",
) -> None:
    """Serve the API with uvicorn until interrupted."""
    app = create_api_app(manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level=log_level.lower())
    server = uvicorn.Server(config)
    server.run()
