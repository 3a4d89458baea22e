"""Domain models for the challenge core.

Records are persisted as JSON documents with camelCase keys, so every model
carries a ``to_dict``/``from_dict`` pair that owns its wire shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import time
from typing import Any

from challenge_app.core.states import ChallengeStatus, ParticipantStatus


def epoch_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(slots=True)
class TestConfig:
    """Question selection parameters, fixed at creation."""

    __test__ = False

    subject: str
    lesson: str
    num_questions: int
    exam_filter: str | None = None
    difficulty: str | None = None

    @property
    def test_name(self) -> str:
        return f"{self.subject} - {self.lesson}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject": self.subject,
            "lesson": self.lesson,
            "examFilter": self.exam_filter,
            "difficulty": self.difficulty,
            "numQuestions": self.num_questions,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TestConfig:
        return cls(
            subject=data["subject"],
            lesson=data["lesson"],
            num_questions=int(data["numQuestions"]),
            exam_filter=data.get("examFilter"),
            difficulty=data.get("difficulty"),
        )


@dataclass(slots=True)
class TestQuestion:
    """Frozen snapshot of a bank question taken when the challenge was created."""

    __test__ = False

    id: str
    options: list[str]
    answer: str
    marks: int = 1
    type: str = "text"
    question_text: str | None = None
    question_image_url: str | None = None
    explanation_text: str | None = None
    explanation_image_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "questionText": self.question_text,
            "questionImageUrl": self.question_image_url,
            "options": list(self.options),
            "answer": self.answer,
            "marks": self.marks,
            "explanationText": self.explanation_text,
            "explanationImageUrl": self.explanation_image_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TestQuestion:
        return cls(
            id=str(data["id"]),
            options=list(data.get("options", [])),
            answer=data["answer"],
            marks=int(data.get("marks", 1)),
            type=data.get("type", "text"),
            question_text=data.get("questionText"),
            question_image_url=data.get("questionImageUrl"),
            explanation_text=data.get("explanationText"),
            explanation_image_url=data.get("explanationImageUrl"),
        )


@dataclass(slots=True)
class UserAnswer:
    """Option picked by a participant for one question (``None`` when skipped)."""

    question_id: str
    selected_option: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"questionId": self.question_id, "selectedOption": self.selected_option}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserAnswer:
        return cls(question_id=str(data["questionId"]), selected_option=data.get("selectedOption"))


@dataclass(slots=True)
class Participant:
    """One user's membership and progress within a challenge."""

    user_id: str
    name: str | None
    status: ParticipantStatus = ParticipantStatus.PENDING
    avatar_url: str | None = None
    score: int | None = None
    time_taken: int | None = None
    answers: list[UserAnswer] | None = None
    rank: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "name": self.name,
            "avatarUrl": self.avatar_url,
            "status": self.status.value,
            "score": self.score,
            "timeTaken": self.time_taken,
            "answers": None if self.answers is None else [a.to_dict() for a in self.answers],
            "rank": self.rank,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Participant:
        raw_answers = data.get("answers")
        return cls(
            user_id=str(data["userId"]),
            name=data.get("name"),
            status=ParticipantStatus(data.get("status", ParticipantStatus.PENDING.value)),
            avatar_url=data.get("avatarUrl"),
            score=data.get("score"),
            time_taken=data.get("timeTaken"),
            answers=None if raw_answers is None else [UserAnswer.from_dict(a) for a in raw_answers],
            rank=data.get("rank"),
        )


@dataclass(slots=True)
class Challenge:
    """A scheduled multi-user quiz match with a frozen question set and deadline."""

    challenge_code: str
    creator_id: str
    creator_name: str | None
    participants: dict[str, Participant]
    test_config: TestConfig
    questions: list[TestQuestion]
    created_at: int
    expires_at: int
    test_status: ChallengeStatus = ChallengeStatus.WAITING
    started_at: int | None = None

    @property
    def test_name(self) -> str:
        return self.test_config.test_name

    @property
    def total_marks(self) -> int:
        return sum(question.marks for question in self.questions)

    def is_past_deadline(self, now_ms: int) -> bool:
        return now_ms > self.expires_at

    def effective_status(self, now_ms: int) -> ChallengeStatus:
        """Stored status, downgraded to ``expired`` once the deadline has passed."""
        if self.test_status != ChallengeStatus.COMPLETED and self.is_past_deadline(now_ms):
            return ChallengeStatus.EXPIRED
        return self.test_status

    def invited(self) -> list[Participant]:
        return [p for p in self.participants.values() if p.user_id != self.creator_id]

    def to_dict(self) -> dict[str, Any]:
        return {
            "challengeCode": self.challenge_code,
            "creatorId": self.creator_id,
            "creatorName": self.creator_name,
            "participants": {uid: p.to_dict() for uid, p in self.participants.items()},
            "testConfig": self.test_config.to_dict(),
            "questions": [q.to_dict() for q in self.questions],
            "testStatus": self.test_status.value,
            "createdAt": self.created_at,
            "expiresAt": self.expires_at,
            "startedAt": self.started_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Challenge:
        return cls(
            challenge_code=data["challengeCode"],
            creator_id=str(data["creatorId"]),
            creator_name=data.get("creatorName"),
            participants={
                str(uid): Participant.from_dict(raw) for uid, raw in data.get("participants", {}).items()
            },
            test_config=TestConfig.from_dict(data["testConfig"]),
            questions=[TestQuestion.from_dict(q) for q in data.get("questions", [])],
            created_at=int(data["createdAt"]),
            expires_at=int(data["expiresAt"]),
            test_status=ChallengeStatus(data.get("testStatus", ChallengeStatus.WAITING.value)),
            started_at=data.get("startedAt"),
        )


@dataclass(slots=True)
class Invite:
    """Pointer to a challenge stored in the invited user's invite list."""

    challenge_code: str
    creator_id: str
    creator_name: str | None
    test_name: str
    num_questions: int
    status: ParticipantStatus
    created_at: int
    expires_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "challengeCode": self.challenge_code,
            "creatorId": self.creator_id,
            "creatorName": self.creator_name,
            "testName": self.test_name,
            "numQuestions": self.num_questions,
            "status": self.status.value,
            "createdAt": self.created_at,
            "expiresAt": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Invite:
        return cls(
            challenge_code=data["challengeCode"],
            creator_id=str(data["creatorId"]),
            creator_name=data.get("creatorName"),
            test_name=data.get("testName", ""),
            num_questions=int(data.get("numQuestions", 0)),
            status=ParticipantStatus(data.get("status", ParticipantStatus.PENDING.value)),
            created_at=int(data.get("createdAt", 0)),
            expires_at=int(data.get("expiresAt", 0)),
        )


@dataclass(slots=True)
class UserInvites:
    user_id: str
    invites: list[Invite] = field(default_factory=list)

    def find(self, challenge_code: str) -> Invite | None:
        return next((i for i in self.invites if i.challenge_code == challenge_code), None)

    def to_dict(self) -> dict[str, Any]:
        return {"userId": self.user_id, "invites": [i.to_dict() for i in self.invites]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserInvites:
        return cls(
            user_id=str(data["userId"]),
            invites=[Invite.from_dict(i) for i in data.get("invites", [])],
        )


@dataclass(slots=True)
class HistoryItem:
    """Summary of one completed challenge from a single participant's view."""

    challenge_code: str
    test_name: str
    creator_name: str | None
    opponent_names: list[str | None]
    user_score: int
    total_possible_score: int
    rank: int | None
    total_participants: int
    completed_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "challengeCode": self.challenge_code,
            "testName": self.test_name,
            "creatorName": self.creator_name,
            "opponentNames": list(self.opponent_names),
            "userScore": self.user_score,
            "totalPossibleScore": self.total_possible_score,
            "rank": self.rank,
            "totalParticipants": self.total_participants,
            "completedAt": self.completed_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HistoryItem:
        return cls(
            challenge_code=data["challengeCode"],
            test_name=data.get("testName", ""),
            creator_name=data.get("creatorName"),
            opponent_names=list(data.get("opponentNames", [])),
            user_score=int(data.get("userScore", 0)),
            total_possible_score=int(data.get("totalPossibleScore", 0)),
            rank=data.get("rank"),
            total_participants=int(data.get("totalParticipants", 0)),
            completed_at=int(data.get("completedAt", 0)),
        )


@dataclass(slots=True)
class UserHistory:
    user_id: str
    completed_challenges: list[HistoryItem] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "completedChallenges": [c.to_dict() for c in self.completed_challenges],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserHistory:
        return cls(
            user_id=str(data["userId"]),
            completed_challenges=[HistoryItem.from_dict(c) for c in data.get("completedChallenges", [])],
        )
