"""Business logic for the peer challenge lifecycle.

Every mutating operation holds the lock of its challenge code for the whole
read-modify-write, so concurrent submissions to one challenge are applied one
after another. Expiry is lazy: read paths report the effective status without
writing, and the next mutating call persists ``expired`` and is rejected.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
import logging
import random
from typing import TypeVar

from challenge_app.constants.challenge_constants import CHALLENGE_CODE_MAX_ATTEMPTS
from challenge_app.core.challenge_code import ChallengeCodeGenerator
from challenge_app.core.errors import (
    ChallengeError,
    Expired,
    InsufficientQuestions,
    InvalidState,
    NotFound,
    PersistenceFailure,
    Unauthorized,
)
from challenge_app.core.models import (
    Challenge,
    HistoryItem,
    Invite,
    Participant,
    TestConfig,
    UserAnswer,
    epoch_millis,
)
from challenge_app.core.question_bank import freeze_question
from challenge_app.core.results import ChallengeResults, OperationResult, SubmissionOutcome
from challenge_app.core.services.challenge_repository import ChallengeRepository
from challenge_app.core.services.collaborators import (
    JsonPointsLedger,
    JsonQuestionBank,
    JsonUserDirectory,
    PointsLedger,
    QuestionSource,
    UserDirectory,
    UserSummary,
)
from challenge_app.core.services.history_log import HistoryLog
from challenge_app.core.services.invite_book import InviteBook
from challenge_app.core.services.json_store import KeyedLocks, is_valid_key
from challenge_app.core.services.scoreboard import build_rows, rank_participants, score_answers
from challenge_app.core.settings import ChallengeSettings
from challenge_app.core.states import (
    ChallengeStatus,
    ParticipantStatus,
    transition_challenge,
    transition_participant,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SETTLED = (ParticipantStatus.COMPLETED, ParticipantStatus.REJECTED)


class ChallengeManager:
    """Facade over the challenge, invite and history stores and the external services."""

    def __init__(
        self,
        challenges: ChallengeRepository,
        invites: InviteBook,
        history: HistoryLog,
        question_source: QuestionSource,
        user_directory: UserDirectory,
        points_ledger: PointsLedger,
        *,
        expiry_window_ms: int,
        points_per_mark: int = 1,
        clock: Callable[[], int] = epoch_millis,
        code_generator: ChallengeCodeGenerator | None = None,
        rng: random.Random | None = None,
    ) -> None:
        if expiry_window_ms <= 0:
            raise ValueError("Expiry window must be positive.")
        self._challenges = challenges
        self._invites = invites
        self._history = history
        self._question_source = question_source
        self._user_directory = user_directory
        self._points_ledger = points_ledger
        self._expiry_window_ms = expiry_window_ms
        self._points_per_mark = points_per_mark
        self._clock = clock
        self._codes = code_generator or ChallengeCodeGenerator()
        self._rng = rng or random.Random()
        self._locks = KeyedLocks()

    @classmethod
    def from_settings(cls, settings: ChallengeSettings) -> ChallengeManager:
        return cls(
            ChallengeRepository(settings.challenges_dir),
            InviteBook(settings.invites_dir),
            HistoryLog(settings.history_dir),
            JsonQuestionBank(settings.question_bank_dir),
            JsonUserDirectory(settings.users_file),
            JsonPointsLedger(settings.points_dir),
            expiry_window_ms=settings.expiry_window_ms,
            points_per_mark=settings.points_per_mark,
        )

    # --- Public operations ---

    def create_challenge(
        self,
        creator_id: str,
        creator_name: str | None,
        test_config: TestConfig,
        challenged_user_ids: list[str],
    ) -> OperationResult[Challenge]:
        return self._attempt(
            "create",
            lambda: self._create(creator_id, creator_name, test_config, challenged_user_ids),
        )

    def get_challenge(self, challenge_code: str) -> OperationResult[Challenge]:
        def view() -> Challenge:
            challenge = self._load(challenge_code)
            return replace(challenge, test_status=challenge.effective_status(self._clock()))

        return self._attempt("view", view)

    def accept_challenge(self, challenge_code: str, user_id: str) -> OperationResult[Challenge]:
        return self._attempt(
            "accept", lambda: self._respond(challenge_code, user_id, ParticipantStatus.ACCEPTED)
        )

    def reject_challenge(self, challenge_code: str, user_id: str) -> OperationResult[Challenge]:
        return self._attempt(
            "reject", lambda: self._respond(challenge_code, user_id, ParticipantStatus.REJECTED)
        )

    def start_challenge(self, challenge_code: str, user_id: str) -> OperationResult[Challenge]:
        return self._attempt("start", lambda: self._start(challenge_code, user_id))

    def submit_attempt(
        self,
        challenge_code: str,
        user_id: str,
        answers: list[UserAnswer],
        time_taken_seconds: int,
    ) -> OperationResult[SubmissionOutcome]:
        return self._attempt(
            "submit",
            lambda: self._submit(challenge_code, user_id, answers, time_taken_seconds),
        )

    def get_results(self, challenge_code: str) -> OperationResult[ChallengeResults]:
        return self._attempt("results", lambda: self._results(challenge_code))

    def list_invites(self, user_id: str, *, pending_only: bool = False) -> list[Invite]:
        return self._invites.list_for(user_id, pending_only=pending_only, now_ms=self._clock())

    def list_history(self, user_id: str) -> list[HistoryItem]:
        return self._history.list_for(user_id)

    # --- Creation ---

    def _create(
        self,
        creator_id: str,
        creator_name: str | None,
        test_config: TestConfig,
        challenged_user_ids: list[str],
    ) -> Challenge:
        if test_config.num_questions <= 0:
            raise InvalidState("A challenge needs at least one question.")
        invited_ids = list(dict.fromkeys(uid for uid in challenged_user_ids if uid and uid != creator_id))
        invalid = [uid for uid in [creator_id, *invited_ids] if not is_valid_key(uid)]
        if invalid:
            raise InvalidState(f"Invalid user id(s): {', '.join(invalid)}.")

        pool = self._question_source.select_questions(
            test_config.subject,
            test_config.lesson,
            test_config.exam_filter,
            test_config.difficulty,
        )
        if len(pool) < test_config.num_questions:
            raise InsufficientQuestions(
                f"Not enough questions available in the bank for {test_config.subject} - "
                f"{test_config.lesson} (found {len(pool)}, need {test_config.num_questions}). "
                "Try different filters or add more questions."
            )
        shuffled = list(pool)
        self._rng.shuffle(shuffled)
        questions = [freeze_question(item) for item in shuffled[: test_config.num_questions]]

        creator_summary = self._lookup_user(creator_id)
        participants: dict[str, Participant] = {
            creator_id: Participant(
                user_id=creator_id,
                name=creator_name or (creator_summary.name if creator_summary else None),
                avatar_url=creator_summary.avatar_url if creator_summary else None,
                status=ParticipantStatus.ACCEPTED,
            )
        }
        for user_id in invited_ids:
            summary = self._lookup_user(user_id)
            participants[user_id] = Participant(
                user_id=user_id,
                name=summary.name if summary else None,
                avatar_url=summary.avatar_url if summary else None,
                status=ParticipantStatus.PENDING,
            )

        now = self._clock()
        challenge = Challenge(
            challenge_code=self._allocate_code(),
            creator_id=creator_id,
            creator_name=creator_name,
            participants=participants,
            test_config=test_config,
            questions=questions,
            created_at=now,
            expires_at=now + self._expiry_window_ms,
        )

        with self._locks.hold(challenge.challenge_code):
            self._challenges.save(challenge)
            self._fan_out_invites(challenge, invited_ids)

        logger.info(
            "Challenge %s created by %s with %d question(s) and %d invitee(s)",
            challenge.challenge_code,
            creator_id,
            len(questions),
            len(invited_ids),
        )
        return challenge

    def _allocate_code(self) -> str:
        for _ in range(CHALLENGE_CODE_MAX_ATTEMPTS):
            code = self._codes.next_code()
            if not self._challenges.exists(code):
                return code
            logger.warning("Challenge code %s already in use, generating another", code)
        raise PersistenceFailure("Could not allocate an unused challenge code.")

    def _fan_out_invites(self, challenge: Challenge, invited_ids: list[str]) -> None:
        """Write one invite per invitee, undoing everything if any write fails."""
        written: list[str] = []
        try:
            for user_id in invited_ids:
                self._invites.add(
                    user_id,
                    Invite(
                        challenge_code=challenge.challenge_code,
                        creator_id=challenge.creator_id,
                        creator_name=challenge.creator_name,
                        test_name=f"{challenge.test_name} Challenge",
                        num_questions=challenge.test_config.num_questions,
                        status=ParticipantStatus.PENDING,
                        created_at=challenge.created_at,
                        expires_at=challenge.expires_at,
                    ),
                )
                written.append(user_id)
        except PersistenceFailure:
            logger.error("Invite fan-out failed for %s, rolling back", challenge.challenge_code)
            for user_id in written:
                try:
                    self._invites.remove(user_id, challenge.challenge_code)
                except PersistenceFailure:
                    logger.exception("Could not roll back invite for %s", user_id)
            self._challenges.delete(challenge.challenge_code)
            raise

    # --- Responses and start ---

    def _respond(self, challenge_code: str, user_id: str, target: ParticipantStatus) -> Challenge:
        with self._locks.hold(challenge_code):
            challenge = self._load(challenge_code)
            self._expire_if_due(challenge)
            participant = self._participant(challenge, user_id)

            previous = participant.status
            participant.status = transition_participant(previous, target)
            if target == ParticipantStatus.ACCEPTED:
                self._refresh_identity(participant)
            self._challenges.save(challenge)

        if user_id != challenge.creator_id:
            self._invites.set_status(user_id, challenge_code, participant.status)
        if previous != participant.status:
            logger.info("User %s %s challenge %s", user_id, participant.status.value, challenge_code)
        return challenge

    def _start(self, challenge_code: str, user_id: str) -> Challenge:
        with self._locks.hold(challenge_code):
            challenge = self._load(challenge_code)
            if challenge.creator_id != user_id:
                raise Unauthorized("Only the creator can start the challenge.")
            self._expire_if_due(challenge)
            if challenge.test_status != ChallengeStatus.WAITING:
                raise InvalidState("Challenge already started or completed.")
            if any(p.status == ParticipantStatus.PENDING for p in challenge.invited()):
                raise InvalidState("Not all invited participants have responded yet.")

            challenge.test_status = transition_challenge(challenge.test_status, ChallengeStatus.STARTED)
            challenge.started_at = self._clock()
            self._challenges.save(challenge)

        logger.info("Challenge %s started by %s", challenge_code, user_id)
        return challenge

    # --- Submission ---

    def _submit(
        self,
        challenge_code: str,
        user_id: str,
        answers: list[UserAnswer],
        time_taken_seconds: int,
    ) -> SubmissionOutcome:
        with self._locks.hold(challenge_code):
            challenge = self._load(challenge_code)
            self._expire_if_due(challenge)
            if challenge.test_status != ChallengeStatus.STARTED:
                raise InvalidState("Challenge not started or already completed.")
            participant = self._participant(challenge, user_id)
            participant.status = transition_participant(participant.status, ParticipantStatus.COMPLETED)

            breakdown = score_answers(challenge.questions, answers)
            participant.score = breakdown.score
            participant.time_taken = max(0, int(time_taken_seconds))
            participant.answers = list(answers)

            if all(p.status in _SETTLED for p in challenge.participants.values()):
                challenge.test_status = transition_challenge(challenge.test_status, ChallengeStatus.COMPLETED)
            elif challenge.is_past_deadline(self._clock()):
                # Deadline passed mid-submission: keep the attempt, close the challenge.
                challenge.test_status = transition_challenge(challenge.test_status, ChallengeStatus.EXPIRED)

            # History before the challenge record: re-recording overwrites.
            self._record_history(challenge, user_id)
            self._challenges.save(challenge)

        logger.info(
            "User %s submitted challenge %s: score %d/%d in %ss (challenge now %s)",
            user_id,
            challenge_code,
            breakdown.score,
            challenge.total_marks,
            participant.time_taken,
            challenge.test_status.value,
        )
        points = self._award_points(user_id, breakdown.score)
        return SubmissionOutcome(challenge=challenge, breakdown=breakdown, points_awarded=points)

    def _record_history(self, challenge: Challenge, submitter_id: str | None = None) -> None:
        """Record the submitter's entry, or everyone's final entry once the challenge is over."""
        ranked = {p.user_id: p for p in rank_participants(list(challenge.participants.values()))}
        if challenge.test_status in (ChallengeStatus.COMPLETED, ChallengeStatus.EXPIRED):
            recipients = list(ranked)
        else:
            recipients = [submitter_id]
        now = self._clock()
        for user_id in recipients:
            participant = ranked[user_id]
            completed_at = now if user_id == submitter_id else self._first_completed_at(user_id, challenge, now)
            self._history.record(
                user_id,
                HistoryItem(
                    challenge_code=challenge.challenge_code,
                    test_name=challenge.test_name,
                    creator_name=challenge.creator_name,
                    opponent_names=[p.name or f"User {uid[:6]}" for uid, p in ranked.items() if uid != user_id],
                    user_score=participant.score or 0,
                    total_possible_score=challenge.total_marks,
                    rank=participant.rank,
                    total_participants=len(ranked),
                    completed_at=completed_at,
                ),
            )

    def _first_completed_at(self, user_id: str, challenge: Challenge, default: int) -> int:
        for entry in self._history.get(user_id).completed_challenges:
            if entry.challenge_code == challenge.challenge_code:
                return entry.completed_at
        return default

    def _award_points(self, user_id: str, score: int) -> int:
        delta = score * self._points_per_mark
        if delta == 0:
            return 0
        try:
            self._points_ledger.apply_points_delta(user_id, delta)
        except Exception:
            logger.exception("Failed to update points for user %s after challenge submission", user_id)
            return 0
        return delta

    # --- Results ---

    def _results(self, challenge_code: str) -> ChallengeResults:
        challenge = self._load(challenge_code)
        status = challenge.effective_status(self._clock())
        if status not in (ChallengeStatus.COMPLETED, ChallengeStatus.EXPIRED):
            raise InvalidState("Challenge results are not yet available.")

        ranked = rank_participants(list(challenge.participants.values()))
        participants = dict(challenge.participants)
        for participant in ranked:
            participants[participant.user_id] = participant
        view = replace(challenge, participants=participants, test_status=status)
        return ChallengeResults(challenge=view, standings=build_rows(ranked))

    # --- Helpers ---

    def _attempt(self, action: str, operation: Callable[[], T]) -> OperationResult[T]:
        try:
            return OperationResult.success(operation())
        except ChallengeError as exc:
            logger.info("Challenge %s rejected (%s): %s", action, exc.code, exc.message)
            return OperationResult.failure(exc)

    def _load(self, challenge_code: str) -> Challenge:
        challenge = self._challenges.get(challenge_code)
        if challenge is None:
            raise NotFound("Challenge not found.")
        return challenge

    @staticmethod
    def _participant(challenge: Challenge, user_id: str) -> Participant:
        participant = challenge.participants.get(user_id)
        if participant is None:
            raise NotFound("User not part of this challenge.")
        return participant

    def _expire_if_due(self, challenge: Challenge) -> None:
        """Persist ``expired`` and raise if the deadline has passed."""
        if challenge.effective_status(self._clock()) != ChallengeStatus.EXPIRED:
            return
        if challenge.test_status != ChallengeStatus.EXPIRED:
            challenge.test_status = transition_challenge(challenge.test_status, ChallengeStatus.EXPIRED)
            self._record_history(challenge)
            self._challenges.save(challenge)
            logger.info("Challenge %s expired", challenge.challenge_code)
        raise Expired("Challenge has expired.")

    def _lookup_user(self, user_id: str) -> UserSummary | None:
        try:
            return self._user_directory.resolve_user(user_id)
        except Exception:
            logger.warning("User lookup failed for %s", user_id, exc_info=True)
            return None

    def _refresh_identity(self, participant: Participant) -> None:
        summary = self._lookup_user(participant.user_id)
        if summary is not None:
            participant.name = summary.name or participant.name
            participant.avatar_url = summary.avatar_url or participant.avatar_url
        if not participant.name:
            participant.name = f"User {participant.user_id[:6]}"
