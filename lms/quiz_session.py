"""Quiz-taking state machine.

    loading -> not_started -> in_progress -> submitting -> completed
                                   ^              |
                                   +-- failure ---+

The countdown is deadline based: remaining time is recomputed from the wall
clock on every tick, so skipped reruns or a suspended tab never drift it. The
page calls tick() once a second while timer_active is true; the first tick
that sees zero seconds left submits, and the in-flight flag keeps any later
tick or click from submitting again.
"""
import logging
import math
import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from lms.errors import QuizStateError
from lms.models import Question, Quiz

logger = logging.getLogger(__name__)

SubmitFn = Callable[[Dict[str, str], int], Any]


class QuizPhase(str, Enum):
    LOADING = "loading"
    NOT_FOUND = "not_found"
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTING = "submitting"
    COMPLETED = "completed"


def can_attempt(quiz: Quiz, attempt_count: int) -> bool:
    if attempt_count <= 0:
        return True
    if not quiz.allow_multiple_attempts:
        return False
    if quiz.max_attempts:
        return attempt_count < quiz.max_attempts
    return True


def attempts_left(quiz: Quiz, attempt_count: int) -> Optional[int]:
    """None means unlimited."""
    if not quiz.allow_multiple_attempts:
        return max(0, 1 - attempt_count)
    if quiz.max_attempts:
        return max(0, quiz.max_attempts - attempt_count)
    return None


class Countdown:
    def __init__(self, seconds: int, clock: Callable[[], float] = time.time):
        self.seconds = seconds
        self.deadline: Optional[float] = None
        self.running = False
        self._clock = clock

    def start(self):
        # resuming keeps the original deadline
        if self.deadline is None:
            self.deadline = self._clock() + self.seconds
        self.running = True

    def cancel(self):
        self.running = False

    def remaining(self) -> int:
        if self.deadline is None:
            return self.seconds
        return max(0, math.floor(self.deadline - self._clock()))

    @property
    def expired(self) -> bool:
        return self.deadline is not None and self.remaining() <= 0


class QuizSession:
    def __init__(self, quiz_id, clock: Callable[[], float] = time.time):
        self.quiz_id = quiz_id
        self.phase = QuizPhase.LOADING
        self.quiz: Optional[Quiz] = None
        self.attempt_count = 0
        self.answers: Dict[str, str] = {}
        self.index = 0
        self.started_at: Optional[float] = None
        self.countdown: Optional[Countdown] = None
        self.result: Any = None
        self.error: Optional[str] = None
        self.auto_submitted = False
        self._in_flight = False
        self._clock = clock

    # ------------------------------------------------------------ loading

    def load(self, quiz: Optional[Quiz], attempt_count: int = 0):
        if self.phase not in (QuizPhase.LOADING, QuizPhase.NOT_FOUND):
            raise QuizStateError(f"Quiz already loaded ({self.phase.value})")
        self.attempt_count = attempt_count
        if quiz is None:
            self.phase = QuizPhase.NOT_FOUND
            return
        self.quiz = quiz
        self.phase = QuizPhase.NOT_STARTED

    @property
    def questions(self) -> List[Question]:
        return self.quiz.questions if self.quiz else []

    @property
    def can_start(self) -> bool:
        return (
            self.phase is QuizPhase.NOT_STARTED
            and bool(self.questions)
            and can_attempt(self.quiz, self.attempt_count)
        )

    def start(self):
        if self.phase is not QuizPhase.NOT_STARTED:
            raise QuizStateError("The quiz cannot be started now")
        if not can_attempt(self.quiz, self.attempt_count):
            raise QuizStateError("You have no attempts left for this quiz")
        if not self.questions:
            raise QuizStateError("This quiz has no questions yet")
        self.answers = {}
        self.index = 0
        self.result = None
        self.error = None
        self.auto_submitted = False
        self.started_at = self._clock()
        self.countdown = None
        if self.quiz.time_limit:
            self.countdown = Countdown(int(self.quiz.time_limit) * 60, clock=self._clock)
            self.countdown.start()
        self.phase = QuizPhase.IN_PROGRESS
        logger.info("Quiz %s started (attempt %d)", self.quiz_id, self.attempt_count + 1)

    def reset(self):
        """Back to not_started for a retake, if attempts remain."""
        if self.phase in (QuizPhase.IN_PROGRESS, QuizPhase.SUBMITTING):
            raise QuizStateError("Finish the current attempt first")
        if self.countdown:
            self.countdown.cancel()
        self.countdown = None
        self.answers = {}
        self.index = 0
        if self.quiz is not None:
            self.phase = QuizPhase.NOT_STARTED

    # ---------------------------------------------------------- answering

    def _require_in_progress(self):
        if self.phase is not QuizPhase.IN_PROGRESS:
            raise QuizStateError("The quiz is not in progress")

    @property
    def current_question(self) -> Optional[Question]:
        if not self.questions:
            return None
        return self.questions[self.index]

    def answer(self, question_id, option: str):
        self._require_in_progress()
        if not any(str(q.id) == str(question_id) for q in self.questions):
            raise QuizStateError(f"Unknown question {question_id}")
        self.answers[str(question_id)] = option

    def answer_for(self, question: Question) -> Optional[str]:
        return self.answers.get(str(question.id))

    def go_to(self, index: int):
        self._require_in_progress()
        self.index = max(0, min(len(self.questions) - 1, index))

    def next(self):
        self.go_to(self.index + 1)

    def previous(self):
        self.go_to(self.index - 1)

    @property
    def answered_count(self) -> int:
        return sum(1 for q in self.questions if str(q.id) in self.answers)

    @property
    def progress(self) -> float:
        if not self.questions:
            return 0.0
        return self.answered_count / len(self.questions) * 100

    @property
    def complete(self) -> bool:
        return bool(self.questions) and self.answered_count == len(self.questions)

    # -------------------------------------------------------------- timing

    def time_remaining(self) -> Optional[int]:
        if self.countdown is None:
            return None
        return self.countdown.remaining()

    @property
    def expired(self) -> bool:
        return self.countdown is not None and self.countdown.expired

    @property
    def timer_active(self) -> bool:
        return (
            self.phase is QuizPhase.IN_PROGRESS
            and self.countdown is not None
            and self.countdown.running
        )

    def elapsed_seconds(self) -> int:
        if self.started_at is None:
            return 0
        return max(0, math.floor(self._clock() - self.started_at))

    # ---------------------------------------------------------- submitting

    @property
    def can_submit(self) -> bool:
        return (
            self.phase is QuizPhase.IN_PROGRESS
            and not self._in_flight
            and (self.complete or self.expired)
        )

    def tick(self, submit: SubmitFn) -> Any:
        """Auto-submit once when the countdown hits zero."""
        if self.phase is not QuizPhase.IN_PROGRESS or self.auto_submitted or not self.expired:
            return None
        self.auto_submitted = True
        logger.info("Quiz %s time is up, submitting", self.quiz_id)
        return self.submit(submit, forced=True)

    def submit(self, submit: SubmitFn, forced: bool = False) -> Any:
        """Send answers and elapsed time.

        Returns the server result, or None when a submission is already in
        flight. On failure the session returns to in_progress, keeps the
        answers and re-raises; the user retries by submitting again.
        """
        if self._in_flight or self.phase is QuizPhase.SUBMITTING:
            return None
        self._require_in_progress()
        if not (forced or self.complete or self.expired):
            raise QuizStateError("Please answer every question before submitting")

        self._in_flight = True
        if self.countdown:
            self.countdown.cancel()
        self.phase = QuizPhase.SUBMITTING
        self.error = None
        try:
            result = submit(dict(self.answers), self.elapsed_seconds())
        except Exception as e:
            self.phase = QuizPhase.IN_PROGRESS
            self.error = getattr(e, "message", None) or str(e) or "Failed to submit quiz"
            if self.countdown and not self.countdown.expired:
                self.countdown.start()
            raise
        finally:
            self._in_flight = False

        self.result = result
        self.attempt_count += 1
        self.phase = QuizPhase.COMPLETED
        logger.info("Quiz %s submitted", self.quiz_id)
        return result

    def navigation_state(self) -> Dict[str, Any]:
        """Payload handed to the results page on success."""
        return {
            "quiz_id": self.quiz_id,
            "quiz": self.quiz.model_dump() if self.quiz else None,
            "result": self.result,
        }
