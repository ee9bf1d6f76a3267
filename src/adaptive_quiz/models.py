"""Data classes for the quiz engine domain model."""
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Optional


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    WRITTEN_RESPONSE = "written_response"


class QuizMode(str, Enum):
    QUICK = "quick"
    TEST = "test"
    ADAPTIVE = "adaptive"
    SPACED_REPETITION = "spaced_repetition"


class DifficultyBand(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @property
    def bounds(self) -> tuple[float, float]:
        """Inclusive difficulty range covered by the band."""
        return {
            DifficultyBand.EASY: (1.0, 2.0),
            DifficultyBand.MEDIUM: (2.0, 4.0),
            DifficultyBand.HARD: (4.0, 5.0),
        }[self]


class Rating(str, Enum):
    EASY = "easy"
    CHALLENGING = "challenging"
    HARD = "hard"
    UNRATED = "unrated"


class SessionState(str, Enum):
    INITIALIZING = "initializing"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


def band_for(value: float) -> DifficultyBand:
    if value <= 2.0:
        return DifficultyBand.EASY
    if value >= 4.0:
        return DifficultyBand.HARD
    return DifficultyBand.MEDIUM


@dataclass
class AnswerOption:
    id: int
    question_id: int
    text: str
    is_correct: bool = False


@dataclass
class AcceptableAnswer:
    id: int
    question_id: int
    text: str
    is_primary: bool = False


@dataclass
class Question:
    id: int
    category_id: int
    text: str
    explanation: str = ""
    image_path: Optional[str] = None
    difficulty_value: float = 3.0

    @property
    def band(self) -> DifficultyBand:
        return band_for(self.difficulty_value)


@dataclass
class MultipleChoiceQuestion(Question):
    options: list[AnswerOption] = field(default_factory=list)

    question_type = QuestionType.MULTIPLE_CHOICE


@dataclass
class WrittenResponseQuestion(Question):
    acceptable_answers: list[AcceptableAnswer] = field(default_factory=list)

    question_type = QuestionType.WRITTEN_RESPONSE

    @property
    def primary_answer(self) -> Optional[str]:
        """Answer shown to the learner; the first one when none is marked."""
        for answer in self.acceptable_answers:
            if answer.is_primary:
                return answer.text
        if self.acceptable_answers:
            return self.acceptable_answers[0].text
        return None


@dataclass
class ReviewCard:
    user_id: int
    question_id: int
    next_review_at: datetime
    ease_factor: float = 2.5
    interval: int = 1
    repetitions: int = 0
    last_reviewed_at: Optional[datetime] = None
    id: Optional[int] = None


@dataclass
class ReviewLogEntry:
    card_id: int
    user_id: int
    question_id: int
    quality: int
    ease_factor_after: float
    interval_after: int
    reviewed_at: datetime


@dataclass
class AnswerLog:
    user_id: int
    question_id: int
    is_correct: bool
    mode: QuizMode
    created_at: datetime
    answer_id: Optional[int] = None
    written_answer: Optional[str] = None


@dataclass
class Attempt:
    user_id: int
    total_questions: int
    correct_answers: int
    categories: list[int]
    mode: QuizMode
    duration_seconds: int
    created_at: datetime


@dataclass
class SessionQuestion:
    """A question slot in a session plus what happened to it."""
    question_id: int
    answer_id: Optional[int] = None
    written_answer: Optional[str] = None
    is_correct: Optional[bool] = None
    rating: Optional[str] = None
    rated: bool = False

    @property
    def answered(self) -> bool:
        return self.is_correct is not None


@dataclass
class QuizSession:
    session_id: str
    user_id: int
    mode: QuizMode
    categories: list[int]
    target_question_count: int
    started_at: str  # ISO format
    questions: list[SessionQuestion] = field(default_factory=list)
    current_index: int = 0
    correct_count: int = 0
    state: SessionState = SessionState.INITIALIZING
    difficulty_band: Optional[DifficultyBand] = None
    show_results_at_end: bool = False
    # Adaptive mode: difficulty the next slot should be re-selected around
    pending_target: Optional[float] = None

    @property
    def completed(self) -> bool:
        return self.state == SessionState.COMPLETED

    @property
    def current_slot(self) -> Optional[SessionQuestion]:
        if self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        data = asdict(self)
        data["mode"] = self.mode.value
        data["state"] = self.state.value
        data["difficulty_band"] = self.difficulty_band.value if self.difficulty_band else None
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "QuizSession":
        data = dict(data)
        data["mode"] = QuizMode(data["mode"])
        data["state"] = SessionState(data["state"])
        band = data.get("difficulty_band")
        data["difficulty_band"] = DifficultyBand(band) if band else None
        data["questions"] = [SessionQuestion(**q) for q in data.get("questions", [])]
        return cls(**data)
