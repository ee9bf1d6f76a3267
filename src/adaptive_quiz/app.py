"""Interactive CLI application."""
import sys
import time
from contextlib import closing

from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import IntPrompt, Prompt
from rich.table import Table

from adaptive_quiz.config import get_settings
from adaptive_quiz.db import get_connection, init_db
from adaptive_quiz.errors import QuizEngineError, ValidationError
from adaptive_quiz.history import get_user_history, get_weak_categories
from adaptive_quiz.mastery import compare_weekly_performance, display_score
from adaptive_quiz.models import MultipleChoiceQuestion, QuizMode, QuizSession, Rating
from adaptive_quiz.questions import list_categories
from adaptive_quiz.scheduler import get_user_stats
from adaptive_quiz.seed import is_seeded, seed_all
from adaptive_quiz.session import (
    current_question, get_session, rate_question, start_session, submit_answer, summarize,
)

console = Console()

# Seconds after which an answer counts as slow for spaced repetition quality
SLOW_ANSWER_SECONDS = 60


def setup_logging(level: str = "WARNING") -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<dim>{time:HH:mm:ss}</dim> <level>{level: <7}</level> {message}",
    )


def show_welcome():
    console.print(Panel(
        "[bold]Adaptive Quiz[/bold]\n[dim]Practice, review and track your mastery[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("quiz", "Start a quiz"),
        ("stats", "Review cards, mastery and history"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def time_factor(elapsed_seconds: float) -> float:
    """1.0 for an instant answer, falling to 0.0 at SLOW_ANSWER_SECONDS."""
    return 1.0 - min(max(elapsed_seconds, 0.0) / SLOW_ANSWER_SECONDS, 1.0)


def ask_answer(question):
    """Prompt for an answer; returns an option id or the typed text."""
    if isinstance(question, MultipleChoiceQuestion):
        for i, option in enumerate(question.options, 1):
            console.print(f"  [cyan]{i})[/cyan] {option.text}")
        choice = Prompt.ask(
            "\nYour answer", choices=[str(i) for i in range(1, len(question.options) + 1)],
        )
        return question.options[int(choice) - 1].id
    return Prompt.ask("\nYour answer")


def run_quiz_session(db_path: str, user_id: int, session: QuizSession) -> dict:
    total = len(session.questions)
    if not total:
        console.print("[yellow]No questions available![/yellow]")
        return summarize(session)
    console.print(f"\n[bold]Quiz[/bold] ({session.mode.value}) - {total} questions\n")

    while True:
        session = get_session(db_path, user_id, session.session_id)
        question = current_question(db_path, user_id, session.session_id)
        if question is None:
            break
        index = session.current_index
        console.print(f"[bold]Q{index + 1}.[/bold] {question.text}\n")

        started = time.monotonic()
        while True:
            answer = ask_answer(question)
            try:
                result = submit_answer(
                    db_path, user_id, session.session_id, index, answer, question_id=question.id,
                )
                break
            except ValidationError as e:
                console.print(f"[red]{e.message}[/red]")
        elapsed = time.monotonic() - started

        if result.show_feedback:
            if result.is_correct:
                console.print("[green]Correct![/green]")
            else:
                console.print(f"[red]Incorrect.[/red] Answer: [green]{result.correct_answer}[/green]")
            if result.explanation:
                console.print(f"[dim]{result.explanation}[/dim]")

        rating = Prompt.ask(
            "How hard was that?",
            choices=[r.value for r in Rating],
            default=Rating.UNRATED.value,
        )
        rate_question(
            db_path, user_id, session.session_id, index, rating, time_factor=time_factor(elapsed),
        )
        console.print()

    summary = summarize(get_session(db_path, user_id, session.session_id))
    if session.show_results_at_end:
        table = Table(title="Results")
        table.add_column("#", justify="right")
        table.add_column("Question", justify="right")
        table.add_column("Result")
        for i, r in enumerate(summary["results"], 1):
            mark = "[green]correct[/green]" if r["is_correct"] else "[red]incorrect[/red]"
            table.add_row(str(i), str(r["question_id"]), mark)
        console.print(table)
    console.print(
        f"[bold]Score: {summary['correct_answers']}/{summary['total_questions']} "
        f"({summary['accuracy']:.0f}%)[/bold]\n"
    )
    return summary


def cmd_quiz(db_path: str, user_id: int):
    console.print("\n[bold]Start a Quiz[/bold]")
    with closing(get_connection(db_path)) as conn:
        categories = list_categories(conn)
    for c in categories:
        console.print(f"  [cyan]{c['id']}[/cyan]) {c['name']} [dim]({c['question_count']} questions)[/dim]")
    selected = Prompt.ask("Categories (comma separated)", default="all")
    if selected.strip().lower() == "all":
        category_ids = [c["id"] for c in categories]
    else:
        category_ids = [part.strip() for part in selected.split(",") if part.strip()]

    mode = Prompt.ask("Quiz mode", choices=[m.value for m in QuizMode], default=QuizMode.QUICK.value)
    count = None
    band = None
    if mode != QuizMode.QUICK.value:
        count = IntPrompt.ask("Number of questions", default=get_settings().default_question_count)
    if mode == QuizMode.TEST.value:
        band = Prompt.ask("Difficulty", choices=["easy", "medium", "hard", "any"], default="any")
        band = None if band == "any" else band

    session = start_session(db_path, user_id, mode, category_ids, question_count=count, difficulty_band=band)
    run_quiz_session(db_path, user_id, session)


def cmd_stats(db_path: str, user_id: int):
    stats = get_user_stats(db_path, user_id)
    console.print(Panel(
        f"Cards: [bold]{stats['total_cards']}[/bold]  |  "
        f"Due today: [bold]{stats['cards_due_today']}[/bold]  |  "
        f"Due tomorrow: [bold]{stats['cards_due_tomorrow']}[/bold]  |  "
        f"Mastered: [bold]{stats['mastered_cards']}[/bold]  |  "
        f"Avg ease: [bold]{stats['average_ease_factor']}[/bold]",
        title="Spaced Repetition", border_style="blue",
    ))

    weekly = compare_weekly_performance(db_path, user_id)
    table = Table(title="Weekly Mastery")
    table.add_column("Week")
    table.add_column("Answered", justify="right")
    table.add_column("Accuracy", justify="right")
    table.add_column("Mastery", justify="right")
    for label in ("current", "previous"):
        week = weekly[label]
        table.add_row(
            week["date_range"],
            str(week["total_questions"]),
            f"{week['accuracy']}%",
            f"~{display_score(week['mastery_score'])}",
        )
    console.print(table)

    history = get_user_history(db_path, user_id)
    if history:
        table = Table(title="Recent Quizzes")
        table.add_column("Date")
        table.add_column("Mode")
        table.add_column("Categories")
        table.add_column("Score", justify="right")
        for h in history:
            table.add_row(
                h["created_at"], h["mode"], h["category_names"],
                f"{h['correct_answers']}/{h['total_questions']} ({h['score']}%)",
            )
        console.print(table)

    weak = get_weak_categories(db_path, user_id)
    if weak:
        console.print(f"\n  [yellow]Recommendation: Focus on {weak[0]['category_name']}[/yellow]")


def main():
    settings = get_settings()
    setup_logging(settings.log_level)
    db_path = settings.db_path
    user_id = settings.user_id
    init_db(db_path)
    first_run = not is_seeded(db_path)
    if first_run:
        console.print("[dim]Setting up for first use...[/dim]")
        seed_all(db_path)
        console.print("[green]Ready![/green]\n")

    show_welcome()

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="quiz").strip().lower()
        try:
            if choice == "quiz":
                cmd_quiz(db_path, user_id)
            elif choice == "stats":
                cmd_stats(db_path, user_id)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]See you next time![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except QuizEngineError as e:
            console.print(f"[red]Error: {e.message}[/red]")


if __name__ == "__main__":
    main()
