"""
Typer CLI for the adaptive assessment service.

Commands:
    assess db init                 - Initialize database tables
    assess catalog add-course      - Add a course with its topic catalog
    assess catalog import          - Import questions from a JSON file
    assess generate                - Generate an adaptive assessment for a learner
    assess report                  - Show the performance report of an attempt
    assess insights                - Show learning insights for a learner
    assess context                 - Show a learner's proficiency context
    assess info                    - Show configuration and database status

Usage:
    assess --help
    assess catalog add-course CS301 "Data Structures" -t Arrays -t Trees
    assess generate learner-1 CS301 --questions 10
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import NoReturn, Optional
from uuid import UUID

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from adaptive_assessment import __version__
from adaptive_assessment.catalog.question_catalog import CourseCatalog
from adaptive_assessment.core.errors import AssessmentEngineError
from adaptive_assessment.core.log_config import configure_logging
from adaptive_assessment.db.database import check_database_health, init_db, session_scope
from adaptive_assessment.engine import AssessmentEngine
from config import get_settings

app = typer.Typer(help="adaptive-assessment CLI: closed-loop adaptive testing", no_args_is_help=True)
console = Console()


def get_engine() -> AssessmentEngine:
    return AssessmentEngine.from_settings()


def _fail(exc: AssessmentEngineError) -> NoReturn:
    rprint(f"[red]✗[/red] {exc.message}")
    raise typer.Exit(code=1)


def _course_id(engine: AssessmentEngine, course: str) -> UUID:
    """Accept either a course UUID or a course code."""
    try:
        return UUID(course)
    except ValueError:
        with session_scope(engine.session_factory) as session:
            return CourseCatalog(session).get_by_code(course).id


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    configure_logging(level="DEBUG" if verbose else "WARNING")


# ========================================
# DATABASE COMMANDS
# ========================================

db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Initialize database tables from SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    logger.info("Initializing database tables...")
    init_db()
    rprint("[green]✓[/green] Database initialized!")


# ========================================
# CATALOG COMMANDS
# ========================================

catalog_app = typer.Typer(help="Seed courses and questions")
app.add_typer(catalog_app, name="catalog")


@catalog_app.command("add-course")
def add_course(
    code: str = typer.Argument(..., help="Unique course code"),
    title: str = typer.Argument(..., help="Course title"),
    topics: list[str] = typer.Option([], "--topic", "-t", help="Topic (repeatable)"),
) -> None:
    """Add a course and its ordered topic catalog."""
    engine = get_engine()
    try:
        course = engine.add_course(code, title, topics)
    except AssessmentEngineError as exc:
        _fail(exc)
    rprint(f"[green]✓[/green] Added course {course['code']} ({course['id']})")


@catalog_app.command("import")
def import_questions(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON list of questions"),
    course: str = typer.Option(..., "--course", "-c", help="Course code or UUID"),
) -> None:
    """
    Import questions from a JSON file.

    Each entry needs topic, difficulty, question_type and text, plus options
    (multiple-choice) or correct_answer (other types). Invalid entries are
    reported and skipped.
    """
    engine = get_engine()
    entries = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(entries, dict):
        entries = entries.get("questions", [])

    try:
        course_id = _course_id(engine, course)
    except AssessmentEngineError as exc:
        _fail(exc)

    added = 0
    for index, entry in enumerate(entries):
        try:
            engine.add_question(
                course_id=course_id,
                topic=entry.get("topic", ""),
                difficulty=entry.get("difficulty", ""),
                question_type=entry.get("question_type", ""),
                text=entry.get("text", ""),
                options=entry.get("options"),
                correct_answer=entry.get("correct_answer"),
                explanation=entry.get("explanation"),
            )
            added += 1
        except AssessmentEngineError as exc:
            rprint(f"[yellow]⚠[/yellow] Entry {index} skipped: {exc.message}")
    rprint(f"[green]✓[/green] Imported {added}/{len(entries)} questions")


# ========================================
# ASSESSMENT COMMANDS
# ========================================


@app.command("generate")
def generate(
    learner_id: str = typer.Argument(..., help="Learner identifier"),
    course: str = typer.Argument(..., help="Course code or UUID"),
    questions: int = typer.Option(10, "--questions", "-n", min=1, help="Question count"),
    assessment_type: str = typer.Option("practice", "--type", help="Assessment type"),
    duration: Optional[int] = typer.Option(None, "--duration", "-d", min=1, help="Minutes"),
    focus: list[str] = typer.Option([], "--focus", "-f", help="Focus topic (repeatable)"),
) -> None:
    """Generate an adaptive assessment and show how it was composed."""
    engine = get_engine()
    try:
        result = engine.generate_assessment(
            learner_id,
            _course_id(engine, course),
            questions,
            assessment_type=assessment_type,
            focus_topics=focus or None,
            duration_minutes=duration,
        )
    except AssessmentEngineError as exc:
        _fail(exc)

    plan = result.plan
    table = Table(title=f"Topic plan for {learner_id}")
    table.add_column("Topic", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Band")
    band_style = {"weak": "red", "medium": "yellow", "strong": "green"}
    for topic in plan.topics:
        band = plan.bands[topic]
        table.add_row(topic, str(plan.topic_scores[topic]), f"[{band_style[band]}]{band}[/]")
    console.print(table)

    rprint(f"Difficulty target: {plan.counts}  selected: {result.selected_by_difficulty}")
    if result.shortfall:
        rprint(f"[yellow]⚠[/yellow] Catalog short by {result.shortfall} question(s)")
    rprint(f"[green]✓[/green] Assessment {result.assessment_id} ({result.question_count} questions)")


@app.command("report")
def report(attempt_id: UUID = typer.Argument(..., help="Attempt UUID")) -> None:
    """Show the performance report of a completed attempt."""
    engine = get_engine()
    try:
        data = engine.performance_report(attempt_id)
    except AssessmentEngineError as exc:
        _fail(exc)

    score = data["score_info"]
    rprint(
        f"[bold]{data['basic_info']['assessment_title']}[/bold]  "
        f"{score['obtained']}/{score['total']} ({score['percentage']}%)  grade {score['grade']}  "
        f"{'[green]passed[/green]' if score['is_passed'] else '[red]failed[/red]'}"
    )
    rprint(f"Time: {data['time_info']['time_taken']}")

    table = Table(title="Topic performance")
    table.add_column("Topic", style="cyan")
    table.add_column("Correct", justify="right")
    table.add_column("Accuracy", justify="right")
    table.add_column("Status")
    for entry in data["topic_performance"]:
        table.add_row(
            entry["topic"], f"{entry['correct']}/{entry['attempted']}", f"{entry['accuracy']}%", entry["status"]
        )
    console.print(table)

    peers = data["peer_comparison"]
    if peers["available"]:
        rprint(f"Percentile: {peers['percentile']} ({peers['standing']})")
    for rec in data["recommendations"]:
        rprint(f"  • [{rec['priority']}] {rec['message']}")


@app.command("insights")
def insights(learner_id: str = typer.Argument(..., help="Learner identifier")) -> None:
    """Show learning insights derived from the proficiency context."""
    data = get_engine().learning_insights(learner_id)

    mastery = data["mastery_level"]
    rprint(f"[bold]Mastery:[/bold] {mastery['level']} ({mastery['percentage']}%) - {mastery['message']}")
    rprint(f"[bold]Progress:[/bold] {data['progress_trend']['trend']}")
    style = data["learning_style"]
    rprint(f"[bold]Pace:[/bold] {style['pace']}  [bold]Consistency:[/bold] {style['consistency']}")
    if data["strengths"]:
        rprint("[green]Strengths:[/green] " + ", ".join(s["topic"] for s in data["strengths"]))
    if data["weaknesses"]:
        rprint("[red]Weaknesses:[/red] " + ", ".join(w["topic"] for w in data["weaknesses"]))
    for rec in data["recommendations"]:
        rprint(f"  • {rec['message']}")


@app.command("context")
def context(learner_id: str = typer.Argument(..., help="Learner identifier")) -> None:
    """Show a learner's proficiency context."""
    data = get_engine().get_context(learner_id)

    table = Table(title=f"Proficiency context: {learner_id}")
    table.add_column("Topic", style="cyan")
    table.add_column("Score", justify="right", style="green")
    for topic, score in sorted(data["topic_scores"].items()):
        table.add_row(topic, str(score))
    console.print(table)
    rprint(
        f"Preference: {data['difficulty_preference']}  "
        f"avg response: {data['average_response_time_seconds']:.0f}s  "
        f"attempts: {data['total_attempts']}"
    )


# ========================================
# INFO COMMANDS
# ========================================


@app.command("info")
def show_info() -> None:
    """Show configuration and database status."""
    settings = get_settings()
    db_status, db_error = check_database_health()

    table = Table(title="adaptive-assessment Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Database URL", settings.database_url.split("@")[-1])
    table.add_row("Database", db_status if not db_error else f"{db_status}: {db_error}")
    table.add_row("Generation", settings.generation_base_url if settings.has_generation_configured() else "disabled")
    table.add_row("Schedule window (days)", str(settings.default_schedule_days))
    table.add_row("Log Level", settings.log_level)
    console.print(table)


@app.command("version")
def show_version() -> None:
    """Show version information."""
    rprint(f"[bold]adaptive-assessment[/bold] v{__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
