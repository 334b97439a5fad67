"""
Ora Recommendation Engine — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Validate inputs.
  4. Execute action (DB init, seed import, pipeline run, server, ...).
  5. Report result to stdout; exit code 1 on failure.

Install and run::

    pip install -e .
    ora-recs --help
    ora-recs init-db
    ora-recs import-seed
    ora-recs submit-onboarding --uid user-1 --file answers.json
    ora-recs regenerate --uid user-1
    ora-recs show-latest --uid user-1 --content
    ora-recs run-weekly
    ora-recs serve --port 8080
    ora-recs start-scheduler
"""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="ora-recs",
    help="Ora personalized content recommendations — engine CLI.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from ora_recommender.config import load_config

    try:
        return load_config(Path(config_path) if config_path else None)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config) -> None:
    from ora_recommender.utils.logging import configure_logging
    configure_logging(config.logging)


def _ensure_schema(config, db_path: str) -> None:
    from ora_recommender.db.connection import connect
    from ora_recommender.db.schema import apply_schema

    with connect(config, db_path) as conn:
        apply_schema(conn)


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Create the SQLite database and apply the schema (idempotent)."""
    from ora_recommender.db.schema import ALL_TABLE_NAMES

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target}")
    _ensure_schema(config, target)
    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
    show_full: bool = typer.Option(False, "--full", help="Print the full config as JSON."),
) -> None:
    """Validate the configuration file and print the key values."""
    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:      {config.database.db_path}")
    typer.echo(f"  Algorithm version:  {config.recommendations.algorithm_version}")
    typer.echo(f"  Max recommendations:{config.recommendations.max_recommendations}")
    typer.echo(f"  Batch size:         {config.batch.batch_size}")
    typer.echo(
        f"  Weekly schedule:    weekday={config.batch.weekly_weekday} "
        f"{config.batch.weekly_time} UTC"
    )
    typer.echo(f"  API tokens:         {len(config.api.auth_tokens)} configured")
    typer.echo(f"  Log level:          {config.logging.level}")

    if show_full:
        redacted = config.model_dump()
        redacted["api"]["auth_tokens"] = ["***"] * len(config.api.auth_tokens)
        typer.echo("")
        typer.echo(json.dumps(redacted, indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("import-seed")
def import_seed(
    seed_file: Optional[str] = typer.Option(
        None, "--file", "-f", help="Seed JSON file. Defaults to config.data.seed_file."
    ),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate only; write nothing."),
) -> None:
    """Load users, catalog, activity, enrollments and onboarding from a JSON bundle."""
    from ora_recommender.db.connection import connect
    from ora_recommender.seed import apply_seed_bundle, load_seed_bundle

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    path = Path(seed_file or config.data.seed_file)
    try:
        bundle = load_seed_bundle(path)
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    if dry_run:
        typer.echo(
            f"[DRY RUN] {path}: {len(bundle.users)} users, {len(bundle.content)} items, "
            f"{len(bundle.onboarding)} submissions. Nothing written."
        )
        return

    target = db_path or config.database.db_path
    _ensure_schema(config, target)
    with connect(config, target) as conn:
        counts = apply_seed_bundle(conn, bundle)
    for section, n in counts.items():
        typer.echo(f"  {section:<12} {n}")
    typer.echo("[OK] Seed imported.")


@app.command("submit-onboarding")
def submit_onboarding(
    uid: str = typer.Option(..., "--uid", help="User id."),
    answers_file: str = typer.Option(
        ..., "--file", "-f", help="JSON list of answers ({questionId, selectedOptions})."
    ),
    in_progress: bool = typer.Option(
        False, "--in-progress", help="Record as in progress (no recommendations run)."
    ),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Record an onboarding submission and fire the on-completion trigger."""
    from pydantic import ValidationError

    from ora_recommender.errors import RecommendationError
    from ora_recommender.models.onboarding import OnboardingSubmission
    from ora_recommender.pipeline.orchestrator import RecommendationOrchestrator
    from ora_recommender.taxonomy.practice_taxonomy import SubmissionStatus
    from ora_recommender.utils.time_utils import utcnow

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        with open(answers_file, encoding="utf-8") as f:
            answers = json.load(f)
        submission = OnboardingSubmission(
            uid=uid,
            status=SubmissionStatus.IN_PROGRESS if in_progress else SubmissionStatus.COMPLETED,
            answers=answers,
            completed_at=None if in_progress else utcnow(),
        )
    except (OSError, ValueError, ValidationError) as exc:
        typer.echo(f"[ERROR] Invalid submission: {exc}", err=True)
        raise typer.Exit(code=1)

    target = db_path or config.database.db_path
    _ensure_schema(config, target)
    try:
        result = RecommendationOrchestrator(config, db_path=target).handle_new_submission(submission)
    except RecommendationError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    if result is None:
        typer.echo("[OK] Submission recorded (in progress, no recommendations generated).")
        return
    typer.echo(f"[OK] {result.message}: {', '.join(result.record.content_ids) or '(none)'}")


@app.command("regenerate")
def regenerate(
    uid: str = typer.Option(..., "--uid", help="User id."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Regenerate recommendations for one user (manual trigger)."""
    from ora_recommender.errors import RecommendationError
    from ora_recommender.pipeline.orchestrator import RecommendationOrchestrator

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        result = RecommendationOrchestrator(config, db_path=db_path).run_on_demand(uid)
    except (ValueError, RecommendationError) as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"[OK] {result.message} (key={result.run_key})")
    for rank, cid in enumerate(result.record.content_ids, start=1):
        typer.echo(f"  {rank}. {cid:<24} {result.record.scores[cid]:.3f}")


@app.command("show-latest")
def show_latest(
    uid: str = typer.Option(..., "--uid", help="User id."),
    content: bool = typer.Option(False, "--content", help="Resolve ids to catalog items."),
    limit: int = typer.Option(5, "--limit", help="Max items with --content."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Print a user's latest recommendations."""
    from ora_recommender.db.connection import connect
    from ora_recommender.recommendations.reader import (
        get_latest_recommendation,
        get_recommended_content,
    )

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with connect(config, db_path) as conn:
        record = get_latest_recommendation(conn, uid)
        items = get_recommended_content(conn, uid, limit=limit) if content else []

    if record is None:
        typer.echo(f"No recommendations for user {uid}.")
        raise typer.Exit(code=1)

    if content:
        for item in items:
            typer.echo(
                f"  {item.content_id:<24} {item.title:<32} "
                f"{item.scoring_discipline:<12} {item.duration_minutes:.0f} min"
            )
        return
    typer.echo(record.model_dump_json(indent=2))


@app.command("run-weekly")
def run_weekly(
    run_date: Optional[str] = typer.Option(
        None, "--date", help="Run key date YYYY-MM-DD (default: today, UTC)."
    ),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Regenerate recommendations for every onboarded user, in batches."""
    from ora_recommender.pipeline.orchestrator import RecommendationOrchestrator

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        key_date = date.fromisoformat(run_date) if run_date else None
    except ValueError:
        typer.echo(f"[ERROR] Invalid --date '{run_date}'. Expected YYYY-MM-DD.", err=True)
        raise typer.Exit(code=1)

    target = db_path or config.database.db_path
    _ensure_schema(config, target)
    result = RecommendationOrchestrator(config, db_path=target).run_weekly(run_date=key_date)

    typer.echo(
        f"run-weekly | status={result.status} | users={result.total_users} | "
        f"ok={result.succeeded} | failed={result.failed}"
    )
    for failure in result.failures:
        typer.echo(f"  FAILED {failure.uid} at {failure.step}: {failure.error}", err=True)
    if result.status == "failed":
        raise typer.Exit(code=1)


@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default from config)."),
    port: Optional[int] = typer.Option(None, "--port", help="Port (default from config)."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Serve the HTTP API with uvicorn."""
    import uvicorn

    from ora_recommender.api.app import create_app

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    _ensure_schema(config, config.database.db_path)

    uvicorn.run(
        create_app(config),
        host=host or config.api.host,
        port=port or config.api.port,
        log_config=None,
    )


@app.command("start-scheduler")
def start_scheduler(
    weekday: Optional[int] = typer.Option(None, "--weekday", help="0=Monday .. 6=Sunday."),
    weekly_time: Optional[str] = typer.Option(None, "--time", help="UTC HH:MM."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Run the weekly batch on a schedule. Blocks until Ctrl-C."""
    from ora_recommender.config import BatchConfig
    from ora_recommender.scheduler import WeeklyScheduler

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        schedule = BatchConfig(
            weekly_weekday=config.batch.weekly_weekday if weekday is None else weekday,
            weekly_time=weekly_time or config.batch.weekly_time,
        )
        daemon = WeeklyScheduler(
            db_path=db_path or config.database.db_path,
            weekday=schedule.weekly_weekday,
            weekly_time=schedule.weekly_time,
            config_path=config_path,
        )
    except (ValueError, RuntimeError) as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Scheduler running; next weekly run at {daemon.next_run.isoformat()}.")
    daemon.start()


if __name__ == "__main__":
    app()
