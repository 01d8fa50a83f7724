import typer
from typing import Optional
from pathlib import Path
from . import __version__
from .config import AppConfig
from .connectors.oracle import init_oracle_client
from .domain.models import Outcome, RunReport
from .exceptions import ConfigurationError, DbDiagException, StartupPreconditionError
from .inspector import HealthCheckOrchestrator
from .logging_setup import setup_logging
from .vault import encrypt_to_text, resolve_key

app = typer.Typer(help="Database connectivity diagnostics")

EXIT_FAILED = 1
EXIT_PRECONDITION = 2


def _version_callback(value: bool):
    if value:
        typer.echo(f"DB Connection Diags - Version: {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", help="Display version information",
        callback=_version_callback, is_eager=True,
    ),
):
    """
    Decrypts stored credentials, connects to each configured database under its
    TLS policy, pings it and runs its health query.
    """


def _fail_startup(message: str):
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=EXIT_PRECONDITION)


def _load_config(config: Path) -> AppConfig:
    try:
        return AppConfig.from_yaml(config)
    except ConfigurationError as e:
        _fail_startup(f"Error loading config: {e}")


def _print_outcome(outcome: Outcome):
    if outcome.ok:
        typer.secho(
            f"✅ {outcome.target_id}: Connection Successful ({outcome.latency_ms}ms)",
            fg=typer.colors.GREEN,
        )
    else:
        typer.secho(
            f"❌ {outcome.target_id}: {outcome.kind.value}. Error: {outcome.cause}",
            fg=typer.colors.RED,
        )
    if outcome.release_error:
        typer.secho(
            f"⚠️  {outcome.target_id}: error while closing connection: {outcome.release_error}",
            fg=typer.colors.YELLOW,
        )


@app.command()
def check(
    config: Path = typer.Option(Path("config.yaml"), "--config", "-c", help="Path to configuration file"),
    db: Optional[str] = typer.Option(None, "--db", "-d", help="Identifier of the database to check (default: all)"),
    key_file: Optional[Path] = typer.Option(None, "--key-file", "-k", help="Secret key file (overrides DB_SECRET_KEY)"),
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", help="Per-target deadline in seconds"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, help="Maximum concurrent checks"),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
):
    """
    Connectivity Health Check.
    Checks one database (--db) or all of them concurrently and exits non-zero if any failed.
    """
    setup_logging(verbose)
    app_config = _load_config(config)

    try:
        key = resolve_key(
            key_file=key_file or app_config.key_file,
            legacy_obfuscated_key=app_config.legacy_obfuscated_key,
        )
        if app_config.oracle_thick_mode:
            init_oracle_client(app_config.oracle_lib_dir)
        targets = [app_config.get_target(db)] if db else app_config.targets()
    except (StartupPreconditionError, ConfigurationError) as e:
        _fail_startup(str(e))

    orchestrator = HealthCheckOrchestrator(
        key,
        timeout_seconds=timeout or app_config.timeout_seconds,
        max_workers=workers or app_config.max_workers,
    )

    if db:
        outcome = orchestrator.run_one(targets[0])
        report = RunReport(outcomes={outcome.target_id: outcome})
    else:
        if not as_json:
            typer.echo(f"Starting connectivity check for {len(targets)} databases...")
        report = orchestrator.run_all(targets)

    if as_json:
        typer.echo(report.model_dump_json(indent=2))
    else:
        for target_id in sorted(report.outcomes):
            _print_outcome(report.outcomes[target_id])
        if len(report.outcomes) > 1:
            typer.echo(f"{len(report.outcomes) - len(report.failures)}/{len(report.outcomes)} databases healthy")

    if not report.all_succeeded:
        raise typer.Exit(code=EXIT_FAILED)


@app.command()
def encrypt(
    key_file: Optional[Path] = typer.Option(None, "--key-file", "-k", help="Secret key file (overrides DB_SECRET_KEY)"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Configuration file (for key_file / legacy key settings)"),
):
    """
    Password Encryption Utility.
    Prints the base64 ciphertext to paste into a target's `password` field.
    """
    setup_logging(False)
    app_config = _load_config(config) if config else AppConfig()
    try:
        key = resolve_key(
            key_file=key_file or app_config.key_file,
            legacy_obfuscated_key=app_config.legacy_obfuscated_key,
        )
    except StartupPreconditionError as e:
        _fail_startup(str(e))

    password = typer.prompt("Password", hide_input=True, confirmation_prompt=True)
    try:
        typer.echo(encrypt_to_text(password, key))
    except DbDiagException as e:
        _fail_startup(str(e))


@app.command()
def validate(
    config: Path = typer.Option(Path("config.yaml"), "--config", "-c", help="Path to configuration file"),
):
    """
    Strict configuration check: engine types, TLS modes and mTLS pairs. Does not connect.
    """
    app_config = _load_config(config)
    problems = app_config.validate_targets()
    if problems:
        for problem in problems:
            typer.secho(f"❌ {problem}", fg=typer.colors.RED)
        raise typer.Exit(code=EXIT_FAILED)
    typer.secho(f"✅ {len(app_config.databases)} databases configured correctly", fg=typer.colors.GREEN)


if __name__ == "__main__":
    app()
