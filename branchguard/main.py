"""Main entry point for the branchguard application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
import signal
from typing import Any, Coroutine, Dict, List, NoReturn, Optional

import typer
from typing_extensions import Annotated

# --- Core Layer ---
from branchguard.core.command_handler import EXIT_FATAL, CommandHandler
from branchguard.core.services.batch_scheduler import BatchScheduler
from branchguard.core.services.outcome_classifier import OutcomeClassifier
from branchguard.core.services.protection_service import ProtectionService
from branchguard.core.services.report_aggregator import ReportAggregator

# --- Domain Layer ---
from branchguard.domain.errors import InvalidConfigurationError
from branchguard.domain.models.report import RunMetadata

# --- Infrastructure Layer ---
from branchguard.infrastructure.cli.display import ConsoleDisplay
from branchguard.infrastructure.config.settings import RunSettings, load_configuration
from branchguard.infrastructure.github.client import GitHubClient
from branchguard.infrastructure.github.protection_manager import BranchProtectionManager
from branchguard.infrastructure.github.rate_limit_signal import GitHubRateLimitSignal
from branchguard.infrastructure.github.repository_source import RepositorySource
from branchguard.infrastructure.monitoring.logger_setup import setup_logging
from branchguard.infrastructure.reporting.json_report_sink import JsonReportSink
from branchguard.infrastructure.resilience.retry_policy import RetryPolicy
from branchguard.infrastructure.resilience.sanitizer import summarize_error

logger = logging.getLogger(__name__)


# --- Dependency Injection (Manual) ---

def create_dependencies(
    settings: RunSettings,
    client: GitHubClient,
    ui: ConsoleDisplay,
    cancel_event: Optional[asyncio.Event] = None,
) -> Dict[str, Any]:
    """Creates and wires up all dependencies for one run.

    This acts as the Composition Root.
    """
    dependencies: Dict[str, Any] = {'ui': ui, 'client': client}
    run_logger = logging.getLogger("branchguard.run")

    dependencies['retry_policy'] = RetryPolicy.from_backoff_policy(
        settings.backoff_policy,
        rate_limit_signal=GitHubRateLimitSignal(),
        cancel_event=cancel_event,
        logger=logging.getLogger("branchguard.retry"),
    )
    dependencies['source'] = RepositorySource(
        client,
        repo=settings.repo,
        branch=settings.branch,
        include_archived=settings.include_archived,
        retry_policy=dependencies['retry_policy'],
    )
    dependencies['executor'] = BranchProtectionManager(client)
    dependencies['classifier'] = OutcomeClassifier()
    dependencies['scheduler'] = BatchScheduler(
        concurrency=settings.concurrency,
        inter_batch_delay=settings.batch_delay,
        cancel_event=cancel_event,
        classifier=dependencies['classifier'],
        logger=logging.getLogger("branchguard.scheduler"),
    )
    dependencies['report_sink'] = JsonReportSink()
    dependencies['protection_service'] = ProtectionService(
        source=dependencies['source'],
        executor=dependencies['executor'],
        scheduler=dependencies['scheduler'],
        retry_policy=dependencies['retry_policy'],
        classifier=dependencies['classifier'],
        aggregator=ReportAggregator(),
        report_sink=dependencies['report_sink'],
        throttle_delay=settings.throttle_delay,
        logger=run_logger,
    )
    dependencies['command_handler'] = CommandHandler(
        protection_service=dependencies['protection_service'],
        ui=ui,
        client=client,
    )
    logger.debug("All dependencies initialized successfully.")
    return dependencies


def _install_cancel_handler(cancel_event: asyncio.Event) -> None:
    """Ctrl-C finishes the current batch, then stops."""
    loop = asyncio.get_running_loop()

    def _cancel() -> None:
        if not cancel_event.is_set():
            logger.warning("Interrupt received. Finishing the current batch before stopping...")
        cancel_event.set()

    try:
        loop.add_signal_handler(signal.SIGINT, _cancel)
    except (NotImplementedError, RuntimeError):
        logger.debug("Signal handlers not supported here; Ctrl-C will abort immediately.")


async def _run(settings: RunSettings, ui: ConsoleDisplay) -> int:
    cancel_event = asyncio.Event()
    _install_cancel_handler(cancel_event)
    client = GitHubClient(settings.token)
    try:
        dependencies = create_dependencies(settings, client, ui, cancel_event)
        handler: CommandHandler = dependencies['command_handler']
        metadata = RunMetadata(
            owner=settings.owner,
            dry_run=settings.dry_run,
            custom_checks=settings.checks or None,
            specific_repo=settings.repo,
            specific_branch=settings.branch,
        )
        return await handler.handle_run(metadata, report_file=settings.report_file)
    finally:
        await client.aclose()


async def _validate_token(settings: RunSettings, ui: ConsoleDisplay) -> int:
    client = GitHubClient(settings.token)
    try:
        handler = CommandHandler(protection_service=None, ui=ui, client=client)
        return 0 if await handler.handle_validate_token() else EXIT_FATAL
    finally:
        await client.aclose()


def run_async(coro: Coroutine[Any, Any, int], ui: ConsoleDisplay) -> int:
    """Runs an async command from a sync Typer command; returns its exit code."""
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        ui.display_error("Interrupted.")
        return 130
    except Exception as e:
        logger.error(f"Unexpected error: {summarize_error(e)}", exc_info=True)
        ui.display_error(f"Unexpected error: {summarize_error(e)}")
        return EXIT_FATAL


def _prepare(ui: ConsoleDisplay, require_owner: bool = True, **options: Any) -> RunSettings:
    """Loads configuration, merges CLI options, validates and sets up logging."""
    load_configuration()
    try:
        settings = RunSettings.from_options(**options)
    except InvalidConfigurationError as e:
        _reject(ui, e)
    setup_logging(
        log_level=logging.DEBUG if settings.verbose else logging.INFO,
        log_file=settings.log_file,
        error_log_file=settings.error_log_file,
    )
    try:
        settings.validate(require_owner=require_owner)
    except InvalidConfigurationError as e:
        _reject(ui, e)
    return settings


def _reject(ui: ConsoleDisplay, error: InvalidConfigurationError) -> NoReturn:
    logger.error(f"Invalid configuration: {error}")
    ui.display_error(str(error))
    raise typer.Exit(code=EXIT_FATAL)


# --- Typer App Definition ---
app = typer.Typer(
    name="branchguard",
    help="Remove required status checks from branch protection across all repositories of a GitHub owner.",
    add_completion=False,
)

TokenOption = Annotated[
    Optional[str],
    typer.Option("--token", "-t", help="GitHub token (defaults to the TOKEN environment variable)."),
]
OwnerOption = Annotated[
    Optional[str],
    typer.Option("--owner", "-o", help="GitHub owner, organization or user (defaults to OWNER)."),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Enable verbose logging.")]


@app.command()
def run(
    token: TokenOption = None,
    owner: OwnerOption = None,
    repo: Annotated[Optional[str], typer.Option("--repo", "-r", help="Specific repository to process.")] = None,
    branch: Annotated[Optional[str], typer.Option("--branch", "-b", help="Branch to modify (defaults to each repository's default branch).")] = None,
    dry_run: Annotated[bool, typer.Option("--dry-run", "-d", help="Simulate changes without applying them.")] = False,
    checks: Annotated[Optional[List[str]], typer.Option("--checks", "-c", help="Check to remove; repeat for several (defaults to the Khulnasoft checks).")] = None,
    concurrency: Annotated[Optional[int], typer.Option("--concurrency", "-n", help="Maximum number of concurrent operations.")] = None,
    report: Annotated[Optional[str], typer.Option("--report", "-p", help="Write a JSON report to this file.")] = None,
    max_retries: Annotated[Optional[int], typer.Option("--max-retries", help="Retries per remote call on transient or rate-limit errors.")] = None,
    include_archived: Annotated[Optional[bool], typer.Option("--include-archived/--skip-archived", help="Process archived repositories too.")] = None,
    verbose: VerboseOption = False,
):
    """Remove status checks from branch protection (use --dry-run to preview)."""
    ui = ConsoleDisplay()
    settings = _prepare(
        ui,
        token=token,
        owner=owner,
        repo=repo,
        branch=branch,
        dry_run=dry_run,
        checks=checks,
        concurrency=concurrency,
        report_file=report,
        verbose=verbose,
        include_archived=include_archived,
        max_retries=max_retries,
    )
    exit_code = run_async(_run(settings, ui), ui)
    raise typer.Exit(code=exit_code)


@app.command(name="validate-token")
def validate_token(
    token: TokenOption = None,
    owner: OwnerOption = None,
    verbose: VerboseOption = False,
):
    """Check that the GitHub token is valid without changing anything."""
    ui = ConsoleDisplay()
    settings = _prepare(ui, require_owner=False, token=token, owner=owner, verbose=verbose)
    exit_code = run_async(_validate_token(settings, ui), ui)
    raise typer.Exit(code=exit_code)


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
