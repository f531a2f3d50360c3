"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py), delegates the work
to the ProtectionService and turns results and run-fatal errors into
console output and a process exit code.
"""

import logging
from typing import Optional

from branchguard.core.services.protection_service import ProtectionService
from branchguard.domain.errors import BranchGuardError, InvalidConfigurationError, SourceUnavailableError
from branchguard.domain.interfaces.user_interface import UserInterface
from branchguard.domain.models.report import BatchReport, RunMetadata
from branchguard.infrastructure.github.client import GitHubClient
from branchguard.infrastructure.resilience.sanitizer import summarize_error

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1


class CommandHandler:
    """Handles incoming commands and delegates to the protection service."""

    def __init__(
        self,
        protection_service: Optional[ProtectionService],
        ui: UserInterface,
        client: Optional[GitHubClient] = None,
    ):
        """Initializes the CommandHandler with required services."""
        self.protection_service = protection_service
        self.ui = ui
        self.client = client
        self.last_report: Optional[BatchReport] = None

    async def handle_validate_token(self) -> bool:
        """Checks the GitHub token before any work starts."""
        if self.client is None:
            return True
        result = await self.client.validate_token()
        if result.get("valid"):
            self.ui.display_info(f"GitHub token validated successfully for user: {result.get('user')}")
            return True
        logger.error(f"Invalid GitHub token: {result.get('error')}")
        self.ui.display_error(f"Invalid GitHub token: {result.get('error')}")
        return False

    async def handle_run(self, metadata: RunMetadata, report_file: Optional[str] = None) -> int:
        """Handles the 'run' command.

        Returns:
            The process exit code: 0 for a complete report (even if items
            errored), 1 for run-fatal errors.
        """
        mode = "DRY RUN" if metadata.dry_run else "APPLY"
        logger.info(f"Handling 'run' command for owner: {metadata.owner} ({mode})")

        if not await self.handle_validate_token():
            self.ui.display_error("Cannot proceed with an invalid GitHub token")
            return EXIT_FATAL

        try:
            report = await self.protection_service.run(metadata, report_destination=report_file)
        except (InvalidConfigurationError, SourceUnavailableError) as e:
            logger.error(f"Run aborted: {summarize_error(e)}")
            self.ui.display_error(f"Run aborted: {summarize_error(e)}")
            return EXIT_FATAL
        except BranchGuardError as e:
            logger.error(f"Unexpected error: {summarize_error(e)}", exc_info=True)
            self.ui.display_error(f"Unexpected error: {summarize_error(e)}")
            return EXIT_FATAL

        self.last_report = report
        if report.total_items == 0:
            self.ui.display_warning("No repositories to process")
        else:
            self.ui.display_summary(report)
        verb = "Simulated" if metadata.dry_run else "Processed"
        self.ui.display_info(
            f"Process completed. {verb} {report.success_count} out of {report.total_items} repositories successfully."
        )
        if report.summary.errored:
            self.ui.display_warning(f"{report.summary.errored} repositories failed. See the log or report for details.")
        if report_file:
            self.ui.display_info(f"Report saved to {report_file}")
        return EXIT_OK
