"""Main entry point for the GitHub posture collector.

This script collects an organization's security posture using the application
service and writes the report as JSON.
"""
import asyncio
import os
import sys
import logging
from dotenv import load_dotenv
from posture_collector.application.collector_service import PostureCollectorService
from posture_collector.config import load_config
from posture_collector.domain.errors import ConfigurationError
from posture_collector.infrastructure.auth import create_token_provider
from posture_collector.infrastructure.github_client import GitHubClient
from posture_collector.infrastructure.report_writer import write_report

# Load environment variables from .env or env file
load_dotenv('.env') or load_dotenv('env')


def resolve_log_level(name) -> int:
    """Map a LOG_LEVEL name to a logging level, falling back to INFO."""
    level = logging.getLevelName((name or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


logging.basicConfig(
    level=resolve_log_level(os.getenv("LOG_LEVEL")),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def log_progress(current: int, total: int, message: str) -> None:
    if current == total or current % 50 == 0:
        logger.info(f"Security settings: {current}/{total} ({message})")


async def main(output_file=None):
    """Execute the posture collection."""
    try:
        config = load_config()
        config.validate()
        token_provider = create_token_provider(config)
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    github_client = GitHubClient(
        token_provider,
        base_url=config.api_url,
        graphql_url=config.graphql_url
    )
    collector = PostureCollectorService(
        github_client=github_client,
        max_concurrency=config.max_concurrency,
        on_progress=log_progress
    )

    try:
        report = await collector.collect(
            config.organization,
            config.include_patterns,
            config.exclude_patterns
        )

        # Log results
        logger.info("=" * 50)
        logger.info(f"Posture for {report.organization}:")
        logger.info(f"  Repository coverage: {report.scope.repositories_coverage}%")
        logger.info(f"  Branch protection coverage: {report.posture.branch_protection_coverage}%")
        logger.info(f"  Security features coverage: {report.posture.security_features_coverage}%")
        logger.info(f"  2FA required: {report.access_control.two_factor_required}")
        logger.info("=" * 50)

        write_report(report, output_file)

    except Exception as e:
        logger.error(f"Collection failed: {e}", exc_info=True)
        sys.exit(1)
    finally:
        await collector.close()


def run() -> None:
    output_file = sys.argv[1] if len(sys.argv) > 1 else None
    asyncio.run(main(output_file))


if __name__ == "__main__":
    run()
