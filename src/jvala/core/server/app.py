"""Jvala flare tracker MCP server — application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery (`fastmcp run ...app.py:mcp`)
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP

from jvala.core.audit.logger import AuditLogger
from jvala.core.config.settings import Settings, get_settings
from jvala.core.llm.provider import create_provider
from jvala.core.storage.database import FlareDatabase
from jvala.core.storage.encryption import EncryptionError, FieldEncryptor
from jvala.core.storage.repository import FlareRepository
from jvala.domains.flares.classification.note_classifier import (
    NoteClassifier,
    create_note_classifier,
)
from jvala.domains.flares.connectors import ContextProvider
from jvala.domains.flares.connectors.providers import create_context_provider
from jvala.domains.flares.dispatch.digest import DigestSender, LoggingDigestSender
from jvala.domains.flares.domain_logic.badges import default_catalog
from jvala.domains.flares.prompts.flare_prompts import register_flare_prompts
from jvala.domains.flares.services.correlation_service import CorrelationService
from jvala.domains.flares.services.entry_service import EntryService
from jvala.domains.flares.services.report_service import ReportService
from jvala.domains.flares.services.share_service import ShareService
from jvala.domains.flares.tools.audit_tools import register_audit_tools
from jvala.domains.flares.tools.correlation_tools import register_correlation_tools
from jvala.domains.flares.tools.data_management_tools import register_data_management_tools
from jvala.domains.flares.tools.engagement_tools import register_engagement_tools
from jvala.domains.flares.tools.entry_tools import register_entry_tools
from jvala.domains.flares.tools.report_tools import register_report_tools
from jvala.domains.flares.tools.share_tools import register_share_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "Jvala Flare Tracker"
SERVER_VERSION = "0.1.0"


def _build_classifier(settings: Settings) -> NoteClassifier:
    if settings.llm_provider == "mock":
        provider_name = "mock"
        api_key = ""
        model = ""
    elif settings.llm_provider == "anthropic":
        api_key = settings.anthropic_api_key
        model = settings.anthropic_model
        provider_name = "anthropic" if api_key else "mock"
    elif settings.llm_provider == "openai":
        api_key = settings.openai_api_key
        model = settings.openai_model
        provider_name = "openai" if api_key else "mock"
    else:  # pragma: no cover
        raise ValueError(f"Unknown LLM provider: {settings.llm_provider!r}")

    if provider_name == "mock" and settings.llm_provider != "mock":
        logger.warning(
            "No API key configured for provider '%s'; falling back to keyword classification",
            settings.llm_provider,
        )

    provider = create_provider(provider_name=provider_name, api_key=api_key, model=model)
    return create_note_classifier(provider)


def _build_database(settings: Settings) -> tuple[FlareDatabase, FieldEncryptor]:
    """Open the encrypted store, or an in-memory one when no key is configured."""
    if settings.encryption_key:
        try:
            encryptor = FieldEncryptor(settings.encryption_key)
        except EncryptionError as exc:
            logger.error("Invalid ENCRYPTION_KEY: %s", exc)
            raise
        database = FlareDatabase(settings.db_path)
    else:
        logger.warning(
            "No ENCRYPTION_KEY configured — using an in-memory store. "
            "Entries will not survive a restart. Set ENCRYPTION_KEY to persist to %s.",
            settings.db_path,
        )
        encryptor = FieldEncryptor(FieldEncryptor.generate_key())
        database = FlareDatabase(":memory:")

    database.initialize()
    logger.info(
        "Flare store initialized: %s (schema v%d)",
        settings.db_path if settings.encryption_key else ":memory:",
        database.get_schema_version(),
    )
    return database, encryptor


def create_app(
    *,
    settings_override: Settings | None = None,
    repository_override: FlareRepository | None = None,
    context_provider_override: ContextProvider | None = None,
    classifier_override: NoteClassifier | None = None,
    digest_sender_override: DigestSender | None = None,
) -> FastMCP:
    """Create and configure the Jvala flare tracker MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Opens the encrypted flare store and audit log
    3. Builds the note classifier (LLM or keyword rules)
    4. Builds the context provider and digest sender
    5. Wires the entry, report, correlation and share services
    6. Registers all tools and prompts
    """
    settings = settings_override or get_settings()

    # --- Server instance ---
    server = FastMCP(
        SERVER_NAME,
        instructions=(
            "Jvala chronic illness flare tracker. Log flares, medications, "
            "triggers, recovery and energy; get weekly health reports, streaks "
            "and badges, trigger -> flare correlations, and one-time report "
            "shares for clinicians."
        ),
    )

    # --- Storage + audit ---
    if repository_override is not None:
        repository = repository_override
        database = repository.database
    else:
        database, encryptor = _build_database(settings)
        repository = FlareRepository(database, encryptor)
    audit_logger = AuditLogger(database)

    # --- Pluggable collaborators ---
    classifier = classifier_override or _build_classifier(settings)
    if context_provider_override is not None:
        context_provider = context_provider_override
    else:
        context_provider = create_context_provider(settings.context_provider)
        logger.info("Using context provider: %s", context_provider.data_source)
    digest_sender = digest_sender_override or LoggingDigestSender()

    # --- Services ---
    entry_service = EntryService(repository, context_provider, classifier)
    report_service = ReportService(repository, digest_sender)
    correlation_service = CorrelationService(
        repository,
        lookahead_hours=settings.correlation_lookahead_hours,
        history_limit=settings.correlation_history_limit,
    )
    share_service = ShareService(
        repository,
        expiry_days=settings.share_expiry_days,
        report_weeks=settings.share_report_weeks,
    )

    # --- Register tools ---
    # Async so the SQLite count runs on the thread that opened the connection
    @server.tool
    async def health_check() -> dict:
        """Check server health and return basic status information."""
        return {
            "status": "ok",
            "server": SERVER_NAME,
            "version": SERVER_VERSION,
            "classifier": classifier.name,
            "context_provider": context_provider.data_source,
            "badges_available": len(default_catalog()),
            "entries_stored": repository.count_entries(),
        }

    register_entry_tools(server, entry_service, audit_logger)
    register_report_tools(server, report_service, audit_logger)
    register_correlation_tools(server, correlation_service, audit_logger)
    register_engagement_tools(server, repository)
    register_share_tools(server, share_service, audit_logger)
    register_audit_tools(server, audit_logger)
    register_data_management_tools(server, repository, audit_logger)
    logger.info("Flare tracker tools registered")

    # --- Register prompts ---
    register_flare_prompts(server)

    return server


# Module-level instance for FastMCP discovery.
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
