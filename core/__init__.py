"""
Core utilities and configuration for the cadastral importer.

This package provides foundational components used throughout the service:

Modules:
    config: Application configuration and environment variable management
    database: Database engine, session factory and schema creation
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration

Usage:
    from core.config import settings
    from core.database import async_session_maker
    from core.exceptions import MalformedIdentifierError, NotFoundError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Open a transaction
    async with async_session_maker() as session:
        async with session.begin():
            pass
"""

__all__ = [
    "settings",
    "async_session_maker",
    "get_session",
    "setup_logging",
    # Exceptions
    "CadastralException",
    "MalformedIdentifierError",
    "NotFoundError",
    "CadastralObjectNotFoundError",
    "UpsertNoRowError",
    "RegistryError",
    "RegistryTransportError",
    "RegistryResponseError",
    "UnsupportedDialectError",
]
