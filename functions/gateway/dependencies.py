"""
Dependency wiring for the FastAPI app.

Clients are built once from the settings at start-up and handed to the
endpoint handlers; request code never looks them up globally.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from gateway.auth import MainProjectTokenVerifier, TokenVerifier
from gateway.config import Settings
from gateway.db import (
    DbClient,
    InMemoryDbClient,
    PostgresDbClient,
    SupabaseRestDbClient,
)
from gateway.storage import (
    InMemoryStorageClient,
    S3StorageClient,
    StorageClient,
    SupabaseStorageClient,
)

logger = logging.getLogger(__name__)


@dataclass
class GatewayServices:
    db: DbClient
    storage: StorageClient
    verifier: TokenVerifier


def build_db_client(settings: Settings) -> DbClient:
    if settings.use_in_memory_backends:
        logger.info("Using in-memory comment store")
        return InMemoryDbClient()
    if settings.database_url:
        return PostgresDbClient(settings.database_url)
    if settings.supabase_url and settings.supabase_service_role_key:
        return SupabaseRestDbClient(
            base_url=settings.supabase_url,
            service_key=settings.supabase_service_role_key,
        )
    logger.warning(
        "No database configured, comments will not persist across restarts"
    )
    return InMemoryDbClient()


def build_storage_client(settings: Settings) -> StorageClient:
    if settings.use_in_memory_backends:
        return InMemoryStorageClient(bucket=settings.comments_bucket)
    if settings.storage_s3_endpoint:
        return S3StorageClient(
            bucket=settings.comments_bucket,
            region=settings.storage_s3_region or "",
            endpoint=settings.storage_s3_endpoint,
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            upload_expires_in=settings.comments_upload_expires,
        )
    if settings.supabase_url and settings.supabase_service_role_key:
        return SupabaseStorageClient(
            base_url=settings.supabase_url,
            service_key=settings.supabase_service_role_key,
            bucket=settings.comments_bucket,
        )
    logger.info("No storage configured, using in-memory storage")
    return InMemoryStorageClient(bucket=settings.comments_bucket)


def build_token_verifier(settings: Settings) -> TokenVerifier:
    return MainProjectTokenVerifier(
        base_url=settings.main_supabase_url or "",
        anon_key=settings.main_supabase_anon_key or "",
        timeout=settings.main_auth_timeout_seconds,
    )


def build_services(settings: Settings) -> GatewayServices:
    return GatewayServices(
        db=build_db_client(settings),
        storage=build_storage_client(settings),
        verifier=build_token_verifier(settings),
    )
