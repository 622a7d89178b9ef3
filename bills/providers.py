# bills/providers.py
"""
Process-wide provider clients, built once from settings and handed to the
services explicitly. Views and the authentication class ask for them here so
tests can pass fakes instead.
"""
from functools import lru_cache

import boto3
from botocore.config import Config
from django.conf import settings

from common.identity import IdentityClient
from webhooks.services import ExtractionWebhookClient
from webhooks.tokens import HandoffTokenIssuer

from .queries import BillQueryService
from .services import BillIngestionService
from .storage import StorageGateway


@lru_cache(maxsize=None)
def identity_client() -> IdentityClient:
    return IdentityClient(
        settings.IDENTITY_PROVIDER_URL,
        api_key=settings.IDENTITY_PROVIDER_API_KEY,
        timeout=settings.IDENTITY_PROVIDER_TIMEOUT,
    )


@lru_cache(maxsize=None)
def storage_gateway() -> StorageGateway:
    s3_client = boto3.client(
        "s3",
        config=Config(signature_version="s3v4"),
        region_name=settings.AWS_S3_REGION_NAME,
        endpoint_url=settings.AWS_S3_ENDPOINT_URL,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
    )
    return StorageGateway(
        s3_client,
        bucket=settings.AWS_STORAGE_BUCKET_NAME,
        public_base_url=settings.BILLS_PUBLIC_BASE_URL,
        fetch_timeout=settings.BILLS_PUBLIC_FETCH_TIMEOUT,
    )


@lru_cache(maxsize=None)
def handoff_token_issuer() -> HandoffTokenIssuer:
    return HandoffTokenIssuer(
        secret=settings.HANDOFF_TOKEN_SECRET,
        issuer=settings.HANDOFF_TOKEN_ISSUER,
        audience=settings.HANDOFF_TOKEN_AUDIENCE,
        lifetime=settings.HANDOFF_TOKEN_LIFETIME,
    )


@lru_cache(maxsize=None)
def extraction_client() -> ExtractionWebhookClient:
    return ExtractionWebhookClient(
        settings.EXTRACTION_WEBHOOK_URL,
        timeout=settings.EXTRACTION_WEBHOOK_TIMEOUT,
    )


def ingestion_service() -> BillIngestionService:
    return BillIngestionService(
        storage=storage_gateway(),
        token_issuer=handoff_token_issuer(),
        extraction_client=extraction_client(),
    )


def query_service() -> BillQueryService:
    return BillQueryService(storage=storage_gateway())
