from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, cast

import boto3
from botocore.config import Config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientSettings:
    region: str | None = None
    endpoint_url: str | None = None
    in_lambda: bool = False


def is_lambda_environment(environ: Mapping[str, str] = os.environ) -> bool:
    if environ.get("AWS_LAMBDA_FUNCTION_NAME"):
        return True
    return (environ.get("AWS_EXECUTION_ENV") or "").startswith("AWS_Lambda")


def resolve_client_settings(environ: Mapping[str, str] = os.environ) -> ClientSettings:
    # DYNAMODB_ENDPOINT points clients at DynamoDB Local
    return ClientSettings(
        region=environ.get("AWS_REGION") or environ.get("AWS_DEFAULT_REGION") or None,
        endpoint_url=environ.get("DYNAMODB_ENDPOINT") or None,
        in_lambda=is_lambda_environment(environ),
    )


def create_lambda_boto3_config(
    *,
    connect_timeout: float = 1.0,
    read_timeout: float = 3.0,
    max_attempts: int = 3,
) -> Config:
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")
    return Config(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        retries={"max_attempts": max_attempts, "mode": "adaptive"},
    )


_lambda_clients: dict[tuple[str | None, str | None], Any] = {}


def get_lambda_dynamodb_client(
    settings: ClientSettings | None = None,
    *,
    config: Config | None = None,
    session: Any | None = None,
) -> Any:
    """DynamoDB client reused across warm Lambda invocations, one per region/endpoint."""
    settings = settings or ClientSettings(in_lambda=True)
    cache_key = (settings.region, settings.endpoint_url)
    cached = _lambda_clients.get(cache_key)
    if cached is not None:
        return cached

    sess = session or boto3.session.Session(region_name=settings.region)
    client = cast(Any, sess).client(
        "dynamodb",
        region_name=settings.region,
        endpoint_url=settings.endpoint_url,
        config=config or create_lambda_boto3_config(),
    )
    _lambda_clients[cache_key] = client
    logger.debug("created lambda dynamodb client for region=%s endpoint=%s", settings.region, settings.endpoint_url)
    return client


def default_document_client(environ: Mapping[str, str] = os.environ) -> Any:
    """Client used when a connection is created without ``document_client``."""
    settings = resolve_client_settings(environ)
    if settings.in_lambda:
        return get_lambda_dynamodb_client(settings)
    return boto3.client("dynamodb", region_name=settings.region, endpoint_url=settings.endpoint_url)


def _reset_lambda_clients_for_tests() -> None:
    _lambda_clients.clear()
