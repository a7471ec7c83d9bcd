"""boto3 client handles injected into connectors and the snapshot store."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

import boto3
from botocore.config import Config

from src.core.config import Settings, settings

T = TypeVar("T")


@dataclass(frozen=True)
class AwsClients:
    cloudwatch: Any
    redshift_data: Any
    s3: Any


def build_clients(config: Settings = settings) -> AwsClients:
    """Create one session and the three service clients a run needs.

    boto3 clients are thread safe, so a single handle per service is shared
    by every connector running in worker threads.
    """
    session = boto3.session.Session(
        profile_name=config.aws_profile, region_name=config.aws_region
    )
    client_config = Config(
        retries={"max_attempts": config.aws_max_attempts, "mode": "standard"},
        max_pool_connections=50,
    )
    return AwsClients(
        cloudwatch=session.client("cloudwatch", config=client_config),
        redshift_data=session.client("redshift-data", config=client_config),
        s3=session.client("s3", config=client_config),
    )


async def call_aws(operation: Callable[..., T], **params: Any) -> T:
    """Run one blocking SDK call in a worker thread.

    Keeps the event loop free while fan-out connectors and the snapshot store
    wait on CloudWatch, Redshift Data and S3.
    """
    return await asyncio.to_thread(operation, **params)
