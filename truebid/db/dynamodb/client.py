from __future__ import annotations

from functools import lru_cache

import boto3
from botocore.config import Config

from ...settings import get_settings


@lru_cache(maxsize=1)
def botocore_config() -> Config:
    # Botocore keeps its own adaptive retries; ddb_call adds a narrow app-layer retry.
    return Config(
        retries={"max_attempts": 5, "mode": "adaptive"},
        connect_timeout=2,
        read_timeout=5,
    )


@lru_cache(maxsize=1)
def dynamodb_resource():
    return boto3.resource(
        "dynamodb",
        region_name=get_settings().aws_region,
        config=botocore_config(),
    )


def table_resource(table_name: str):
    return dynamodb_resource().Table(table_name)
