"""DynamoDB-backed window cache shared by every intake Lambda container."""

from typing import Any, Optional

import boto3
from botocore.exceptions import ClientError

from utils.cache_service import WindowCache
from utils.logging_config import get_logger

logger = get_logger(__name__)

_CONDITION_FAILED = "ConditionalCheckFailedException"


def _condition_failed(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") == _CONDITION_FAILED


class DynamoDbWindowCache(WindowCache):
    """
    Conditional writes give per-key atomicity across instances.

    Table layout: partition key ``cache_key`` (S), ``expires_at`` (N, epoch
    seconds, also configured as the table TTL attribute), ``hit_count`` (N) and
    an optional ``payload``. DynamoDB TTL deletion lags, so every read checks
    ``expires_at`` itself.
    """

    def __init__(self, table_name: str, table: Any = None, max_retries: int = 3):
        self.table = table if table is not None else boto3.resource("dynamodb").Table(table_name)
        self.max_retries = max_retries

    def get(self, key: str, now: float) -> Optional[Any]:
        resp = self.table.get_item(Key={"cache_key": key}, ConsistentRead=True)
        item = resp.get("Item")
        if not item or float(item.get("expires_at", 0)) <= now:
            return None
        return item.get("payload", item.get("hit_count"))

    def put(self, key: str, value: Any, ttl_seconds: float, now: float) -> None:
        self.table.put_item(
            Item={
                "cache_key": key,
                "payload": value,
                "expires_at": int(now + ttl_seconds),
            }
        )

    def increment(self, key: str, ttl_seconds: float, now: float) -> int:
        for _ in range(self.max_retries):
            try:
                resp = self.table.update_item(
                    Key={"cache_key": key},
                    UpdateExpression="ADD hit_count :one",
                    ConditionExpression="expires_at > :now",
                    ExpressionAttributeValues={":one": 1, ":now": int(now)},
                    ReturnValues="UPDATED_NEW",
                )
                return int(resp["Attributes"]["hit_count"])
            except ClientError as exc:
                if not _condition_failed(exc):
                    raise

            # Absent or expired: open a new window unless another writer beat us.
            try:
                self.table.put_item(
                    Item={
                        "cache_key": key,
                        "hit_count": 1,
                        "expires_at": int(now + ttl_seconds),
                    },
                    ConditionExpression="attribute_not_exists(cache_key) OR expires_at <= :now",
                    ExpressionAttributeValues={":now": int(now)},
                )
                return 1
            except ClientError as exc:
                if not _condition_failed(exc):
                    raise
                logger.info("Window opened concurrently; retrying", extra={"cache_key": key})

        raise RuntimeError(f"could not update counter {key} after {self.max_retries} attempts")

    def add_if_absent(self, key: str, ttl_seconds: float, now: float) -> bool:
        try:
            self.table.put_item(
                Item={"cache_key": key, "expires_at": int(now + ttl_seconds)},
                ConditionExpression="attribute_not_exists(cache_key) OR expires_at <= :now",
                ExpressionAttributeValues={":now": int(now)},
            )
            return True
        except ClientError as exc:
            if _condition_failed(exc):
                return False
            raise

    def discard(self, key: str) -> None:
        self.table.delete_item(Key={"cache_key": key})

    def sweep(self, now: float) -> int:
        """Expiry is delegated to the table's TTL attribute."""
        return 0
