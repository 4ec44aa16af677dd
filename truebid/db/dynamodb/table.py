from __future__ import annotations

from typing import Any

from ...settings import get_settings
from .client import table_resource
from .errors import DdbInternal
from .retry import RetryPolicy, ddb_call


class DynamoTable:
    def __init__(self, *, table_name: str, retry_policy: RetryPolicy | None = None):
        self.table_name = str(table_name)
        self._table = table_resource(self.table_name)
        self._retry_policy = retry_policy

    def get_item(self, *, key: dict[str, Any]) -> dict[str, Any] | None:
        def _op():
            resp = self._table.get_item(Key=key)
            return resp.get("Item")

        return ddb_call(
            "GetItem", _op, table_name=self.table_name, key=key, retry_policy=self._retry_policy
        )

    def update_item(
        self,
        *,
        key: dict[str, Any],
        update_expression: str,
        expression_attribute_names: dict[str, str] | None,
        expression_attribute_values: dict[str, Any],
        condition_expression: str | None = None,
        return_values: str = "ALL_NEW",
    ) -> dict[str, Any] | None:
        def _op():
            kwargs: dict[str, Any] = {
                "Key": key,
                "UpdateExpression": update_expression,
                "ExpressionAttributeValues": expression_attribute_values,
                "ReturnValues": return_values,
            }
            if expression_attribute_names:
                kwargs["ExpressionAttributeNames"] = expression_attribute_names
            if condition_expression:
                kwargs["ConditionExpression"] = condition_expression
            resp = self._table.update_item(**kwargs)
            return resp.get("Attributes")

        return ddb_call(
            "UpdateItem", _op, table_name=self.table_name, key=key, retry_policy=self._retry_policy
        )


def get_main_table() -> DynamoTable:
    settings = get_settings()
    if not settings.ddb_table_name:
        raise DdbInternal(message="DDB_TABLE_NAME is not set", operation="Config")
    return DynamoTable(table_name=settings.ddb_table_name)
