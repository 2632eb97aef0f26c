"""Base repository class for DynamoDB operations."""

from typing import Any, Generic, TypeVar

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from sitekit.config import get_settings
from sitekit.models.base import BaseModel
from sitekit.utils.exceptions import ConflictError, NotFoundError, StoreUnavailableError

logger = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)

# Error codes that mean "the store is busy or down", as opposed to a
# rejected condition
TRANSIENT_ERROR_CODES = frozenset({
    "ProvisionedThroughputExceededException",
    "ThrottlingException",
    "ThrottlingError",
    "RequestLimitExceeded",
    "InternalServerError",
    "ServiceUnavailable",
    "TransactionInProgressException",
})

_INDEX_KEY_NAMES = {
    None: ("PK", "SK"),
    "GSI1": ("GSI1PK", "GSI1SK"),
    "GSI2": ("GSI2PK", "GSI2SK"),
}


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


class BaseRepository(Generic[T]):
    """Base repository for DynamoDB single-table design.

    Provides CRUD operations with optimistic locking, and builders for
    transactional writes spanning several entities.
    """

    def __init__(
        self,
        model_class: type[T],
        table_name: str | None = None,
    ):
        """Initialize repository.

        Args:
            model_class: The Pydantic model class for this repository.
            table_name: DynamoDB table name. Defaults to the TABLE_NAME setting.
        """
        self.model_class = model_class
        self.table_name = table_name or get_settings().table_name
        self._dynamodb = None
        self._table = None

    @property
    def dynamodb(self):
        """Get DynamoDB resource (lazy initialization)."""
        if self._dynamodb is None:
            self._dynamodb = boto3.resource("dynamodb")
        return self._dynamodb

    @property
    def table(self):
        """Get DynamoDB table (lazy initialization)."""
        if self._table is None:
            self._table = self.dynamodb.Table(self.table_name)
        return self._table

    def _build_key(self, pk: str, sk: str) -> dict[str, str]:
        """Build key dictionary for DynamoDB operations."""
        return {"PK": pk, "SK": sk}

    def _raise_store_error(self, error: Exception, operation: str, **context: Any) -> None:
        """Translate a boto error into a sitekit exception and raise it."""
        if isinstance(error, ClientError):
            code = _error_code(error)
            if code == "ConditionalCheckFailedException":
                raise ConflictError() from error
            if code in TRANSIENT_ERROR_CODES:
                logger.warning(f"DynamoDB {operation} throttled or unavailable", code=code, **context)
                raise StoreUnavailableError(original_error=code) from error
            logger.error(f"DynamoDB {operation} failed", error=str(error), **context)
            raise error

        logger.warning(f"DynamoDB {operation} connection failure", error=str(error), **context)
        raise StoreUnavailableError(original_error=type(error).__name__) from error

    def get(self, pk: str, sk: str, consistent_read: bool = False) -> T | None:
        """Get an item by its primary key.

        Args:
            pk: Partition key value.
            sk: Sort key value.
            consistent_read: Use a strongly consistent read.

        Returns:
            Model instance or None if not found.
        """
        try:
            response = self.table.get_item(
                Key=self._build_key(pk, sk),
                ConsistentRead=consistent_read,
            )
        except (ClientError, BotoCoreError) as e:
            self._raise_store_error(e, "get_item", pk=pk, sk=sk)

        item = response.get("Item")
        if not item:
            return None
        return self.model_class.from_dynamodb(item)

    def get_or_raise(self, pk: str, sk: str, resource_type: str) -> T:
        """Get an item or raise NotFoundError."""
        item = self.get(pk, sk)
        if not item:
            resource_id = sk.split("#", 1)[-1] if "#" in sk else sk
            raise NotFoundError(resource_type, resource_id)
        return item

    def _to_item(self, item: T) -> dict[str, Any]:
        """Build the full stored item: attributes, primary and GSI keys."""
        db_item = item.to_dynamodb()
        db_item.update(item.get_keys())
        db_item.update(item.get_gsi_keys())
        return db_item

    def put(
        self,
        item: T,
        condition_expression: str | None = None,
        expression_names: dict[str, str] | None = None,
        expression_values: dict[str, Any] | None = None,
    ) -> T:
        """Put an item into DynamoDB.

        Args:
            item: Model instance to save.
            condition_expression: Optional condition expression.
            expression_names: Attribute name placeholders for the condition.
            expression_values: Attribute value placeholders for the condition.

        Returns:
            The saved model instance.

        Raises:
            ConflictError: If the condition fails.
        """
        item.update_timestamp()
        db_item = self._to_item(item)

        kwargs: dict[str, Any] = {"Item": db_item}
        if condition_expression:
            kwargs["ConditionExpression"] = condition_expression
        if expression_names:
            kwargs["ExpressionAttributeNames"] = expression_names
        if expression_values:
            kwargs["ExpressionAttributeValues"] = expression_values

        try:
            self.table.put_item(**kwargs)
        except (ClientError, BotoCoreError) as e:
            self._raise_store_error(e, "put_item", pk=db_item["PK"], sk=db_item["SK"])

        logger.debug(
            "Item saved",
            pk=db_item["PK"],
            sk=db_item["SK"],
            model=self.model_class.__name__,
        )
        return item

    def create(self, item: T) -> T:
        """Create a new item (fails if it exists).

        Raises:
            ConflictError: If item already exists.
        """
        return self.put(item, condition_expression="attribute_not_exists(PK)")

    def update(self, item: T, check_version: bool = True) -> T:
        """Update an existing item with optimistic locking.

        Args:
            item: Model instance to update.
            check_version: Whether to check version for optimistic locking.

        Returns:
            The updated model instance.

        Raises:
            ConflictError: If version mismatch (concurrent modification).
        """
        old_version = item.version
        item.increment_version()

        try:
            if check_version:
                return self.put(
                    item,
                    condition_expression="#version = :old_version",
                    expression_names={"#version": "version"},
                    expression_values={":old_version": old_version},
                )
            return self.put(item)
        except ConflictError:
            item.version = old_version
            raise ConflictError("Item was modified by another process, please try again")

    def delete(self, pk: str, sk: str) -> bool:
        """Delete an item.

        Returns:
            True if deleted, False if not found.
        """
        try:
            self.table.delete_item(
                Key=self._build_key(pk, sk),
                ConditionExpression="attribute_exists(PK)",
            )
        except ClientError as e:
            if _error_code(e) == "ConditionalCheckFailedException":
                return False
            self._raise_store_error(e, "delete_item", pk=pk, sk=sk)
        except BotoCoreError as e:
            self._raise_store_error(e, "delete_item", pk=pk, sk=sk)

        logger.debug("Item deleted", pk=pk, sk=sk)
        return True

    def query(
        self,
        pk: str,
        sk_begins_with: str | None = None,
        index_name: str | None = None,
        limit: int | None = None,
        scan_forward: bool = True,
        filter_expression: str | None = None,
        expression_names: dict[str, str] | None = None,
        expression_values: dict[str, Any] | None = None,
        last_key: dict | None = None,
    ) -> tuple[list[T], dict | None]:
        """Query items by partition key.

        Args:
            pk: Partition key value (of the index when ``index_name`` is set).
            sk_begins_with: Sort key prefix for begins_with condition.
            index_name: Optional GSI name ("GSI1" or "GSI2").
            limit: Maximum items to return.
            scan_forward: Sort direction (True = ascending).
            filter_expression: Optional filter expression.
            expression_names: Attribute name placeholders.
            expression_values: Additional expression attribute values.
            last_key: Last evaluated key for pagination.

        Returns:
            Tuple of (items, last_evaluated_key).
        """
        pk_name, sk_name = _INDEX_KEY_NAMES[index_name]

        key_condition = "#pk = :pk"
        names = {"#pk": pk_name}
        values: dict[str, Any] = {":pk": pk}
        if sk_begins_with:
            key_condition += " AND begins_with(#sk, :sk_prefix)"
            names["#sk"] = sk_name
            values[":sk_prefix"] = sk_begins_with

        if expression_names:
            names.update(expression_names)
        if expression_values:
            values.update(expression_values)

        kwargs: dict[str, Any] = {
            "KeyConditionExpression": key_condition,
            "ExpressionAttributeNames": names,
            "ExpressionAttributeValues": values,
            "ScanIndexForward": scan_forward,
        }
        if index_name:
            kwargs["IndexName"] = index_name
        if limit:
            kwargs["Limit"] = limit
        if filter_expression:
            kwargs["FilterExpression"] = filter_expression
        if last_key:
            kwargs["ExclusiveStartKey"] = last_key

        try:
            response = self.table.query(**kwargs)
        except (ClientError, BotoCoreError) as e:
            self._raise_store_error(e, "query", pk=pk, index=index_name)

        items = [self.model_class.from_dynamodb(item) for item in response.get("Items", [])]
        return items, response.get("LastEvaluatedKey")

    # -----------------------------------------------------------------
    # Transactions
    # -----------------------------------------------------------------

    def put_operation(
        self,
        item: T,
        condition_expression: str | None = None,
        expression_names: dict[str, str] | None = None,
        expression_values: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Build a Put for ``transact_write``."""
        item.update_timestamp()
        put: dict[str, Any] = {"TableName": self.table_name, "Item": self._to_item(item)}
        if condition_expression:
            put["ConditionExpression"] = condition_expression
        if expression_names:
            put["ExpressionAttributeNames"] = expression_names
        if expression_values:
            put["ExpressionAttributeValues"] = expression_values
        return {"Put": put}

    def update_operation(
        self,
        pk: str,
        sk: str,
        update_expression: str,
        condition_expression: str | None = None,
        expression_names: dict[str, str] | None = None,
        expression_values: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Build an Update for ``transact_write``."""
        update: dict[str, Any] = {
            "TableName": self.table_name,
            "Key": self._build_key(pk, sk),
            "UpdateExpression": update_expression,
        }
        if condition_expression:
            update["ConditionExpression"] = condition_expression
        if expression_names:
            update["ExpressionAttributeNames"] = expression_names
        if expression_values:
            update["ExpressionAttributeValues"] = expression_values
        return {"Update": update}

    def delete_operation(
        self,
        pk: str,
        sk: str,
        condition_expression: str | None = None,
        expression_names: dict[str, str] | None = None,
        expression_values: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Build a Delete for ``transact_write``."""
        delete: dict[str, Any] = {
            "TableName": self.table_name,
            "Key": self._build_key(pk, sk),
        }
        if condition_expression:
            delete["ConditionExpression"] = condition_expression
        if expression_names:
            delete["ExpressionAttributeNames"] = expression_names
        if expression_values:
            delete["ExpressionAttributeValues"] = expression_values
        return {"Delete": delete}

    def transact_write(self, operations: list[dict[str, Any]]) -> None:
        """Apply several writes atomically: all succeed or none do.

        Args:
            operations: Operations built with the ``*_operation`` helpers.

        Raises:
            ConflictError: If any condition fails; ``reasons`` holds the
                cancellation code of each operation, in order.
            StoreUnavailableError: If the store is throttled or unreachable.
        """
        if not operations:
            return

        try:
            self.dynamodb.meta.client.transact_write_items(TransactItems=operations)
        except ClientError as e:
            if _error_code(e) == "TransactionCanceledException":
                reasons = [
                    reason.get("Code", "None")
                    for reason in e.response.get("CancellationReasons", [])
                ]
                logger.info("Transaction cancelled", reasons=reasons)
                if any(code in TRANSIENT_ERROR_CODES for code in reasons):
                    raise StoreUnavailableError(original_error="TransactionConflict") from e
                raise ConflictError(reasons=reasons) from e
            self._raise_store_error(e, "transact_write_items", operations=len(operations))
        except BotoCoreError as e:
            self._raise_store_error(e, "transact_write_items", operations=len(operations))

        logger.debug("Transaction committed", operations=len(operations))
