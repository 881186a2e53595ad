"""
DynamoDB utility functions for single-item and transactional operations.
"""
import boto3
from typing import List, Dict, Any, Optional
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError
from .config import config
from .errors import InternalError, TransactionCancelled
from .logging import logger

dynamodb = boto3.resource('dynamodb', region_name=config.AWS_REGION)

# Transactions take attribute values already in low-level form.
dynamodb_client = boto3.client('dynamodb', region_name=config.AWS_REGION)

_serializer = TypeSerializer()


def get_table(table_name: str):
    """Return a boto3 Table resource for `table_name`."""
    return dynamodb.Table(table_name)


def serialize(values: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Convert a plain dict into DynamoDB attribute-value format."""
    return {k: _serializer.serialize(v) for k, v in values.items()}


def is_condition_failure(error: ClientError) -> bool:
    """True if a single-item write failed its ConditionExpression."""
    return error.response.get('Error', {}).get('Code') == 'ConditionalCheckFailedException'


def put_op(
    table_name: str,
    item: Dict[str, Any],
    condition: Optional[str] = None,
    expression_names: Optional[Dict[str, str]] = None,
    expression_values: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Build a Put entry for transact_write."""
    params = {
        'TableName': table_name,
        'Item': serialize(item)
    }
    if condition:
        params['ConditionExpression'] = condition
    if expression_names:
        params['ExpressionAttributeNames'] = expression_names
    if expression_values:
        params['ExpressionAttributeValues'] = serialize(expression_values)
    return {'Put': params}


def update_op(
    table_name: str,
    key: Dict[str, Any],
    update_expression: str,
    expression_values: Dict[str, Any],
    expression_names: Optional[Dict[str, str]] = None,
    condition: Optional[str] = None
) -> Dict[str, Any]:
    """Build an Update entry for transact_write."""
    params = {
        'TableName': table_name,
        'Key': serialize(key),
        'UpdateExpression': update_expression,
        'ExpressionAttributeValues': serialize(expression_values)
    }
    if expression_names:
        params['ExpressionAttributeNames'] = expression_names
    if condition:
        params['ConditionExpression'] = condition
    return {'Update': params}


def delete_op(
    table_name: str,
    key: Dict[str, Any],
    condition: Optional[str] = None,
    expression_values: Optional[Dict[str, Any]] = None,
    expression_names: Optional[Dict[str, str]] = None
) -> Dict[str, Any]:
    """Build a Delete entry for transact_write."""
    params = {
        'TableName': table_name,
        'Key': serialize(key)
    }
    if condition:
        params['ConditionExpression'] = condition
    if expression_values:
        params['ExpressionAttributeValues'] = serialize(expression_values)
    if expression_names:
        params['ExpressionAttributeNames'] = expression_names
    return {'Delete': params}


def transact_write(items: List[Dict[str, Any]], client=None) -> None:
    """
    Apply all items atomically with TransactWriteItems.

    Raises:
        TransactionCancelled: a condition failed; carries one reason code per item
        InternalError: any other DynamoDB failure
    """
    try:
        (client or dynamodb_client).transact_write_items(TransactItems=items)
    except ClientError as e:
        if e.response.get('Error', {}).get('Code') == 'TransactionCanceledException':
            reasons = [r.get('Code') for r in e.response.get('CancellationReasons', [])]
            logger.warning(f"Transaction cancelled: {reasons}")
            raise TransactionCancelled(reasons) from e
        logger.error(f"Error writing transaction: {e}")
        raise InternalError('Storage failure') from e
