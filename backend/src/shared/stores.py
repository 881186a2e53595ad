"""
DynamoDB-backed stores for accounts, tasks, submissions, withdrawals,
payment history and notifications.

Each store exposes narrow single-item operations plus `*_op` builders that
return TransactWriteItems entries. The marketplace combines those entries so
that writes which must agree are committed together by `transact_write`.
"""
from decimal import Decimal
from typing import Any, Dict, Optional

from botocore.exceptions import ClientError

from .dynamo import get_table, put_op, update_op, delete_op, is_condition_failure
from .config import config
from .errors import Conflict, InternalError, NotFound
from .logging import logger


class DynamoStore:
    """Common single-item access for a table keyed by one string attribute."""

    key_name = ''
    entity = 'Item'

    def __init__(self, table_name: str, table=None):
        self.table_name = table_name
        self.table = table if table is not None else get_table(table_name)

    def _key(self, key_value: str) -> Dict[str, str]:
        return {self.key_name: key_value}

    def get(self, key_value: str) -> Optional[Dict[str, Any]]:
        """Strongly consistent read; None if absent."""
        try:
            response = self.table.get_item(Key=self._key(key_value), ConsistentRead=True)
        except ClientError as e:
            logger.error(f"Error getting item from {self.table_name}: {e}")
            raise InternalError('Storage failure') from e
        return response.get('Item')

    def _put_new(self, item: Dict[str, Any]) -> Dict[str, Any]:
        try:
            self.table.put_item(
                Item=item,
                ConditionExpression=f'attribute_not_exists({self.key_name})'
            )
        except ClientError as e:
            if is_condition_failure(e):
                raise Conflict(f'{self.entity} already exists', {self.key_name: item[self.key_name]}) from e
            logger.error(f"Error writing to {self.table_name}: {e}")
            raise InternalError('Storage failure') from e
        return item

    def _update_existing(self, key_value: str, **params) -> Dict[str, Any]:
        try:
            response = self.table.update_item(
                Key=self._key(key_value),
                ConditionExpression=f'attribute_exists({self.key_name})',
                ReturnValues='ALL_NEW',
                **params
            )
        except ClientError as e:
            if is_condition_failure(e):
                raise NotFound(f'{self.entity} not found', {self.key_name: key_value}) from e
            logger.error(f"Error updating item in {self.table_name}: {e}")
            raise InternalError('Storage failure') from e
        return response.get('Attributes', {})

    def _transition_op(
        self,
        key_value: str,
        new_status: str,
        expected_status: str,
        timestamp_field: str,
        timestamp: str
    ) -> Dict[str, Any]:
        return update_op(
            self.table_name,
            self._key(key_value),
            f'SET #status = :new_status, {timestamp_field} = :ts',
            {':new_status': new_status, ':expected_status': expected_status, ':ts': timestamp},
            expression_names={'#status': 'status'},
            condition='#status = :expected_status'
        )


class AccountStore(DynamoStore):
    """Ledger store: account identity (email) to role and coin balance."""

    key_name = 'email'
    entity = 'Account'

    def __init__(self, table_name: str = None, table=None):
        super().__init__(table_name or config.ACCOUNTS_TABLE, table)

    def create(self, item: Dict[str, Any]) -> Dict[str, Any]:
        return self._put_new(item)

    def adjust(self, email: str, delta: Decimal) -> Decimal:
        """Atomically add `delta` to the balance and return the new balance."""
        attributes = self._update_existing(
            email,
            UpdateExpression='ADD coin :delta',
            ExpressionAttributeValues={':delta': delta}
        )
        return attributes.get('coin', Decimal('0'))

    def adjust_op(self, email: str, delta: Decimal, require_funds: bool = False) -> Dict[str, Any]:
        """
        Transactional form of `adjust`.

        With require_funds the entry also fails unless the current balance
        covers the debit.
        """
        condition = 'attribute_exists(email)'
        values = {':delta': delta}
        if require_funds:
            condition += ' AND coin >= :debit'
            values[':debit'] = -delta
        return update_op(
            self.table_name,
            self._key(email),
            'ADD coin :delta',
            values,
            condition=condition
        )

    def set_role(self, email: str, role: str) -> Dict[str, Any]:
        return self._update_existing(
            email,
            UpdateExpression='SET #role = :role',
            ExpressionAttributeNames={'#role': 'role'},
            ExpressionAttributeValues={':role': role}
        )

    def delete(self, email: str) -> None:
        try:
            self.table.delete_item(
                Key=self._key(email),
                ConditionExpression='attribute_exists(email)'
            )
        except ClientError as e:
            if is_condition_failure(e):
                raise NotFound('Account not found', {'email': email}) from e
            logger.error(f"Error deleting account {email}: {e}")
            raise InternalError('Storage failure') from e


class TaskStore(DynamoStore):
    """Task registry: task id to payable amount, remaining slots and owner."""

    key_name = 'taskId'
    entity = 'Task'

    def __init__(self, table_name: str = None, table=None):
        super().__init__(table_name or config.TASKS_TABLE, table)

    def create(self, item: Dict[str, Any]) -> Dict[str, Any]:
        return self._put_new(item)

    def update_details(self, task_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        names = {f'#f{i}': name for i, name in enumerate(fields)}
        values = {f':v{i}': value for i, value in enumerate(fields.values())}
        assignments = ', '.join(f'#f{i} = :v{i}' for i in range(len(fields)))
        return self._update_existing(
            task_id,
            UpdateExpression=f'SET {assignments}',
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=values
        )

    def claim_slot_op(self, task_id: str) -> Dict[str, Any]:
        """Consume one worker slot; fails if the task is gone or exhausted."""
        return update_op(
            self.table_name,
            self._key(task_id),
            'ADD requiredWorkers :minus_one',
            {':minus_one': -1, ':zero': 0},
            condition='requiredWorkers > :zero'
        )

    def release_slot_op(self, task_id: str) -> Dict[str, Any]:
        """Return one worker slot to an existing task."""
        return update_op(
            self.table_name,
            self._key(task_id),
            'ADD requiredWorkers :one',
            {':one': 1},
            condition='attribute_exists(taskId)'
        )

    def delete_op(self, task_id: str, expected_remaining: Decimal) -> Dict[str, Any]:
        """Delete the task only if its remaining-slot counter is unchanged."""
        return delete_op(
            self.table_name,
            self._key(task_id),
            condition='requiredWorkers = :expected',
            expression_values={':expected': expected_remaining}
        )


class SubmissionStore(DynamoStore):
    """Submission log: a worker's claim against one task slot."""

    key_name = 'submissionId'
    entity = 'Submission'

    def __init__(self, table_name: str = None, table=None):
        super().__init__(table_name or config.SUBMISSIONS_TABLE, table)

    def create_op(self, item: Dict[str, Any]) -> Dict[str, Any]:
        return put_op(self.table_name, item, condition='attribute_not_exists(submissionId)')

    def transition_op(self, submission_id: str, new_status: str, expected_status: str, timestamp: str) -> Dict[str, Any]:
        return self._transition_op(submission_id, new_status, expected_status, 'reviewedAt', timestamp)


class WithdrawalStore(DynamoStore):
    """Withdrawal log: a worker's payout request."""

    key_name = 'withdrawalId'
    entity = 'Withdrawal'

    def __init__(self, table_name: str = None, table=None):
        super().__init__(table_name or config.WITHDRAWALS_TABLE, table)

    def create(self, item: Dict[str, Any]) -> Dict[str, Any]:
        return self._put_new(item)

    def transition_op(self, withdrawal_id: str, new_status: str, expected_status: str, timestamp: str) -> Dict[str, Any]:
        return self._transition_op(withdrawal_id, new_status, expected_status, 'approvedAt', timestamp)


class PaymentStore(DynamoStore):
    """Payment history keyed by the external transaction id."""

    key_name = 'transactionId'
    entity = 'Payment'

    def __init__(self, table_name: str = None, table=None):
        super().__init__(table_name or config.PAYMENTS_TABLE, table)

    def record_op(self, item: Dict[str, Any]) -> Dict[str, Any]:
        return put_op(self.table_name, item, condition='attribute_not_exists(transactionId)')


class NotificationStore(DynamoStore):
    """Append-only notification log."""

    key_name = 'notificationId'
    entity = 'Notification'

    def __init__(self, table_name: str = None, table=None):
        super().__init__(table_name or config.NOTIFICATIONS_TABLE, table)

    def append(self, item: Dict[str, Any]) -> None:
        self.table.put_item(Item=item)
