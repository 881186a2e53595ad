"""
Shared fixtures: in-memory stores that honor the same conditional-write
semantics as the DynamoDB stores, and API Gateway event builders.
"""
import copy
import json
import os
import sys
from decimal import Decimal

import pytest

# Add src to path for import
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

# boto3 clients are built at import; requests are signed but never sent
os.environ.setdefault('AWS_ACCESS_KEY_ID', 'testing')
os.environ.setdefault('AWS_SECRET_ACCESS_KEY', 'testing')

from shared import service  # noqa: E402
from shared.config import config  # noqa: E402
from shared.errors import Conflict, NotFound, TransactionCancelled  # noqa: E402
from shared.marketplace import Marketplace  # noqa: E402

TEST_TOKEN_SECRET = 'test-secret-for-access-tokens-0123456789abcdef'


class FakeOp:
    """One transactional write: a condition and the mutation it guards."""

    def __init__(self, check, apply):
        self.check = check
        self.apply = apply


class FakeDatabase:
    """All-or-nothing application of FakeOps, like TransactWriteItems."""

    def __init__(self):
        self.transactions = 0

    def transact(self, ops):
        reasons = ['None' if op.check() else 'ConditionalCheckFailed' for op in ops]
        if any(reason != 'None' for reason in reasons):
            raise TransactionCancelled(reasons)
        for op in ops:
            op.apply()
        self.transactions += 1


class FakeStore:
    key_name = ''
    entity = 'Item'

    def __init__(self):
        self.items = {}

    def get(self, key_value):
        item = self.items.get(key_value)
        return copy.deepcopy(item) if item is not None else None

    def create(self, item):
        key_value = item[self.key_name]
        if key_value in self.items:
            raise Conflict(f'{self.entity} already exists')
        self.items[key_value] = copy.deepcopy(item)
        return item

    def create_op(self, item):
        key_value = item[self.key_name]
        return FakeOp(
            check=lambda: key_value not in self.items,
            apply=lambda: self.items.__setitem__(key_value, copy.deepcopy(item))
        )

    def _transition_op(self, key_value, new_status, expected_status, timestamp_field, timestamp):
        def check():
            item = self.items.get(key_value)
            return item is not None and item.get('status') == expected_status

        def apply():
            self.items[key_value]['status'] = new_status
            self.items[key_value][timestamp_field] = timestamp

        return FakeOp(check, apply)


class FakeAccountStore(FakeStore):
    key_name = 'email'
    entity = 'Account'

    def adjust(self, email, delta):
        if email not in self.items:
            raise NotFound('Account not found')
        self.items[email]['coin'] = Decimal(self.items[email]['coin']) + Decimal(delta)
        return self.items[email]['coin']

    def adjust_op(self, email, delta, require_funds=False):
        def check():
            if email not in self.items:
                return False
            return not require_funds or self.items[email]['coin'] >= -delta

        def apply():
            self.items[email]['coin'] = Decimal(self.items[email]['coin']) + Decimal(delta)

        return FakeOp(check, apply)

    def set_role(self, email, role):
        if email not in self.items:
            raise NotFound('Account not found')
        self.items[email]['role'] = role
        return copy.deepcopy(self.items[email])

    def delete(self, email):
        if self.items.pop(email, None) is None:
            raise NotFound('Account not found')


class FakeTaskStore(FakeStore):
    key_name = 'taskId'
    entity = 'Task'

    def update_details(self, task_id, fields):
        if task_id not in self.items:
            raise NotFound('Task not found')
        self.items[task_id].update(fields)
        return copy.deepcopy(self.items[task_id])

    def claim_slot_op(self, task_id):
        def check():
            task = self.items.get(task_id)
            return task is not None and task['requiredWorkers'] > 0

        def apply():
            self.items[task_id]['requiredWorkers'] -= 1

        return FakeOp(check, apply)

    def release_slot_op(self, task_id):
        def apply():
            self.items[task_id]['requiredWorkers'] += 1

        return FakeOp(lambda: task_id in self.items, apply)

    def delete_op(self, task_id, expected_remaining):
        def check():
            task = self.items.get(task_id)
            return task is not None and task['requiredWorkers'] == expected_remaining

        return FakeOp(check, lambda: self.items.pop(task_id))


class FakeSubmissionStore(FakeStore):
    key_name = 'submissionId'
    entity = 'Submission'

    def transition_op(self, submission_id, new_status, expected_status, timestamp):
        return self._transition_op(submission_id, new_status, expected_status, 'reviewedAt', timestamp)


class FakeWithdrawalStore(FakeStore):
    key_name = 'withdrawalId'
    entity = 'Withdrawal'

    def transition_op(self, withdrawal_id, new_status, expected_status, timestamp):
        return self._transition_op(withdrawal_id, new_status, expected_status, 'approvedAt', timestamp)


class FakePaymentStore(FakeStore):
    key_name = 'transactionId'
    entity = 'Payment'

    def record_op(self, item):
        return self.create_op(item)


class FakeNotificationStore:
    def __init__(self):
        self.items = []
        self.fail = False

    def append(self, item):
        if self.fail:
            raise RuntimeError('notification table unavailable')
        self.items.append(item)


class FakeStores:
    def __init__(self):
        self.database = FakeDatabase()
        self.accounts = FakeAccountStore()
        self.tasks = FakeTaskStore()
        self.submissions = FakeSubmissionStore()
        self.withdrawals = FakeWithdrawalStore()
        self.payments = FakePaymentStore()
        self.notifications = FakeNotificationStore()


@pytest.fixture
def stores():
    return FakeStores()


@pytest.fixture
def marketplace(stores):
    return Marketplace(
        accounts=stores.accounts,
        tasks=stores.tasks,
        submissions=stores.submissions,
        withdrawals=stores.withdrawals,
        payments=stores.payments,
        notifications=stores.notifications,
        transact=stores.database.transact
    )


@pytest.fixture
def wired_marketplace(marketplace, monkeypatch):
    """Make every handler's get_marketplace() return the in-memory marketplace."""
    monkeypatch.setattr(service, '_marketplace', marketplace)
    monkeypatch.setattr(config, 'ACCESS_TOKEN_SECRET', TEST_TOKEN_SECRET)
    return marketplace


@pytest.fixture
def token_secret(monkeypatch):
    monkeypatch.setattr(config, 'ACCESS_TOKEN_SECRET', TEST_TOKEN_SECRET)
    return TEST_TOKEN_SECRET


@pytest.fixture
def make_event():
    """Build an API Gateway proxy event with Cognito-style authorizer claims."""

    def build(email=None, body=None, path=None, headers=None):
        event = {
            'httpMethod': 'POST',
            'pathParameters': path or {},
            'headers': headers or {},
            'body': json.dumps(body) if body is not None else None
        }
        if email:
            event['requestContext'] = {'authorizer': {'claims': {'email': email, 'sub': f'sub-{email}'}}}
        return event

    return build
