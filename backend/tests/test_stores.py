"""
Tests for the DynamoDB stores and the transaction helper, using mocked boto3 objects.
"""
import json
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from shared import dynamo
from shared.dynamo import transact_write, serialize
from shared.errors import Conflict, InternalError, NotFound, TransactionCancelled
from shared.stores import AccountStore, TaskStore, SubmissionStore, WithdrawalStore, PaymentStore


def client_error(code, **extra):
    response = {'Error': {'Code': code, 'Message': code}}
    response.update(extra)
    return ClientError(response, 'Operation')


class TestAccountStore:

    def test_create_is_conditional_on_new_email(self):
        table = MagicMock()
        AccountStore(table_name='accounts', table=table).create({'email': 'a@example.com', 'coin': 10})

        kwargs = table.put_item.call_args.kwargs
        assert kwargs['ConditionExpression'] == 'attribute_not_exists(email)'

    def test_duplicate_create_is_conflict(self):
        table = MagicMock()
        table.put_item.side_effect = client_error('ConditionalCheckFailedException')

        with pytest.raises(Conflict):
            AccountStore(table_name='accounts', table=table).create({'email': 'a@example.com'})

    def test_adjust_uses_atomic_add(self):
        table = MagicMock()
        table.update_item.return_value = {'Attributes': {'coin': Decimal('15')}}

        new_balance = AccountStore(table_name='accounts', table=table).adjust('a@example.com', Decimal('5'))

        kwargs = table.update_item.call_args.kwargs
        assert new_balance == Decimal('15')
        assert kwargs['UpdateExpression'] == 'ADD coin :delta'
        assert kwargs['ConditionExpression'] == 'attribute_exists(email)'
        assert kwargs['ExpressionAttributeValues'] == {':delta': Decimal('5')}

    def test_adjust_missing_account_is_not_found(self):
        table = MagicMock()
        table.update_item.side_effect = client_error('ConditionalCheckFailedException')

        with pytest.raises(NotFound):
            AccountStore(table_name='accounts', table=table).adjust('ghost@example.com', Decimal('5'))

    def test_other_client_errors_are_internal(self):
        table = MagicMock()
        table.get_item.side_effect = client_error('ProvisionedThroughputExceededException')

        with pytest.raises(InternalError):
            AccountStore(table_name='accounts', table=table).get('a@example.com')

    def test_get_is_strongly_consistent(self):
        table = MagicMock()
        table.get_item.return_value = {'Item': {'email': 'a@example.com'}}

        item = AccountStore(table_name='accounts', table=table).get('a@example.com')

        assert item == {'email': 'a@example.com'}
        assert table.get_item.call_args.kwargs['ConsistentRead'] is True

    def test_adjust_op_without_funds_check(self):
        op = AccountStore(table_name='accounts', table=MagicMock()).adjust_op('a@example.com', Decimal('5'))

        update = op['Update']
        assert update['TableName'] == 'accounts'
        assert update['Key'] == {'email': {'S': 'a@example.com'}}
        assert update['UpdateExpression'] == 'ADD coin :delta'
        assert update['ConditionExpression'] == 'attribute_exists(email)'
        assert update['ExpressionAttributeValues'] == {':delta': {'N': '5'}}

    def test_adjust_op_with_funds_check(self):
        op = AccountStore(table_name='accounts', table=MagicMock()).adjust_op(
            'a@example.com', Decimal('-8'), require_funds=True
        )

        update = op['Update']
        assert update['ConditionExpression'] == 'attribute_exists(email) AND coin >= :debit'
        assert update['ExpressionAttributeValues'][':debit'] == {'N': '8'}


class TestTaskStore:

    def test_claim_slot_requires_open_slot(self):
        op = TaskStore(table_name='tasks', table=MagicMock()).claim_slot_op('t1')

        update = op['Update']
        assert update['UpdateExpression'] == 'ADD requiredWorkers :minus_one'
        assert update['ConditionExpression'] == 'requiredWorkers > :zero'
        assert update['ExpressionAttributeValues'] == {':minus_one': {'N': '-1'}, ':zero': {'N': '0'}}

    def test_release_slot_requires_existing_task(self):
        op = TaskStore(table_name='tasks', table=MagicMock()).release_slot_op('t1')

        assert op['Update']['ConditionExpression'] == 'attribute_exists(taskId)'

    def test_delete_is_conditioned_on_unchanged_counter(self):
        op = TaskStore(table_name='tasks', table=MagicMock()).delete_op('t1', Decimal('2'))

        delete = op['Delete']
        assert delete['Key'] == {'taskId': {'S': 't1'}}
        assert delete['ConditionExpression'] == 'requiredWorkers = :expected'
        assert delete['ExpressionAttributeValues'] == {':expected': {'N': '2'}}

    def test_update_details_sets_each_field(self):
        table = MagicMock()
        table.update_item.return_value = {'Attributes': {'taskId': 't1', 'title': 'x'}}

        TaskStore(table_name='tasks', table=table).update_details('t1', {'title': 'x', 'detail': 'y'})

        kwargs = table.update_item.call_args.kwargs
        assert kwargs['UpdateExpression'] == 'SET #f0 = :v0, #f1 = :v1'
        assert kwargs['ExpressionAttributeNames'] == {'#f0': 'title', '#f1': 'detail'}
        assert kwargs['ReturnValues'] == 'ALL_NEW'

    def test_update_missing_task_is_not_found(self):
        table = MagicMock()
        table.update_item.side_effect = client_error('ConditionalCheckFailedException')

        with pytest.raises(NotFound):
            TaskStore(table_name='tasks', table=table).update_details('t1', {'title': 'x'})


class TestStatusTransitions:

    def test_submission_transition_guards_expected_status(self):
        op = SubmissionStore(table_name='subs', table=MagicMock()).transition_op(
            's1', 'approved', 'pending', '2025-01-01T00:00:00+00:00'
        )

        update = op['Update']
        assert update['UpdateExpression'] == 'SET #status = :new_status, reviewedAt = :ts'
        assert update['ConditionExpression'] == '#status = :expected_status'
        assert update['ExpressionAttributeNames'] == {'#status': 'status'}
        assert update['ExpressionAttributeValues'][':expected_status'] == {'S': 'pending'}

    def test_withdrawal_transition_stamps_approval(self):
        op = WithdrawalStore(table_name='wds', table=MagicMock()).transition_op(
            'w1', 'approved', 'pending', 'ts'
        )

        assert op['Update']['UpdateExpression'] == 'SET #status = :new_status, approvedAt = :ts'

    def test_payment_record_is_unique_per_transaction(self):
        op = PaymentStore(table_name='payments', table=MagicMock()).record_op(
            {'transactionId': 'pi_1', 'email': 'a@example.com', 'coins': 100, 'price': Decimal('1')}
        )

        put = op['Put']
        assert put['ConditionExpression'] == 'attribute_not_exists(transactionId)'
        assert put['Item']['transactionId'] == {'S': 'pi_1'}
        assert put['Item']['coins'] == {'N': '100'}


class TestTransactWrite:

    def test_passes_items_through(self):
        client = MagicMock()
        items = [{'Put': {'TableName': 't', 'Item': serialize({'id': 'x'})}}]

        transact_write(items, client=client)

        client.transact_write_items.assert_called_once_with(TransactItems=items)

    def test_cancellation_reports_reason_per_item(self):
        client = MagicMock()
        client.transact_write_items.side_effect = client_error(
            'TransactionCanceledException',
            CancellationReasons=[{'Code': 'None'}, {'Code': 'ConditionalCheckFailed'}]
        )

        with pytest.raises(TransactionCancelled) as exc_info:
            transact_write([{}, {}], client=client)

        assert exc_info.value.reasons == ['None', 'ConditionalCheckFailed']
        assert not exc_info.value.failed(0)
        assert exc_info.value.failed(1)

    def test_cancellation_without_reasons(self):
        client = MagicMock()
        client.transact_write_items.side_effect = client_error('TransactionCanceledException')

        with pytest.raises(TransactionCancelled) as exc_info:
            transact_write([{}], client=client)

        assert exc_info.value.reasons == []
        assert not exc_info.value.failed(0)

    def test_other_errors_are_internal(self):
        client = MagicMock()
        client.transact_write_items.side_effect = client_error('InternalServerError')

        with pytest.raises(InternalError):
            transact_write([{}], client=client)


class CapturedRequest(Exception):
    """Raised from a before-send hook to stop the request before the network."""

    def __init__(self, body):
        super().__init__('request captured')
        self.body = body


class TestTransactWireFormat:

    def capture_transaction(self, items):
        def capture(request, **kwargs):
            raise CapturedRequest(json.loads(request.body))

        events = dynamo.dynamodb_client.meta.events
        events.register('before-send.dynamodb.TransactWriteItems', capture)
        try:
            with pytest.raises(CapturedRequest) as exc_info:
                transact_write(items)
        finally:
            events.unregister('before-send.dynamodb.TransactWriteItems', capture)
        return exc_info.value.body['TransactItems']

    def test_default_client_sends_attribute_values_once_encoded(self):
        op = AccountStore(table_name='accounts', table=MagicMock()).adjust_op(
            'w@x.com', Decimal('-5'), require_funds=True
        )

        update = self.capture_transaction([op])[0]['Update']

        assert update['TableName'] == 'accounts'
        assert update['Key'] == {'email': {'S': 'w@x.com'}}
        assert update['ExpressionAttributeValues'] == {':delta': {'N': '-5'}, ':debit': {'N': '5'}}

    def test_put_and_delete_items_are_low_level(self):
        put = PaymentStore(table_name='payments', table=MagicMock()).record_op(
            {'transactionId': 'pi_1', 'email': 'a@example.com', 'coins': 100}
        )
        delete = TaskStore(table_name='tasks', table=MagicMock()).delete_op('t1', Decimal('2'))

        sent = self.capture_transaction([put, delete])

        assert sent[0]['Put']['Item'] == {
            'transactionId': {'S': 'pi_1'},
            'email': {'S': 'a@example.com'},
            'coins': {'N': '100'}
        }
        assert sent[1]['Delete']['Key'] == {'taskId': {'S': 't1'}}
        assert sent[1]['Delete']['ExpressionAttributeValues'] == {':expected': {'N': '2'}}
