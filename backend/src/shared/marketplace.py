"""
Marketplace core: the state transitions that move coins, task slots,
submission statuses and withdrawal statuses together.

The core holds no state. Every operation validates its input, reads what it
needs, and commits the writes that must agree in a single transaction whose
conditions encode the preconditions (pending status, open slot, unused
payment id). Notifications are emitted only after the commit and never fail
the operation.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from .config import config
from .dynamo import transact_write
from .errors import Conflict, InvalidInput, NotFound, TransactionCancelled
from .logging import logger
from .models import Role, TaskStatus, SubmissionStatus, WithdrawalStatus, NotificationRoute


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _require(**fields) -> None:
    missing = [name for name, value in fields.items() if value is None or value == '']
    if missing:
        raise InvalidInput('Missing required fields', {'missing': missing})


def _to_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, bool):
        raise InvalidInput(f'{field} must be a number', {'field': field})
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidInput(f'{field} must be a number', {'field': field})
    if not number.is_finite():
        raise InvalidInput(f'{field} must be a finite number', {'field': field})
    return number


def _to_positive_int(value: Any, field: str) -> int:
    number = _to_decimal(value, field)
    if number != number.to_integral_value() or number <= 0:
        raise InvalidInput(f'{field} must be a positive integer', {'field': field})
    return int(number)


class Marketplace:
    """
    Coin-ledger and task-lifecycle transitions over injected stores.

    Stores must provide the operations of the classes in `shared.stores`;
    `transact` must apply a list of their `*_op` entries atomically or raise
    TransactionCancelled.
    """

    def __init__(
        self,
        accounts,
        tasks,
        submissions,
        withdrawals,
        payments,
        notifications,
        transact=transact_write
    ):
        self.accounts = accounts
        self.tasks = tasks
        self.submissions = submissions
        self.withdrawals = withdrawals
        self.payments = payments
        self.notifications = notifications
        self._transact = transact

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_account(self, email: str) -> Dict[str, Any]:
        account = self.accounts.get(email) if email else None
        if not account:
            raise NotFound('Account not found', {'email': email})
        return account

    def get_task(self, task_id: str) -> Dict[str, Any]:
        task = self.tasks.get(task_id) if task_id else None
        if not task:
            raise NotFound('Task not found', {'taskId': task_id})
        return task

    def get_submission(self, submission_id: str) -> Dict[str, Any]:
        submission = self.submissions.get(submission_id) if submission_id else None
        if not submission:
            raise NotFound('Submission not found', {'submissionId': submission_id})
        return submission

    def get_withdrawal(self, withdrawal_id: str) -> Dict[str, Any]:
        withdrawal = self.withdrawals.get(withdrawal_id) if withdrawal_id else None
        if not withdrawal:
            raise NotFound('Withdrawal not found', {'withdrawalId': withdrawal_id})
        return withdrawal

    # ------------------------------------------------------------------
    # Accounts and balances
    # ------------------------------------------------------------------

    def register_account(
        self,
        email: str,
        role: str,
        name: Optional[str] = None,
        photo_url: Optional[str] = None,
        uid: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create an account with the role's starting balance (Buyer 50, others 10)."""
        _require(email=email, role=role)
        role = Role.canonical(str(role))
        coin = config.BUYER_STARTING_COINS if role == Role.BUYER else config.DEFAULT_STARTING_COINS

        item = {
            'email': email,
            'role': role,
            'coin': coin,
            'createdAt': _now()
        }
        for attribute, value in (('name', name), ('photoUrl', photo_url), ('uid', uid)):
            if value:
                item[attribute] = value

        self.accounts.create(item)
        logger.info(f"Registered {role} account {email} with {coin} coins")
        return item

    def adjust_balance(self, email: str, delta: Any) -> Decimal:
        """Add a signed delta to an account balance. No floor is applied."""
        _require(email=email, delta=delta)
        delta = _to_decimal(delta, 'delta')
        balance = self.accounts.adjust(email, delta)
        logger.info(f"Adjusted balance of {email} by {delta}; balance is now {balance}")
        return balance

    def change_role(self, email: str, role: str) -> Dict[str, Any]:
        _require(email=email, role=role)
        account = self.accounts.set_role(email, Role.canonical(str(role)))
        logger.info(f"Changed role of {email} to {account.get('role')}")
        return account

    def remove_account(self, email: str) -> None:
        _require(email=email)
        self.accounts.delete(email)
        logger.info(f"Removed account {email}")

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def create_task(
        self,
        buyer_email: str,
        payable_amount: Any,
        required_workers: Any,
        title: str = '',
        detail: str = '',
        submission_info: str = ''
    ) -> Dict[str, Any]:
        """Post a task. Funds are not escrowed and the buyer balance is not checked."""
        _require(buyer_email=buyer_email, payable_amount=payable_amount, required_workers=required_workers)
        payable_amount = _to_decimal(payable_amount, 'payable_amount')
        if payable_amount < 0:
            raise InvalidInput('payable_amount must not be negative', {'field': 'payable_amount'})
        required_workers = _to_positive_int(required_workers, 'required_workers')

        item = {
            'taskId': str(uuid.uuid4()),
            'buyerEmail': buyer_email,
            'payableAmount': payable_amount,
            'requiredWorkers': required_workers,
            'status': TaskStatus.ACTIVE,
            'title': title or '',
            'detail': detail or '',
            'submissionInfo': submission_info or '',
            'createdAt': _now()
        }
        self.tasks.create(item)
        logger.info(f"Created task {item['taskId']} for {buyer_email}: {required_workers} x {payable_amount}")
        return item

    def update_task(
        self,
        task_id: str,
        title: Optional[str] = None,
        detail: Optional[str] = None,
        submission_info: Optional[str] = None
    ) -> Dict[str, Any]:
        """Edit descriptive fields only; amounts and slot counts are immutable here."""
        _require(task_id=task_id)
        fields = {
            name: value
            for name, value in (('title', title), ('detail', detail), ('submissionInfo', submission_info))
            if value is not None
        }
        if not fields:
            raise InvalidInput('Nothing to update', {'allowed': ['title', 'detail', 'submission_info']})
        return self.tasks.update_details(task_id, fields)

    def delete_task(self, task_id: str) -> Dict[str, Any]:
        """
        Delete a task and refund the owner for its unconsumed slots.

        The refund is remaining slots x payable amount at deletion time. The
        delete is conditioned on the slot counter being unchanged since the
        read, so a concurrent submission or rejection cancels it.
        """
        task = self.get_task(task_id)
        remaining = Decimal(task.get('requiredWorkers', 0))
        payable_amount = Decimal(task.get('payableAmount', 0))
        refund = max(remaining, Decimal('0')) * payable_amount
        buyer_email = task.get('buyerEmail')

        ops = [self.tasks.delete_op(task_id, remaining)]
        if refund > 0:
            ops.append(self.accounts.adjust_op(buyer_email, refund))

        try:
            self._transact(ops)
        except TransactionCancelled as e:
            if e.failed(1):
                raise NotFound('Buyer account not found', {'email': buyer_email})
            if self.tasks.get(task_id) is None:
                raise NotFound('Task not found', {'taskId': task_id})
            raise Conflict('Task changed while it was being deleted; retry', {'taskId': task_id})

        logger.info(f"Deleted task {task_id}; refunded {refund} coins to {buyer_email}")
        return {'taskId': task_id, 'buyerEmail': buyer_email, 'refund': refund}

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    def submit_work(
        self,
        task_id: str,
        worker_email: str,
        details: Any = None,
        worker_name: Optional[str] = None,
        buyer_email: Optional[str] = None,
        payable_amount: Any = None
    ) -> Dict[str, Any]:
        """
        Record a pending submission and consume one task slot.

        Buyer email and payable amount are copied from the stored task. When
        the caller also supplies them they must agree with the task.
        """
        _require(task_id=task_id, worker_email=worker_email)
        task = self.get_task(task_id)

        if buyer_email and buyer_email != task.get('buyerEmail'):
            raise InvalidInput('buyer_email does not match task', {'field': 'buyer_email'})
        if payable_amount is not None and _to_decimal(payable_amount, 'payable_amount') != task.get('payableAmount'):
            raise InvalidInput('payable_amount does not match task', {'field': 'payable_amount'})
        if task.get('requiredWorkers', 0) <= 0:
            raise Conflict('Task has no open slots', {'taskId': task_id})

        item = {
            'submissionId': str(uuid.uuid4()),
            'taskId': task_id,
            'taskTitle': task.get('title', ''),
            'workerEmail': worker_email,
            'buyerEmail': task.get('buyerEmail'),
            'payableAmount': task.get('payableAmount'),
            'details': details if details is not None else '',
            'status': SubmissionStatus.PENDING,
            'submittedAt': _now()
        }
        if worker_name:
            item['workerName'] = worker_name

        try:
            self._transact([
                self.submissions.create_op(item),
                self.tasks.claim_slot_op(task_id)
            ])
        except TransactionCancelled as e:
            if e.failed(1) and self.tasks.get(task_id) is None:
                raise NotFound('Task not found', {'taskId': task_id})
            raise Conflict('Task has no open slots', {'taskId': task_id})

        logger.info(f"Submission {item['submissionId']} by {worker_email} consumed a slot of task {task_id}")
        self._notify(
            item['buyerEmail'],
            f"{worker_name or worker_email} submitted work for '{item['taskTitle']}'",
            NotificationRoute.BUYER_HOME
        )
        return item

    def approve_submission(self, submission_id: str) -> Dict[str, Any]:
        """Approve a pending submission and credit the worker its payable amount."""
        submission = self._pending_submission(submission_id)
        amount = Decimal(submission.get('payableAmount', 0))
        worker_email = submission['workerEmail']
        timestamp = _now()

        try:
            self._transact([
                self.submissions.transition_op(
                    submission_id, SubmissionStatus.APPROVED, SubmissionStatus.PENDING, timestamp
                ),
                self.accounts.adjust_op(worker_email, amount)
            ])
        except TransactionCancelled as e:
            if e.failed(1):
                raise NotFound('Worker account not found', {'email': worker_email})
            raise Conflict('Submission was already reviewed', {'submissionId': submission_id})

        logger.info(f"Approved submission {submission_id}; credited {amount} coins to {worker_email}")
        self._notify(
            worker_email,
            f"You have earned {amount} coins from {submission.get('buyerEmail')} "
            f"for completing '{submission.get('taskTitle', '')}'",
            NotificationRoute.WORKER_HOME
        )
        return dict(submission, status=SubmissionStatus.APPROVED, reviewedAt=timestamp)

    def reject_submission(self, submission_id: str) -> Dict[str, Any]:
        """Reject a pending submission and return its slot to the parent task."""
        submission = self._pending_submission(submission_id)
        task_id = submission.get('taskId')
        timestamp = _now()

        ops = [
            self.submissions.transition_op(
                submission_id, SubmissionStatus.REJECTED, SubmissionStatus.PENDING, timestamp
            )
        ]
        if self.tasks.get(task_id) is not None:
            ops.append(self.tasks.release_slot_op(task_id))
        else:
            logger.warning(f"Task {task_id} no longer exists; rejecting {submission_id} without returning a slot")

        try:
            self._transact(ops)
        except TransactionCancelled as e:
            if e.failed(1):
                raise Conflict('Task was removed during review; retry', {'taskId': task_id})
            raise Conflict('Submission was already reviewed', {'submissionId': submission_id})

        logger.info(f"Rejected submission {submission_id}; task {task_id} regained a slot")
        self._notify(
            submission['workerEmail'],
            f"Your submission for '{submission.get('taskTitle', '')}' was rejected",
            NotificationRoute.WORKER_HOME
        )
        return dict(submission, status=SubmissionStatus.REJECTED, reviewedAt=timestamp)

    def _pending_submission(self, submission_id: str) -> Dict[str, Any]:
        _require(submission_id=submission_id)
        submission = self.get_submission(submission_id)
        if submission.get('status') != SubmissionStatus.PENDING:
            raise Conflict(
                'Submission was already reviewed',
                {'submissionId': submission_id, 'status': submission.get('status')}
            )
        return submission

    # ------------------------------------------------------------------
    # Withdrawals
    # ------------------------------------------------------------------

    def request_withdrawal(
        self,
        worker_email: str,
        withdrawal_coin: Any,
        withdrawal_amount: Any,
        payment_system: str,
        account_number: Optional[str] = None,
        worker_name: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Record a pending withdrawal. Coins are debited on approval, not here;
        the balance is only checked so that hopeless requests fail early.
        """
        _require(
            worker_email=worker_email,
            withdrawal_coin=withdrawal_coin,
            withdrawal_amount=withdrawal_amount,
            payment_system=payment_system
        )
        withdrawal_coin = _to_positive_int(withdrawal_coin, 'withdrawal_coin')
        withdrawal_amount = _to_decimal(withdrawal_amount, 'withdrawal_amount')
        if withdrawal_amount <= 0:
            raise InvalidInput('withdrawal_amount must be positive', {'field': 'withdrawal_amount'})

        account = self.get_account(worker_email)
        if account.get('coin', 0) < withdrawal_coin:
            raise Conflict('Insufficient balance', {'balance': account.get('coin', 0), 'requested': withdrawal_coin})

        item = {
            'withdrawalId': str(uuid.uuid4()),
            'workerEmail': worker_email,
            'withdrawalCoin': withdrawal_coin,
            'withdrawalAmount': withdrawal_amount,
            'paymentSystem': payment_system,
            'status': WithdrawalStatus.PENDING,
            'requestedAt': _now()
        }
        if account_number:
            item['accountNumber'] = account_number
        if worker_name:
            item['workerName'] = worker_name

        self.withdrawals.create(item)
        logger.info(f"Withdrawal {item['withdrawalId']} requested by {worker_email} for {withdrawal_coin} coins")
        return item

    def approve_withdrawal(self, withdrawal_id: str) -> Dict[str, Any]:
        """Approve a pending withdrawal and debit the worker's coins exactly once."""
        _require(withdrawal_id=withdrawal_id)
        withdrawal = self.get_withdrawal(withdrawal_id)
        if withdrawal.get('status') != WithdrawalStatus.PENDING:
            raise Conflict('Withdrawal was already approved', {'withdrawalId': withdrawal_id})

        worker_email = withdrawal['workerEmail']
        coins = Decimal(withdrawal['withdrawalCoin'])
        timestamp = _now()

        try:
            self._transact([
                self.withdrawals.transition_op(
                    withdrawal_id, WithdrawalStatus.APPROVED, WithdrawalStatus.PENDING, timestamp
                ),
                self.accounts.adjust_op(worker_email, -coins, require_funds=True)
            ])
        except TransactionCancelled as e:
            if e.failed(1):
                if self.accounts.get(worker_email) is None:
                    raise NotFound('Worker account not found', {'email': worker_email})
                raise Conflict('Insufficient balance', {'withdrawalId': withdrawal_id})
            raise Conflict('Withdrawal was already approved', {'withdrawalId': withdrawal_id})

        logger.info(f"Approved withdrawal {withdrawal_id}; debited {coins} coins from {worker_email}")
        self._notify(
            worker_email,
            f"Your withdrawal of {withdrawal.get('withdrawalAmount')} via "
            f"{withdrawal.get('paymentSystem')} was approved",
            NotificationRoute.WITHDRAWALS
        )
        return dict(withdrawal, status=WithdrawalStatus.APPROVED, approvedAt=timestamp)

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def credit_payment(self, email: str, coins: Any, price: Any, transaction_id: str) -> Dict[str, Any]:
        """
        Record a confirmed payment and credit the purchased coins.

        The transaction id is the payment record's key, so a replayed
        confirmation credits nothing and returns the stored record.
        """
        _require(email=email, coins=coins, price=price, transaction_id=transaction_id)
        coins = _to_positive_int(coins, 'coins')
        price = _to_decimal(price, 'price')
        if price < 0:
            raise InvalidInput('price must not be negative', {'field': 'price'})

        existing = self.payments.get(transaction_id)
        if existing:
            return self._replayed_payment(existing, email)

        item = {
            'transactionId': transaction_id,
            'email': email,
            'coins': coins,
            'price': price,
            'createdAt': _now()
        }
        try:
            self._transact([
                self.payments.record_op(item),
                self.accounts.adjust_op(email, Decimal(coins))
            ])
        except TransactionCancelled as e:
            if e.failed(1):
                raise NotFound('Account not found', {'email': email})
            existing = self.payments.get(transaction_id)
            if existing:
                return self._replayed_payment(existing, email)
            raise Conflict('Payment could not be recorded; retry', {'transactionId': transaction_id})

        logger.info(f"Credited {coins} coins to {email} for payment {transaction_id}")
        return {'payment': item, 'duplicate': False}

    def _replayed_payment(self, existing: Dict[str, Any], email: str) -> Dict[str, Any]:
        if existing.get('email') != email:
            raise Conflict('Transaction id already used by another account',
                           {'transactionId': existing.get('transactionId')})
        logger.info(f"Payment {existing.get('transactionId')} already credited; skipping")
        return {'payment': existing, 'duplicate': True}

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _notify(self, recipient: Optional[str], message: str, route: str) -> None:
        """Append a notification. Failures are logged and never propagate."""
        if not recipient:
            return
        try:
            self.notifications.append({
                'notificationId': str(uuid.uuid4()),
                'recipientEmail': recipient,
                'message': message,
                'route': route,
                'createdAt': _now()
            })
        except Exception as e:
            logger.warning(f"Notification to {recipient} failed (non-critical): {e}")