"""
Data models and status constants for the coin marketplace.
Based on the task lifecycle: Active → Submitted (slot consumed) → Approved (worker paid) / Rejected (slot returned)
"""


class Role:
    """Account roles."""
    BUYER = 'Buyer'
    WORKER = 'Worker'
    ADMIN = 'Admin'

    ALL = (BUYER, WORKER, ADMIN)

    @classmethod
    def canonical(cls, role: str) -> str:
        """Return the canonical spelling of a known role, or the input unchanged."""
        for known in cls.ALL:
            if role.lower() == known.lower():
                return known
        return role


class TaskStatus:
    """Task lifecycle statuses. A task is exhausted once requiredWorkers reaches 0."""
    ACTIVE = 'active'


class SubmissionStatus:
    """Submission review statuses. Approved and rejected are terminal."""
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'


class WithdrawalStatus:
    """Withdrawal statuses. Approved is terminal."""
    PENDING = 'pending'
    APPROVED = 'approved'


class NotificationRoute:
    """Suggested dashboard routes attached to notifications."""
    BUYER_HOME = '/dashboard/buyer-home'
    WORKER_HOME = '/dashboard/worker-home'
    WITHDRAWALS = '/dashboard/withdrawals'
