"""
Builds the DynamoDB-backed marketplace once per Lambda container.
"""
from .marketplace import Marketplace
from .stores import (
    AccountStore,
    TaskStore,
    SubmissionStore,
    WithdrawalStore,
    PaymentStore,
    NotificationStore
)

_marketplace = None


def get_marketplace() -> Marketplace:
    global _marketplace
    if _marketplace is None:
        _marketplace = Marketplace(
            accounts=AccountStore(),
            tasks=TaskStore(),
            submissions=SubmissionStore(),
            withdrawals=WithdrawalStore(),
            payments=PaymentStore(),
            notifications=NotificationStore()
        )
    return _marketplace
