"""
Request Withdrawal Handler.
POST /withdrawals

Records a pending payout request. Coins are debited when an admin approves it.
"""
from shared.auth import get_acting_email, require_role
from shared.models import Role
from shared.service import get_marketplace
from shared.utils import api_handler, parse_body


@api_handler
def handler(event, context):
    """
    POST /withdrawals
    Body: {
        "withdrawalCoin": 200, "withdrawalAmount": 10.00,
        "paymentSystem": "bkash", "accountNumber": "01700000000"
    }
    """
    worker_email = get_acting_email(event)
    marketplace = get_marketplace()
    worker = require_role(marketplace, worker_email, Role.WORKER)

    body = parse_body(event)
    withdrawal = marketplace.request_withdrawal(
        worker_email=worker_email,
        withdrawal_coin=body.get('withdrawalCoin'),
        withdrawal_amount=body.get('withdrawalAmount'),
        payment_system=body.get('paymentSystem'),
        account_number=body.get('accountNumber'),
        worker_name=worker.get('name')
    )
    return 201, {
        'message': 'Withdrawal requested',
        'withdrawal': withdrawal
    }
