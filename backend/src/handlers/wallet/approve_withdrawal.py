"""
Approve Withdrawal Handler (admin).
PATCH /withdrawals/{withdrawalId}/approve
"""
from shared.auth import get_acting_email, require_admin
from shared.service import get_marketplace
from shared.utils import api_handler, get_path_param


@api_handler
def handler(event, context):
    marketplace = get_marketplace()
    require_admin(marketplace, get_acting_email(event))

    withdrawal = marketplace.approve_withdrawal(get_path_param(event, 'withdrawalId'))
    return 200, {
        'message': 'Withdrawal approved and coins deducted',
        'withdrawal': withdrawal
    }
