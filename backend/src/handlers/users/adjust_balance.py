"""
Adjust Balance Handler (admin).
PATCH /users/{email}/coins
"""
from shared.auth import get_acting_email, require_admin
from shared.service import get_marketplace
from shared.utils import api_handler, get_path_param, parse_body


@api_handler
def handler(event, context):
    """
    PATCH /users/{email}/coins
    Body: { "delta": -20 }

    Manual ledger correction. The delta is signed and no floor is applied.
    """
    marketplace = get_marketplace()
    admin = get_acting_email(event)
    require_admin(marketplace, admin)

    email = get_path_param(event, 'email')
    balance = marketplace.adjust_balance(email, parse_body(event).get('delta'))
    return 200, {'email': email, 'coin': balance, 'adjustedBy': admin}
