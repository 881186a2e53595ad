"""
Get Wallet Handler.
GET /wallet
"""
from shared.auth import get_acting_email
from shared.service import get_marketplace
from shared.utils import api_handler


@api_handler
def handler(event, context):
    """Return the caller's coin balance."""
    email = get_acting_email(event)
    account = get_marketplace().get_account(email)
    return 200, {
        'email': email,
        'role': account.get('role'),
        'coin': account.get('coin', 0)
    }
