"""
Get User Handler.
GET /users/{email}
"""
from shared.auth import get_acting_email, require_self_or_admin
from shared.service import get_marketplace
from shared.utils import api_handler, get_path_param


@api_handler
def handler(event, context):
    """Return an account. Callers may read their own account; admins may read any."""
    caller = get_acting_email(event)
    email = get_path_param(event, 'email')

    marketplace = get_marketplace()
    require_self_or_admin(marketplace, caller, email)
    return 200, marketplace.get_account(email)
