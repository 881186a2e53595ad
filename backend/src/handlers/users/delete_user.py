"""
Delete User Handler (admin).
DELETE /users/{email}
"""
from shared.auth import get_acting_email, require_admin
from shared.service import get_marketplace
from shared.utils import api_handler, get_path_param


@api_handler
def handler(event, context):
    marketplace = get_marketplace()
    require_admin(marketplace, get_acting_email(event))

    email = get_path_param(event, 'email')
    marketplace.remove_account(email)
    return 200, {'message': 'Account deleted', 'email': email}
