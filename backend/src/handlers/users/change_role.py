"""
Change Role Handler (admin).
PATCH /users/{email}/role
"""
from shared.auth import get_acting_email, require_admin
from shared.service import get_marketplace
from shared.utils import api_handler, get_path_param, parse_body


@api_handler
def handler(event, context):
    """
    PATCH /users/{email}/role
    Body: { "role": "Worker" }
    """
    marketplace = get_marketplace()
    require_admin(marketplace, get_acting_email(event))

    body = parse_body(event)
    account = marketplace.change_role(get_path_param(event, 'email'), body.get('role'))
    return 200, account
