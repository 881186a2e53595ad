"""
Register User Handler.
POST /users
"""
from shared.service import get_marketplace
from shared.utils import api_handler, parse_body


@api_handler
def handler(event, context):
    """
    POST /users
    Body: { "email": "...", "role": "Buyer" | "Worker", "name": "...", "photoUrl": "...", "uid": "..." }
    """
    body = parse_body(event)
    account = get_marketplace().register_account(
        email=body.get('email'),
        role=body.get('role'),
        name=body.get('name'),
        photo_url=body.get('photoUrl'),
        uid=body.get('uid')
    )
    return 201, {'success': True, 'account': account}
