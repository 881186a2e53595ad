"""
Issue Access Token Handler.
POST /jwt
"""
from shared.auth import issue_access_token
from shared.errors import InvalidInput
from shared.service import get_marketplace
from shared.utils import api_handler, parse_body


@api_handler
def handler(event, context):
    """
    POST /jwt
    Body: { "email": "user@example.com" }

    The caller's identity provider has already authenticated the email; only
    registered accounts receive a token.
    """
    body = parse_body(event)
    email = body.get('email')
    if not email:
        raise InvalidInput('Missing email')

    account = get_marketplace().get_account(email)
    token = issue_access_token({'email': email, 'role': account.get('role')})
    return 200, {'token': token}
