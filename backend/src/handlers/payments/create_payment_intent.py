"""
Create Payment Intent Handler.
POST /create-payment-intent
"""
from shared.auth import get_acting_email
from shared.payments import create_payment_intent
from shared.utils import api_handler, parse_body


@api_handler
def handler(event, context):
    """
    POST /create-payment-intent
    Body: { "price": 10 }
    """
    get_acting_email(event)
    client_secret = create_payment_intent(parse_body(event).get('price'))
    return 200, {'clientSecret': client_secret}
