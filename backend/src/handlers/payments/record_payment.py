"""
Record Payment Handler.
POST /payments

Called after the client confirmed a PaymentIntent. Records the payment and
credits the purchased coins; replaying a transaction id credits nothing.
"""
from shared.auth import get_acting_email
from shared.service import get_marketplace
from shared.utils import api_handler, parse_body


@api_handler
def handler(event, context):
    """
    POST /payments
    Body: { "coins": 100, "price": 1, "transactionId": "pi_..." }
    """
    email = get_acting_email(event)
    body = parse_body(event)

    result = get_marketplace().credit_payment(
        email=email,
        coins=body.get('coins'),
        price=body.get('price'),
        transaction_id=body.get('transactionId')
    )
    status_code = 200 if result['duplicate'] else 201
    return status_code, result
