"""
Payment Authority integration (Stripe).

The marketplace never charges cards itself. The client confirms the
PaymentIntent created here and then reports the transaction id, which the
marketplace records and credits via `Marketplace.credit_payment`.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

import stripe

from .config import config
from .errors import InternalError, InvalidInput
from .logging import logger

PAYMENT_METHOD_TYPES = ['card']


def to_minor_units(price: Decimal) -> int:
    """Convert a price in major currency units to cents."""
    return int((price * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def create_payment_intent(price) -> str:
    """
    Create a card PaymentIntent for `price` and return its client secret.

    Raises:
        InvalidInput: price missing, non-numeric or not positive
        InternalError: the payment provider rejected the request
    """
    try:
        price = Decimal(str(price))
    except (InvalidOperation, ValueError):
        raise InvalidInput('price must be a number', {'field': 'price'})
    if not price.is_finite() or price <= 0:
        raise InvalidInput('price must be positive', {'field': 'price'})

    stripe.api_key = config.STRIPE_SECRET_KEY
    try:
        intent = stripe.PaymentIntent.create(
            amount=to_minor_units(price),
            currency=config.PAYMENT_CURRENCY,
            payment_method_types=PAYMENT_METHOD_TYPES
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating payment intent: {e}")
        raise InternalError('Payment provider error') from e

    logger.info(f"Created payment intent {intent.id} for {price} {config.PAYMENT_CURRENCY}")
    return intent.client_secret
