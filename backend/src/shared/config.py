"""
Configuration module for Lambda handlers.
Loads all environment variables needed by the marketplace.
"""
import os


class Config:
    """Centralized configuration from environment variables."""

    # AWS Region
    AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')

    # DynamoDB Tables
    ACCOUNTS_TABLE = os.environ.get('ACCOUNTS_TABLE', 'microtasks-accounts')
    TASKS_TABLE = os.environ.get('TASKS_TABLE', 'microtasks-tasks')
    SUBMISSIONS_TABLE = os.environ.get('SUBMISSIONS_TABLE', 'microtasks-submissions')
    WITHDRAWALS_TABLE = os.environ.get('WITHDRAWALS_TABLE', 'microtasks-withdrawals')
    PAYMENTS_TABLE = os.environ.get('PAYMENTS_TABLE', 'microtasks-payments')
    NOTIFICATIONS_TABLE = os.environ.get('NOTIFICATIONS_TABLE', 'microtasks-notifications')

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # CORS
    ALLOWED_ORIGIN = os.environ.get('ALLOWED_ORIGIN', '*')

    # Access tokens
    ACCESS_TOKEN_SECRET = os.environ.get('ACCESS_TOKEN_SECRET', '')
    ACCESS_TOKEN_TTL_SECONDS = int(os.environ.get('ACCESS_TOKEN_TTL_SECONDS', str(7 * 24 * 3600)))

    # Payment Authority (Stripe)
    STRIPE_SECRET_KEY = os.environ.get('STRIPE_SECRET_KEY', '')
    PAYMENT_CURRENCY = os.environ.get('PAYMENT_CURRENCY', 'usd')

    # Starting balances
    BUYER_STARTING_COINS = int(os.environ.get('BUYER_STARTING_COINS', '50'))
    DEFAULT_STARTING_COINS = int(os.environ.get('DEFAULT_STARTING_COINS', '10'))


config = Config()
