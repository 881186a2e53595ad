"""
Create Task Handler.
POST /tasks
"""
from shared.auth import get_acting_email, require_role
from shared.models import Role
from shared.service import get_marketplace
from shared.utils import api_handler, parse_body


@api_handler
def handler(event, context):
    """
    POST /tasks
    Body: {
        "title": "...", "detail": "...", "submissionInfo": "...",
        "payableAmount": 5, "requiredWorkers": 2
    }

    The task is owned by the calling Buyer.
    """
    buyer_email = get_acting_email(event)
    marketplace = get_marketplace()
    require_role(marketplace, buyer_email, Role.BUYER)

    body = parse_body(event)
    task = marketplace.create_task(
        buyer_email=buyer_email,
        payable_amount=body.get('payableAmount'),
        required_workers=body.get('requiredWorkers'),
        title=body.get('title', ''),
        detail=body.get('detail', ''),
        submission_info=body.get('submissionInfo', '')
    )
    return 201, task
