"""
Submit Work Handler.
POST /submissions
"""
from shared.auth import get_acting_email, require_role
from shared.models import Role
from shared.service import get_marketplace
from shared.utils import api_handler, parse_body


@api_handler
def handler(event, context):
    """
    Handler for submitting work for a task.
    POST /submissions
    Body: { "taskId": "...", "details": "...", "buyerEmail": "...", "payableAmount": 5 }

    buyerEmail and payableAmount are optional; when present they must match
    the task, which stays the source of truth for both.
    """
    worker_email = get_acting_email(event)
    marketplace = get_marketplace()
    worker = require_role(marketplace, worker_email, Role.WORKER)

    body = parse_body(event)
    submission = marketplace.submit_work(
        task_id=body.get('taskId'),
        worker_email=worker_email,
        details=body.get('details'),
        worker_name=worker.get('name'),
        buyer_email=body.get('buyerEmail'),
        payable_amount=body.get('payableAmount')
    )
    return 201, {
        'message': 'Work submitted successfully',
        'submission': submission
    }
