"""
Update Task Handler.
PATCH /tasks/{taskId}
"""
from shared.auth import get_acting_email, require_self_or_admin
from shared.service import get_marketplace
from shared.utils import api_handler, get_path_param, parse_body


@api_handler
def handler(event, context):
    """
    PATCH /tasks/{taskId}
    Body: { "title": "...", "detail": "...", "submissionInfo": "..." }
    """
    caller = get_acting_email(event)
    task_id = get_path_param(event, 'taskId')

    marketplace = get_marketplace()
    task = marketplace.get_task(task_id)
    require_self_or_admin(marketplace, caller, task.get('buyerEmail'))

    body = parse_body(event)
    updated = marketplace.update_task(
        task_id,
        title=body.get('title'),
        detail=body.get('detail'),
        submission_info=body.get('submissionInfo')
    )
    return 200, updated
