"""
Delete Task Handler.
DELETE /tasks/{taskId}

Refunds the owner for every slot that no worker has consumed.
"""
from shared.auth import get_acting_email, require_self_or_admin
from shared.service import get_marketplace
from shared.utils import api_handler, get_path_param


@api_handler
def handler(event, context):
    caller = get_acting_email(event)
    task_id = get_path_param(event, 'taskId')

    marketplace = get_marketplace()
    task = marketplace.get_task(task_id)
    require_self_or_admin(marketplace, caller, task.get('buyerEmail'))

    result = marketplace.delete_task(task_id)
    return 200, dict(result, message='Task deleted')
