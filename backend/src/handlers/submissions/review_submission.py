"""
Review Submission Handlers.
PATCH /submissions/{submissionId}/approve
PATCH /submissions/{submissionId}/reject

Only the buyer who owns the submission's task, or an admin, may review it.
"""
from shared.auth import get_acting_email, require_self_or_admin
from shared.service import get_marketplace
from shared.utils import api_handler, get_path_param


def _authorize(event):
    caller = get_acting_email(event)
    submission_id = get_path_param(event, 'submissionId')

    marketplace = get_marketplace()
    submission = marketplace.get_submission(submission_id)
    require_self_or_admin(marketplace, caller, submission.get('buyerEmail'))
    return marketplace, submission_id


@api_handler
def approve_handler(event, context):
    marketplace, submission_id = _authorize(event)
    return 200, marketplace.approve_submission(submission_id)


@api_handler
def reject_handler(event, context):
    marketplace, submission_id = _authorize(event)
    return 200, marketplace.reject_submission(submission_id)
