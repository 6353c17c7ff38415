from ...services.errors import StockroomError
from ...utils.api_responses import APIResponse


def error_response(error: StockroomError):
    return APIResponse.workflow_error(error.messages, error.error_type)


def transition_response(result, payload=None):
    """200 with the updated record, or the failure mapped to its status code."""
    if not result.success:
        return APIResponse.workflow_error(result.messages, result.error_type)
    data = result.to_dict()
    if payload is not None:
        data['record'] = payload
    return APIResponse.success(data=data, message=result.messages[0])
