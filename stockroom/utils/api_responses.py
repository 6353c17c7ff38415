from flask import jsonify, request, Response
from typing import Any, Dict, Optional, List

# HTTP status per workflow error type
ERROR_STATUS_CODES = {
    'not_found': 404,
    'validation': 422,
    'insufficient_stock': 409,
    'invalid_transition': 409,
    'missing_variant': 409,
}


class APIResponse:
    """JSON envelopes for the stockroom API"""

    @staticmethod
    def success(data: Any = None, message: str = "Success", status_code: int = 200) -> Response:
        response_data = {
            'success': True,
            'message': message,
            'data': data
        }
        return jsonify(response_data), status_code

    @staticmethod
    def error(message: str, errors: Optional[Dict] = None, status_code: int = 400,
              messages: Optional[List[str]] = None) -> Response:
        """Failure envelope; ``messages`` holds one display line per problem"""
        response_data = {
            'success': False,
            'message': message,
            'messages': messages or [message],
            'errors': errors or {}
        }
        return jsonify(response_data), status_code

    @staticmethod
    def workflow_error(messages: List[str], error_type: Optional[str]) -> Response:
        """Failure reported by a workflow, with the status code for its type"""
        return APIResponse.error(
            message=messages[0] if messages else "Request failed",
            messages=messages,
            errors={'type': error_type},
            status_code=ERROR_STATUS_CODES.get(error_type, 400),
        )

    @staticmethod
    def validation_error(errors: Dict[str, List[str]]) -> Response:
        flat = [msg for group in errors.values() for msg in group]
        return APIResponse.error(
            message="Validation failed",
            errors={'type': 'validation', 'fields': errors},
            status_code=422,
            messages=flat,
        )

    @staticmethod
    def not_found(resource: str = "Resource") -> Response:
        return APIResponse.error(
            message=f"{resource} not found",
            errors={'type': 'not_found'},
            status_code=404
        )

    @staticmethod
    def handle_request_content():
        """JSON body or form fields as a dict"""
        if request.is_json:
            return request.get_json(silent=True) or {}
        elif request.form:
            return request.form.to_dict()
        else:
            return {}
