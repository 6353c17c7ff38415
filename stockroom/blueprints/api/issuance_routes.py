import logging

from flask import Blueprint, request

from ...extensions import db
from ...models import Issuance
from ...services import audit_log, issuance_workflow
from ...services.batch_processor import BatchProcessor
from ...services.errors import StockroomError
from ...utils.api_responses import APIResponse
from ...utils.error_messages import ErrorMessages as EM
from ._responses import error_response, transition_response

logger = logging.getLogger(__name__)

issuance_api_bp = Blueprint('issuance_api', __name__, url_prefix='/issuances')


@issuance_api_bp.route('', methods=['GET'])
def list_issuances():
    """List issuances, newest first, with per-status tab counts."""
    try:
        issuances = issuance_workflow.list_issuances(request.args.get('status'))
    except StockroomError as e:
        return error_response(e)
    return APIResponse.success(data={
        'issuances': [issuance_workflow.issuance_to_dict(i) for i in issuances],
        'counts': issuance_workflow.issuance_status_counts(),
    })


@issuance_api_bp.route('/<int:issuance_id>', methods=['GET'])
def get_issuance(issuance_id):
    issuance = db.session.get(Issuance, issuance_id)
    if issuance is None:
        return APIResponse.not_found('Issuance')
    return APIResponse.success(data=issuance_workflow.issuance_to_dict(issuance))


@issuance_api_bp.route('', methods=['POST'])
def create_issuance():
    data = APIResponse.handle_request_content()
    try:
        issuance = issuance_workflow.create_issuance(
            site_id=data.get('site_id'),
            issued_to=data.get('issued_to'),
            lines=data.get('lines'),
            status=data.get('status') or 'pending',
            note=data.get('note'),
            performed_by=data.get('performed_by'),
        )
    except StockroomError as e:
        return error_response(e)
    return APIResponse.success(data=issuance_workflow.issuance_to_dict(issuance), message="Issuance created.",
                               status_code=201)


@issuance_api_bp.route('/<int:issuance_id>', methods=['PATCH', 'PUT'])
def update_issuance(issuance_id):
    """Direct edit: header fields, pending-only line replacement, status moves."""
    data = APIResponse.handle_request_content()
    result = issuance_workflow.perform_issuance_edit(
        issuance_id,
        fields={k: data[k] for k in issuance_workflow.EDITABLE_FIELDS if k in data},
        lines=data.get('lines'),
        status=data.get('status'),
        performed_by=data.get('performed_by'),
    )
    payload = None
    if result.success:
        payload = issuance_workflow.issuance_to_dict(db.session.get(Issuance, issuance_id))
    return transition_response(result, payload)


@issuance_api_bp.route('/<int:issuance_id>/<action>', methods=['POST'])
def issuance_action(issuance_id, action):
    data = APIResponse.handle_request_content()
    result = issuance_workflow.perform_issuance_action(
        issuance_id,
        action,
        quantities=data.get('quantities'),
        restore_stock=_flag(data.get('restore_stock'), default=True),
        performed_by=data.get('performed_by'),
    )
    payload = None
    if result.success:
        payload = issuance_workflow.issuance_to_dict(db.session.get(Issuance, issuance_id))
    return transition_response(result, payload)


@issuance_api_bp.route('/bulk/<action>', methods=['POST'])
def bulk_issuance_action(action):
    data = APIResponse.handle_request_content()
    ids = data.get('ids') or []
    if not ids:
        return APIResponse.validation_error({'ids': [EM.FIELD_REQUIRED.format(field='ids')]})
    try:
        result = BatchProcessor('issuance', data.get('performed_by')).run(
            action,
            ids,
            quantities=data.get('quantities'),
            restore_stock=_flag(data.get('restore_stock'), default=True),
        )
    except StockroomError as e:
        return error_response(e)
    return APIResponse.success(data=result.to_dict(), message=f"{result.changed} issuance(s) updated.")


@issuance_api_bp.route('/<int:issuance_id>/logs', methods=['GET'])
def issuance_logs(issuance_id):
    try:
        entries = audit_log.history('issuance', issuance_id)
    except StockroomError as e:
        return error_response(e)
    return APIResponse.success(data=entries)


def _flag(value, default):
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {'1', 'true', 'yes', 'on'}
    return bool(value)
