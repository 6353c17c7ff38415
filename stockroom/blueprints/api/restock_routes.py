import logging

from flask import Blueprint, request

from ...extensions import db
from ...models import Restock
from ...services import audit_log, restock_workflow
from ...services.batch_processor import BatchProcessor
from ...services.errors import StockroomError
from ...utils.api_responses import APIResponse
from ...utils.error_messages import ErrorMessages as EM
from ._responses import error_response, transition_response

logger = logging.getLogger(__name__)

restock_api_bp = Blueprint('restock_api', __name__, url_prefix='/restocks')


@restock_api_bp.route('', methods=['GET'])
def list_restocks():
    try:
        restocks = restock_workflow.list_restocks(request.args.get('status'))
    except StockroomError as e:
        return error_response(e)
    return APIResponse.success(data={
        'restocks': [restock_workflow.restock_to_dict(r) for r in restocks],
        'counts': restock_workflow.restock_status_counts(),
    })


@restock_api_bp.route('/<int:restock_id>', methods=['GET'])
def get_restock(restock_id):
    restock = db.session.get(Restock, restock_id)
    if restock is None:
        return APIResponse.not_found('Restock')
    return APIResponse.success(data=restock_workflow.restock_to_dict(restock))


@restock_api_bp.route('', methods=['POST'])
def create_restock():
    data = APIResponse.handle_request_content()
    try:
        restock = restock_workflow.create_restock(
            supplier_name=data.get('supplier_name'),
            ordered_by=data.get('ordered_by'),
            lines=data.get('lines'),
            ordered_at=data.get('ordered_at'),
            status=data.get('status') or 'pending',
            note=data.get('note'),
            performed_by=data.get('performed_by'),
        )
    except StockroomError as e:
        return error_response(e)
    return APIResponse.success(data=restock_workflow.restock_to_dict(restock), message="Restock created.",
                               status_code=201)


@restock_api_bp.route('/<int:restock_id>', methods=['PATCH', 'PUT'])
def update_restock(restock_id):
    data = APIResponse.handle_request_content()
    try:
        restock = restock_workflow.update_restock(
            restock_id,
            fields={k: data[k] for k in restock_workflow.EDITABLE_FIELDS if k in data},
            lines=data.get('lines'),
            performed_by=data.get('performed_by'),
        )
    except StockroomError as e:
        return error_response(e)
    return APIResponse.success(data=restock_workflow.restock_to_dict(restock), message=EM.RESTOCK_UPDATED)


@restock_api_bp.route('/<int:restock_id>/<action>', methods=['POST'])
def restock_action(restock_id, action):
    data = APIResponse.handle_request_content()
    result = restock_workflow.perform_restock_action(
        restock_id,
        action,
        quantities=data.get('quantities'),
        performed_by=data.get('performed_by'),
    )
    payload = None
    if result.success:
        payload = restock_workflow.restock_to_dict(db.session.get(Restock, restock_id))
    return transition_response(result, payload)


@restock_api_bp.route('/bulk/<action>', methods=['POST'])
def bulk_restock_action(action):
    data = APIResponse.handle_request_content()
    ids = data.get('ids') or []
    if not ids:
        return APIResponse.validation_error({'ids': [EM.FIELD_REQUIRED.format(field='ids')]})
    try:
        result = BatchProcessor('restock', data.get('performed_by')).run(
            action, ids, quantities=data.get('quantities'),
        )
    except StockroomError as e:
        return error_response(e)
    return APIResponse.success(data=result.to_dict(), message=f"{result.changed} restock(s) updated.")


@restock_api_bp.route('/<int:restock_id>/logs', methods=['GET'])
def restock_logs(restock_id):
    try:
        entries = audit_log.history('restock', restock_id)
    except StockroomError as e:
        return error_response(e)
    return APIResponse.success(data=entries)
