from flask import Blueprint, request

from ...extensions import db
from ...models import Item
from ...services import catalog, stock_ledger
from ...services.errors import StockroomError
from ...utils.api_responses import APIResponse
from ._responses import error_response

stock_api_bp = Blueprint('stock_api', __name__, url_prefix='/stock')


@stock_api_bp.route('', methods=['GET'])
def list_stock():
    """Ledger rows with on-hand quantities, optionally for one item."""
    item_id = request.args.get('item_id', type=int)
    variants = catalog.list_variants(item_id)
    return APIResponse.success(data=[catalog.variant_to_dict(v) for v in variants])


@stock_api_bp.route('/options/<int:item_id>', methods=['GET'])
def stock_options(item_id):
    """Size picker for an item; may lag behind the ledger by the cache TTL."""
    if db.session.get(Item, item_id) is None:
        return APIResponse.not_found('Item')
    return APIResponse.success(data=stock_ledger.stock_options(item_id))


@stock_api_bp.route('', methods=['POST'])
def create_variant():
    data = APIResponse.handle_request_content()
    try:
        variant = catalog.create_variant(data.get('item_id'), data.get('size'), data.get('quantity', 0))
    except StockroomError as e:
        return error_response(e)
    return APIResponse.success(data=catalog.variant_to_dict(variant), message="Stock row created.",
                               status_code=201)
