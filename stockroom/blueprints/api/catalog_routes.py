from flask import Blueprint

from ...models import Category, Item, Site
from ...services import catalog
from ...services.errors import StockroomError
from ...utils.api_responses import APIResponse
from ._responses import error_response

catalog_api_bp = Blueprint('catalog_api', __name__)


@catalog_api_bp.route('/categories', methods=['GET'])
def list_categories():
    categories = Category.query.order_by(Category.name).all()
    return APIResponse.success(data=[
        {'id': c.id, 'name': c.name, 'description': c.description} for c in categories
    ])


@catalog_api_bp.route('/categories', methods=['POST'])
def create_category():
    data = APIResponse.handle_request_content()
    try:
        category = catalog.create_category(data.get('name'), data.get('description'))
    except StockroomError as e:
        return error_response(e)
    return APIResponse.success(data={'id': category.id, 'name': category.name}, status_code=201)


@catalog_api_bp.route('/items', methods=['GET'])
def list_items():
    items = Item.query.order_by(Item.name).all()
    return APIResponse.success(data=[
        {
            'id': i.id,
            'name': i.name,
            'category_id': i.category_id,
            'sizes': [v.size_label for v in i.variants],
        }
        for i in items
    ])


@catalog_api_bp.route('/items', methods=['POST'])
def create_item():
    data = APIResponse.handle_request_content()
    try:
        item = catalog.create_item(
            data.get('name'),
            category_id=data.get('category_id'),
            description=data.get('description'),
            sizes=data.get('sizes'),
        )
    except StockroomError as e:
        return error_response(e)
    return APIResponse.success(data={'id': item.id, 'name': item.name}, status_code=201)


@catalog_api_bp.route('/sites', methods=['GET'])
def list_sites():
    sites = Site.query.order_by(Site.name).all()
    return APIResponse.success(data=[{'id': s.id, 'name': s.name, 'location': s.location} for s in sites])


@catalog_api_bp.route('/sites', methods=['POST'])
def create_site():
    data = APIResponse.handle_request_content()
    try:
        site = catalog.create_site(data.get('name'), data.get('location'))
    except StockroomError as e:
        return error_response(e)
    return APIResponse.success(data={'id': site.id, 'name': site.name}, status_code=201)
