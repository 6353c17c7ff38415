from flask import Blueprint

api_bp = Blueprint('api', __name__, url_prefix='/api')

from .issuance_routes import issuance_api_bp
from .restock_routes import restock_api_bp
from .stock_routes import stock_api_bp
from .catalog_routes import catalog_api_bp

api_bp.register_blueprint(issuance_api_bp)
api_bp.register_blueprint(restock_api_bp)
api_bp.register_blueprint(stock_api_bp)
api_bp.register_blueprint(catalog_api_bp)
