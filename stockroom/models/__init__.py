"""Models package - imports all models for the application"""
from ..extensions import db

# Import in dependency order for table creation
from .user import User
from .catalog import Category, Item, Site
from .stock import StockVariant
from .issuance import Issuance, IssuanceLine, IssuanceLog
from .restock import Restock, RestockLine, RestockLog
from .statuses import (
    IssuanceStatus,
    RestockStatus,
    ISSUANCE_STATUS_DATE_FIELDS,
    RESTOCK_STATUS_DATE_FIELDS,
    ISSUANCE_TRANSITIONS,
    ISSUANCE_EDIT_TRANSITIONS,
    RESTOCK_TRANSITIONS,
)
from .mixins import AppendOnlyError

__all__ = [
    'db',
    'User',
    'Category',
    'Item',
    'Site',
    'StockVariant',
    'Issuance',
    'IssuanceLine',
    'IssuanceLog',
    'Restock',
    'RestockLine',
    'RestockLog',
    'IssuanceStatus',
    'RestockStatus',
    'ISSUANCE_STATUS_DATE_FIELDS',
    'RESTOCK_STATUS_DATE_FIELDS',
    'ISSUANCE_TRANSITIONS',
    'ISSUANCE_EDIT_TRANSITIONS',
    'RESTOCK_TRANSITIONS',
    'AppendOnlyError',
]
