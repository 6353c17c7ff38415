from ..extensions import db
from .mixins import TimestampMixin


class Category(TimestampMixin, db.Model):
    __tablename__ = 'categories'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    description = db.Column(db.Text)

    items = db.relationship('Item', back_populates='category')


class Item(TimestampMixin, db.Model):
    """Catalog entry; stock is held per size in StockVariant rows."""
    __tablename__ = 'items'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, index=True)
    description = db.Column(db.Text)
    category_id = db.Column(db.Integer, db.ForeignKey('categories.id', ondelete='SET NULL'), nullable=True, index=True)

    category = db.relationship('Category', back_populates='items')
    variants = db.relationship(
        'StockVariant',
        back_populates='item',
        cascade='all, delete-orphan',
        order_by='StockVariant.size_label',
    )

    def __repr__(self):
        return f'<Item {self.id} {self.name}>'


class Site(TimestampMixin, db.Model):
    """Destination that issuances send stock to."""
    __tablename__ = 'sites'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    location = db.Column(db.String(255))

    issuances = db.relationship('Issuance', back_populates='site')
