from ..extensions import db
from .mixins import TimestampMixin


class StockVariant(TimestampMixin, db.Model):
    """Quantity on hand for one item + size. Only the stock ledger writes quantity."""
    __tablename__ = 'item_variants'

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey('items.id', ondelete='CASCADE'), nullable=False, index=True)
    size_label = db.Column(db.String(32), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    item = db.relationship('Item', back_populates='variants')

    __table_args__ = (
        db.UniqueConstraint('item_id', 'size_label', name='uq_item_variant_size'),
        db.CheckConstraint('quantity >= 0', name='ck_item_variant_quantity_non_negative'),
    )

    def __repr__(self):
        return f'<StockVariant item={self.item_id} size={self.size_label} qty={self.quantity}>'
