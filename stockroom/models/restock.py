from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils
from .mixins import LineSummaryMixin, StatusDateMixin, TimestampMixin, make_append_only
from .statuses import RESTOCK_STATUS_DATE_FIELDS, RestockStatus


class Restock(StatusDateMixin, LineSummaryMixin, TimestampMixin, db.Model):
    """Inbound replenishment order from a supplier."""
    __tablename__ = 'restocks'

    STATUS_ENUM = RestockStatus
    STATUS_DATE_FIELDS = RESTOCK_STATUS_DATE_FIELDS
    LINE_SUMMARY_FORMAT = "{name} ({size}) x{quantity}"

    id = db.Column(db.Integer, primary_key=True)
    supplier_name = db.Column(db.String(255), nullable=False)
    ordered_by = db.Column(db.String(255), nullable=False)
    ordered_at = db.Column(db.Date, nullable=True)
    status = db.Column(db.String(16), nullable=False, default=RestockStatus.PENDING.value, index=True)
    delivered_at = db.Column(db.Date, nullable=True)
    partial_at = db.Column(db.Date, nullable=True)
    returned_at = db.Column(db.Date, nullable=True)
    cancelled_at = db.Column(db.Date, nullable=True)
    note = db.Column(db.Text, nullable=True)

    lines = db.relationship(
        'RestockLine',
        back_populates='restock',
        cascade='all, delete-orphan',
        order_by='RestockLine.id',
    )
    logs = db.relationship(
        'RestockLog',
        back_populates='restock',
        order_by='RestockLog.id',
        passive_deletes=True,
    )

    def __repr__(self):
        return f'<Restock {self.id} {self.status}>'


class RestockLine(db.Model):
    __tablename__ = 'restock_items'

    id = db.Column(db.Integer, primary_key=True)
    restock_id = db.Column(db.Integer, db.ForeignKey('restocks.id', ondelete='CASCADE'), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey('items.id', ondelete='CASCADE'), nullable=False, index=True)
    size = db.Column(db.String(32), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    # Cumulative; NULL until the first delivery.
    delivered_quantity = db.Column(db.Integer, nullable=True)
    remaining_quantity = db.Column(db.Integer, nullable=True)

    restock = db.relationship('Restock', back_populates='lines')
    item = db.relationship('Item')

    @property
    def outstanding_quantity(self):
        return self.quantity - (self.delivered_quantity or 0)

    @property
    def returnable_quantity(self):
        return self.delivered_quantity if self.delivered_quantity is not None else self.quantity


class RestockLog(db.Model):
    __tablename__ = 'restock_logs'

    id = db.Column(db.Integer, primary_key=True)
    restock_id = db.Column(db.Integer, db.ForeignKey('restocks.id', ondelete='CASCADE'), nullable=False, index=True)
    action = db.Column(db.String(32), nullable=False)
    performed_by = db.Column(db.String(128), nullable=False)
    note = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False, index=True)

    restock = db.relationship('Restock', back_populates='logs')


make_append_only(RestockLog)
