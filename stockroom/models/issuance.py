from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils
from .mixins import LineSummaryMixin, StatusDateMixin, TimestampMixin, make_append_only
from .statuses import ISSUANCE_STATUS_DATE_FIELDS, IssuanceStatus


class Issuance(StatusDateMixin, LineSummaryMixin, TimestampMixin, db.Model):
    """Outbound allocation of stock to a site."""
    __tablename__ = 'issuances'

    STATUS_ENUM = IssuanceStatus
    STATUS_DATE_FIELDS = ISSUANCE_STATUS_DATE_FIELDS
    LINE_SUMMARY_FORMAT = "{name} ({size}) - {quantity}"

    id = db.Column(db.Integer, primary_key=True)
    site_id = db.Column(db.Integer, db.ForeignKey('sites.id', ondelete='SET NULL'), nullable=True, index=True)
    issued_to = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=IssuanceStatus.PENDING.value, index=True)

    pending_at = db.Column(db.Date, nullable=True)
    released_at = db.Column(db.Date, nullable=True)
    issued_at = db.Column(db.Date, nullable=True)
    # reserved for partial-release extensions
    partial_at = db.Column(db.Date, nullable=True)
    returned_at = db.Column(db.Date, nullable=True)
    cancelled_at = db.Column(db.Date, nullable=True)

    note = db.Column(db.Text, nullable=True)

    site = db.relationship('Site', back_populates='issuances')
    lines = db.relationship(
        'IssuanceLine',
        back_populates='issuance',
        cascade='all, delete-orphan',
        order_by='IssuanceLine.id',
    )
    logs = db.relationship(
        'IssuanceLog',
        back_populates='issuance',
        order_by='IssuanceLog.id',
        passive_deletes=True,
    )

    def __repr__(self):
        return f'<Issuance {self.id} {self.status}>'


class IssuanceLine(db.Model):
    __tablename__ = 'issuance_items'

    id = db.Column(db.Integer, primary_key=True)
    issuance_id = db.Column(db.Integer, db.ForeignKey('issuances.id', ondelete='CASCADE'), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey('items.id', ondelete='CASCADE'), nullable=False, index=True)
    size = db.Column(db.String(32), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    # Set while the ledger holds a debit for this line; cleared when credited back.
    released_quantity = db.Column(db.Integer, nullable=True)
    # Units still out after a return.
    remaining_quantity = db.Column(db.Integer, nullable=True)

    issuance = db.relationship('Issuance', back_populates='lines')
    item = db.relationship('Item')


class IssuanceLog(db.Model):
    __tablename__ = 'issuance_logs'

    id = db.Column(db.Integer, primary_key=True)
    issuance_id = db.Column(db.Integer, db.ForeignKey('issuances.id', ondelete='CASCADE'), nullable=False, index=True)
    action = db.Column(db.String(32), nullable=False)
    performed_by = db.Column(db.String(128), nullable=False)
    note = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False, index=True)

    issuance = db.relationship('Issuance', back_populates='logs')


make_append_only(IssuanceLog)
