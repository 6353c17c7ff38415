from sqlalchemy import event

from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils


class TimestampMixin:
    """Adds created_at and updated_at timestamps to models"""
    created_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, onupdate=TimezoneUtils.utc_now, nullable=False)


class StatusDateMixin:
    """Maps the current status to its date column.

    Subclasses set STATUS_ENUM and STATUS_DATE_FIELDS.
    """
    STATUS_ENUM = None
    STATUS_DATE_FIELDS = {}

    @property
    def status_enum(self):
        return self.STATUS_ENUM(self.status)

    @property
    def status_date(self):
        return getattr(self, self.STATUS_DATE_FIELDS[self.status_enum])

    def stamp_status_date(self, status, when=None):
        """Fill the status' date column unless it already holds a date."""
        column = self.STATUS_DATE_FIELDS[self.STATUS_ENUM(status)]
        if getattr(self, column) is None:
            setattr(self, column, when or TimezoneUtils.today())

    def clear_status_date(self, status):
        setattr(self, self.STATUS_DATE_FIELDS[self.STATUS_ENUM(status)], None)


class LineSummaryMixin:
    """Display text for an entity's lines, one per line."""
    LINE_SUMMARY_FORMAT = "{name} ({size}) - {quantity}"

    @property
    def line_summary(self):
        parts = []
        for line in self.lines:
            name = line.item.name if line.item is not None else f"Item #{line.item_id}"
            parts.append(self.LINE_SUMMARY_FORMAT.format(name=name, size=line.size, quantity=line.quantity))
        return parts


class AppendOnlyError(RuntimeError):
    """Raised when code tries to rewrite or remove an audit row."""


def make_append_only(model_cls):
    """Reject ORM updates and deletes for the given model."""

    @event.listens_for(model_cls, "before_update")
    def _block_update(mapper, connection, target):
        raise AppendOnlyError(f"{model_cls.__name__} rows are immutable")

    @event.listens_for(model_cls, "before_delete")
    def _block_delete(mapper, connection, target):
        raise AppendOnlyError(f"{model_cls.__name__} rows cannot be deleted")

    return model_cls
