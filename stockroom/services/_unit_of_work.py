import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from .errors import EntityNotFoundError, StockroomError

logger = logging.getLogger(__name__)


@contextmanager
def unit_of_work(operation: str):
    """Commit on success; roll back and re-raise on any failure."""
    try:
        yield
        db.session.commit()
    except StockroomError as e:
        db.session.rollback()
        logger.warning(f"{operation} rejected: {e}")
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"{operation} failed: {e}")
        raise


def lock_entity(model, ref, entity_type: str):
    """Load (or reload) an entity with a row lock held until commit."""
    entity_id = ref.id if isinstance(ref, model) else ref
    entity = db.session.get(model, entity_id, with_for_update=True, populate_existing=True)
    if entity is None:
        raise EntityNotFoundError(entity_type, entity_id)
    return entity
