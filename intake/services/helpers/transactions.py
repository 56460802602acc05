"""
Unit-of-work helper for service functions.

    with transaction():
        ...mutate rows via db.session...

Commits when the block exits cleanly. Any exception rolls the whole session
back and propagates unchanged, except ``IntegrityError`` which is surfaced
as ``ConflictError`` (a unique key or FK rejected the write).

Blocks must not be nested: helpers that run *inside* a caller's unit of work
only ``flush()``; the public service function owns the ``transaction()``.
"""

import logging
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError

from intake.core.exceptions import ConflictError
from intake.models import db

logger = logging.getLogger(__name__)


@contextmanager
def transaction():
    try:
        yield db.session
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Transaction rolled back on integrity error: %s", exc.orig)
        raise ConflictError("The change conflicts with existing data") from exc
    except Exception:
        db.session.rollback()
        raise
