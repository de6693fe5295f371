import logging
from contextlib import contextmanager

from sqlalchemy.orm import Session

from cloudcontroller.repositories.interfaces import IUnitOfWork

logger = logging.getLogger(__name__)


class SqlalchemyUnitOfWork(IUnitOfWork):
    def __init__(self, db_session: Session):
        self.db = db_session
        self._depth = 0

    @contextmanager
    def transaction(self, savepoint: bool = False):
        if self._depth == 0:
            self._depth += 1
            try:
                yield
                self.db.commit()
            except Exception:
                logger.debug("Rolling back transaction")
                self.db.rollback()
                raise
            finally:
                self._depth -= 1
            return

        self._depth += 1
        try:
            if savepoint:
                with self.db.begin_nested():
                    yield
            else:
                yield
        finally:
            self._depth -= 1
