"""
SQLAlchemy unit of work.

One session is shared by every repository. Repositories only ``flush``;
committing is the job of the outermost ``transaction()`` block, so a service
operation that touches several collections (stock ledger, clients and
schedules during a confirmation) either lands completely or not at all.
"""

import logging
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from clinica.core.exceptions import ConflictError
from clinica.db.session import SessionLocal
from clinica.domain.interfaces import IUnitOfWork
from clinica.repositories.client_repo import ClientRepository
from clinica.repositories.daily_note_repo import DailyNoteRepository
from clinica.repositories.general_document_repo import GeneralDocumentRepository
from clinica.repositories.schedule_repo import ScheduleRepository
from clinica.repositories.stock_repository import StockRepository
from clinica.repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)


class SqlAlchemyUnitOfWork(IUnitOfWork):
    def __init__(self, session=None):
        self.session = session or SessionLocal()
        self.users = UserRepository(self.session)
        self.clients = ClientRepository(self.session)
        self.schedules = ScheduleRepository(self.session)
        self.stock = StockRepository(self.session)
        self.daily_notes = DailyNoteRepository(self.session)
        self.general_documents = GeneralDocumentRepository(self.session)
        self._depth = 0

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def transaction(self):
        """Open a (possibly nested) transactional block.

        Raises:
            ConflictError: when a versioned row changed underneath us or a
                storage constraint rejected the write.
        """
        self._depth += 1
        outermost = self._depth == 1
        try:
            yield self
            if outermost:
                self.session.commit()
        except StaleDataError as e:
            if outermost:
                self.session.rollback()
            logger.warning(
                "Optimistic lock conflict, transaction rolled back",
                extra={"context": {"error": str(e)}},
            )
            raise ConflictError(
                "O registro foi alterado por outro usuário. Recarregue e tente novamente."
            ) from e
        except IntegrityError as e:
            if outermost:
                self.session.rollback()
            logger.warning(
                "Integrity constraint rejected write, transaction rolled back",
                extra={"context": {"error": str(e.orig)}},
            )
            raise ConflictError(
                "A operação violou uma restrição de integridade dos dados."
            ) from e
        except SQLAlchemyError:
            if outermost:
                self.session.rollback()
            logger.exception("Database error, transaction rolled back")
            raise
        except Exception:
            if outermost:
                self.session.rollback()
            raise
        finally:
            self._depth -= 1

    def close(self) -> None:
        self.session.close()
