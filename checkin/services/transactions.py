"""Transaction runner with bounded retries on write conflicts."""
import logging
import time
from typing import Callable, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from checkin import db
from checkin.models.student import Student
from checkin.utils.errors import CheckinError, ErrorKind

logger = logging.getLogger(__name__)

T = TypeVar('T')

def lock_student(student_id: int) -> Student:
    """Load a student row with a row lock held until commit/rollback."""
    return db.session.execute(
        select(Student)
        .where(Student.id == student_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()

def run_in_transaction(operation: Callable[[], T], *, label: str,
                       max_retries: int = 3, backoff: float = 0.05) -> T:
    """Run ``operation`` and commit, all or nothing.

    Unique violations and lock or serialization failures count as a lost
    race (Conflict): the transaction is rolled back and ``operation`` runs
    again from scratch, at most ``max_retries`` more times, before the
    failure surfaces as Internal. Any other failure rolls back and
    propagates; store errors surface as Internal.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            result = operation()
            db.session.commit()
            return result
        except CheckinError as error:
            db.session.rollback()
            if error.kind != ErrorKind.CONFLICT:
                raise
            conflict = error
        except (IntegrityError, OperationalError) as error:
            db.session.rollback()
            conflict = error
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("%s failed in the store", label)
            raise CheckinError(ErrorKind.INTERNAL, f"{label} failed")
        except BaseException:
            db.session.rollback()
            raise

        if attempt > max_retries:
            logger.error("%s gave up after %s attempts: %s", label, attempt, conflict)
            raise CheckinError(ErrorKind.INTERNAL, f"{label} could not complete under contention")

        logger.warning("%s hit a write conflict (attempt %s), retrying: %s", label, attempt, conflict)
        time.sleep(backoff * attempt)
