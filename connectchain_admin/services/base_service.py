# connectchain_admin/services/base_service.py
from typing import Callable, Dict, List

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, Query

from connectchain_admin.core.filtering import PageDescriptor, calculate_pagination
from connectchain_admin.core.mappers import map_pagination
from connectchain_admin.exceptions import ConflictError, DatabaseError


class BaseService:
    """Shared session handling for the entity services."""

    def __init__(self, session: Session):
        """Initialize the service.

        Args:
            session: Database session
        """
        self.session = session

    def _commit(self, conflict_message: str = "Duplicate entry") -> None:
        """Commit, translating constraint violations to ConflictError.

        The session is rolled back before any error propagates.
        """
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise ConflictError(conflict_message, details={'error': str(e.orig)})
        except SQLAlchemyError as e:
            self.session.rollback()
            raise DatabaseError(f"Database error: {str(e)}")

    def _page(self, query: Query, total: int, page: PageDescriptor, order_by: List,
              mapper: Callable) -> Dict:
        """Fetch one page of a filtered query and map it.

        Args:
            query: Filtered query
            total: Total rows matching the same filter
            page: Page descriptor
            order_by: ORDER BY clauses
            mapper: Record to dict function

        Returns:
            Dictionary with 'items' and external 'pagination'
        """
        records = query.order_by(*order_by).offset(page.offset).limit(page.limit).all()
        return {
            'items': [mapper(record) for record in records],
            'pagination': map_pagination(calculate_pagination(page, total)),
        }
