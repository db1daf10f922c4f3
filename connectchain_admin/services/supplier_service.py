# connectchain_admin/services/supplier_service.py
from datetime import datetime, timedelta
from typing import Dict, Mapping

from sqlalchemy import func
from sqlalchemy.orm import Session

from connectchain_admin.core.filtering import (
    USER_SORT_FIELDS, DEFAULT_PAGE_SIZES, PRODUCT_SORT_FIELDS, ProductCriteria,
    parse_user_query, parse_product_filters, parse_page, parse_sort,
    build_user_predicate, build_product_predicate, order_by_clause, product_order_by,
    count_products
)
from connectchain_admin.core.mappers import map_supplier, map_product_summary
from connectchain_admin.exceptions import ValidationError, NotFoundError, StateConflictError
from connectchain_admin.logging_setup import get_logger
from connectchain_admin.models import User, Supplier, Product
from connectchain_admin.services.base_service import BaseService

logger = get_logger('supplier_service')

VERIFICATION_STATUSES = ('verified', 'pending')
BAN_DURATION = timedelta(days=365)


class SupplierService(BaseService):
    """Service for supplier accounts."""

    def __init__(self, session: Session):
        super().__init__(session)

    def _get_supplier_user(self, supplier_id: str) -> User:
        user = self.session.query(User).join(Supplier, Supplier.id == User.id).filter(
            User.id == supplier_id
        ).first()
        if user is None:
            raise NotFoundError("Supplier not found")
        return user

    def _map(self, user: User) -> Dict:
        return map_supplier(user, count_products(self.session, ProductCriteria(supplier_id=user.id)))

    def list_suppliers(self, params: Mapping) -> Dict:
        """List suppliers.

        Args:
            params: Raw query parameters (search, status, verificationStatus,
                    page, limit, sort, order)

        Returns:
            Dictionary with mapped 'items' and 'pagination'
        """
        criteria, page, sort = parse_user_query(params, 'suppliers')
        predicate = build_user_predicate(criteria, 'supplier')
        query = self.session.query(User).filter(predicate)
        total = self.session.query(func.count(User.id)).filter(predicate).scalar()
        return self._page(query, total, page, order_by_clause(USER_SORT_FIELDS, sort, User.id), self._map)

    def get_supplier(self, supplier_id: str) -> Dict:
        return self._map(self._get_supplier_user(supplier_id))

    def get_supplier_products(self, supplier_id: str, params: Mapping) -> Dict:
        """List a supplier's products with the shared product filter."""
        self._get_supplier_user(supplier_id)

        criteria = parse_product_filters(params)._replace(supplier_id=supplier_id)
        page = parse_page(params, DEFAULT_PAGE_SIZES['suppliers'])
        sort = parse_sort(params, PRODUCT_SORT_FIELDS, 'createdAt')

        query = self.session.query(Product).filter(build_product_predicate(criteria))
        total = count_products(self.session, criteria)
        return self._page(query, total, page, product_order_by(sort), map_product_summary)

    def update_verification_status(self, supplier_id: str, verification_status: str) -> Dict:
        if verification_status not in VERIFICATION_STATUSES:
            raise ValidationError("verificationStatus must be one of: verified, pending")

        user = self._get_supplier_user(supplier_id)
        confirmed = verification_status == 'verified'
        if user.email_confirmed == confirmed:
            raise StateConflictError(f"Supplier is already {verification_status}")

        user.email_confirmed = confirmed
        self._commit()
        logger.info(f"Supplier {supplier_id} verification status set to {verification_status}")
        return self._map(user)

    def ban_supplier(self, supplier_id: str) -> Dict:
        user = self._get_supplier_user(supplier_id)
        if user.lockout_enabled:
            raise StateConflictError("Supplier is already banned")

        user.lockout_enabled = True
        user.lockout_end = datetime.utcnow() + BAN_DURATION
        self._commit()
        logger.info(f"Banned supplier {supplier_id} until {user.lockout_end.isoformat()}")
        return self._map(user)

    def unban_supplier(self, supplier_id: str) -> Dict:
        user = self._get_supplier_user(supplier_id)
        if not user.lockout_enabled:
            raise StateConflictError("Supplier is already active")

        user.lockout_enabled = False
        user.lockout_end = None
        self._commit()
        logger.info(f"Unbanned supplier {supplier_id}")
        return self._map(user)
