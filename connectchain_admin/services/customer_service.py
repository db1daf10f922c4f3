# connectchain_admin/services/customer_service.py
from datetime import datetime
from typing import Dict, Mapping

from sqlalchemy import func
from sqlalchemy.orm import Session

from connectchain_admin.core.filtering import USER_SORT_FIELDS, parse_user_query, build_user_predicate, order_by_clause
from connectchain_admin.core.mappers import map_customer
from connectchain_admin.exceptions import ValidationError, NotFoundError, ConflictError, StateConflictError
from connectchain_admin.logging_setup import get_logger
from connectchain_admin.models import User, Customer
from connectchain_admin.services.base_service import BaseService
from connectchain_admin.utils.validation import to_optional_str, to_required_str, reject_unknown_fields

logger = get_logger('customer_service')

CUSTOMER_STATUSES = ('active', 'banned')
# Banned customers stay locked out until an explicit unban
PERMANENT_LOCKOUT_END = datetime(2099, 12, 31)

CUSTOMER_FIELDS = {
    'Name': ('name', 255),
    'Email': ('email', 256),
    'PhoneNumber': ('phone_number', 50),
    'Address': ('address', 500),
    'BusinessType': ('business_type', 255),
}


class CustomerService(BaseService):
    """Service for customer accounts."""

    def __init__(self, session: Session):
        super().__init__(session)

    def _get_customer_user(self, customer_id: str) -> User:
        user = self.session.query(User).join(Customer, Customer.id == User.id).filter(
            User.id == customer_id
        ).first()
        if user is None:
            raise NotFoundError("Customer not found")
        return user

    def list_customers(self, params: Mapping) -> Dict:
        criteria, page, sort = parse_user_query(params, 'customers')
        predicate = build_user_predicate(criteria, 'customer')
        query = self.session.query(User).filter(predicate)
        total = self.session.query(func.count(User.id)).filter(predicate).scalar()
        return self._page(query, total, page, order_by_clause(USER_SORT_FIELDS, sort, User.id), map_customer)

    def get_customer(self, customer_id: str) -> Dict:
        return map_customer(self._get_customer_user(customer_id))

    def update_customer(self, customer_id: str, payload: Dict) -> Dict:
        """Update a customer's profile fields.

        Args:
            customer_id: Customer (user) ID
            payload: Any of Name, Email, PhoneNumber, Address, BusinessType
                     and verificationStatus

        Returns:
            Mapped customer

        Raises:
            ConflictError if the email belongs to another user
        """
        payload = dict(payload or {})
        reject_unknown_fields(payload, set(CUSTOMER_FIELDS) | {'verificationStatus'}, 'customer')
        if payload.get('verificationStatus', 'pending') not in ('verified', 'pending'):
            raise ValidationError("verificationStatus must be one of: verified, pending")
        user = self._get_customer_user(customer_id)

        email = payload.get('Email')
        if email is not None:
            email = to_required_str(email, 'Email', 256).strip()
            if '@' not in email:
                raise ValidationError("Email must be a valid email address")
            taken = self.session.query(User.id).filter(
                func.lower(User.email) == email.lower(),
                User.id != customer_id
            ).first()
            if taken is not None:
                raise ConflictError("Email already exists")
            payload['Email'] = email

        changes = {
            attribute: to_optional_str(payload[key], key, max_length)
            for key, (attribute, max_length) in CUSTOMER_FIELDS.items()
            if key in payload
        }
        for attribute, value in changes.items():
            setattr(user, attribute, value)

        if 'verificationStatus' in payload:
            user.email_confirmed = payload['verificationStatus'] == 'verified'

        self._commit("Email already exists")
        logger.info(f"Updated customer {customer_id}: {', '.join(sorted(payload))}")
        return map_customer(user)

    def update_customer_status(self, customer_id: str, status: str) -> Dict:
        if status not in CUSTOMER_STATUSES:
            raise ValidationError("Status must be one of: active, banned")

        user = self._get_customer_user(customer_id)
        banned = status == 'banned'
        if user.lockout_enabled == banned:
            raise StateConflictError(f"Customer is already {status}")

        user.lockout_enabled = banned
        user.lockout_end = PERMANENT_LOCKOUT_END if banned else None
        self._commit()
        logger.info(f"Customer {customer_id} status set to {status}")
        return map_customer(user)
