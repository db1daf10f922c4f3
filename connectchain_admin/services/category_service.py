# connectchain_admin/services/category_service.py
from datetime import datetime
from typing import Dict, Mapping, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from connectchain_admin.core.filtering import (
    CATEGORY_SORT_FIELDS, DEFAULT_PAGE_SIZES, PRODUCT_SORT_FIELDS,
    parse_category_query, parse_product_filters, parse_page, parse_sort,
    build_category_predicate, build_product_predicate, order_by_clause, product_order_by,
    count_category_products
)
from connectchain_admin.core.mappers import map_category, map_product_summary
from connectchain_admin.exceptions import (
    ValidationError, NotFoundError, ConflictError, StateConflictError
)
from connectchain_admin.logging_setup import get_logger, logger as log_manager
from connectchain_admin.media import MediaStore, MediaUpload, upload_all, discard_media, purge_media
from connectchain_admin.models import Category, Product
from connectchain_admin.services.base_service import BaseService
from connectchain_admin.utils.validation import (
    to_optional_str, to_required_str, reject_unknown_fields
)

logger = get_logger('category_service')

CATEGORY_STATUSES = ('active', 'inactive')
CATEGORY_FIELDS = ('name', 'description', 'status')


class CategoryService(BaseService):
    """Service for categories and their product listings."""

    def __init__(self, session: Session, media_store: MediaStore):
        super().__init__(session)
        self.media_store = media_store

    def _get_category(self, category_id: int, include_deleted: bool = True) -> Category:
        category = self.session.get(Category, category_id)
        if category is None or (category.deleted and not include_deleted):
            raise NotFoundError("Category not found")
        return category

    def _ensure_unique_name(self, name: str, exclude_id: Optional[int] = None) -> None:
        query = self.session.query(Category.id).filter(
            func.lower(Category.name) == name.strip().lower(),
            Category.deleted.is_(False)
        )
        if exclude_id is not None:
            query = query.filter(Category.id != exclude_id)
        if query.first() is not None:
            raise ConflictError("Category name already exists")

    def _parse_status(self, status) -> str:
        if status not in CATEGORY_STATUSES:
            raise ValidationError("Status must be one of: active, inactive")
        return status

    def _map(self, category: Category, product_criteria=None) -> Dict:
        return map_category(
            category,
            count_category_products(self.session, category.id, product_criteria)
        )

    def list_categories(self, params: Mapping) -> Dict:
        """List categories with product counts.

        Product filters may be held constant for the counts through the
        'productSearch', 'productStatus', 'inStock', 'supplierId' and
        'customerId' parameters. Counts use the same predicate as the
        product listing.

        Args:
            params: Raw query parameters

        Returns:
            Dictionary with mapped 'items' and 'pagination'
        """
        criteria, page, sort = parse_category_query(params)
        product_criteria = parse_product_filters(
            params, search_key='productSearch', status_key='productStatus'
        )

        predicate = build_category_predicate(criteria)
        query = self.session.query(Category).filter(predicate)
        total = self.session.query(func.count(Category.id)).filter(predicate).scalar()
        return self._page(
            query, total, page,
            order_by_clause(CATEGORY_SORT_FIELDS, sort, Category.id),
            lambda category: self._map(category, product_criteria)
        )

    def get_category(self, category_id: int) -> Dict:
        return self._map(self._get_category(category_id))

    def create_category(self, payload: Dict, image: Optional[MediaUpload] = None) -> Dict:
        """Create a category.

        Args:
            payload: 'name', optional 'description' and 'status'
            image: Optional image file

        Returns:
            Mapped category

        Raises:
            ConflictError if a non-deleted category already has this name
        """
        payload = dict(payload or {})
        reject_unknown_fields(payload, CATEGORY_FIELDS, 'category')
        name = to_required_str(payload.get('name'), 'name')
        description = to_optional_str(payload.get('description'), 'description', 1000)
        status = self._parse_status(payload.get('status') or 'active')

        self._ensure_unique_name(name)

        stored = upload_all(self.media_store, [image], 'categories', 'category') if image else []
        try:
            now = datetime.utcnow()
            category = Category(
                name=name.strip(),
                description=description,
                deleted=status == 'inactive',
                image_url=stored[0].url if stored else None,
                image_storage_id=stored[0].storage_id if stored else None,
                created_date=now,
                updated_date=now
            )
            self.session.add(category)
            self._commit("Category name already exists")
        except Exception:
            self.session.rollback()
            discard_media(self.media_store, [media.storage_id for media in stored])
            raise

        logger.info(f"Created category {category.id} '{category.name}'")
        return self._map(category)

    def update_category(self, category_id: int, payload: Dict) -> Dict:
        payload = dict(payload or {})
        reject_unknown_fields(payload, CATEGORY_FIELDS, 'category')
        category = self._get_category(category_id)

        if payload.get('name') is not None:
            name = to_required_str(payload['name'], 'name')
            self._ensure_unique_name(name, exclude_id=category_id)
            category.name = name.strip()
        if 'description' in payload:
            category.description = to_optional_str(payload['description'], 'description', 1000)

        now = datetime.utcnow()
        if payload.get('status') is not None:
            is_deleted = self._parse_status(payload['status']) == 'inactive'
            if category.deleted != is_deleted:
                self._cascade_status(category, is_deleted, now)

        category.updated_date = now
        self._commit("Category name already exists")
        return self._map(category)

    def _cascade_status(self, category: Category, is_deleted: bool, now: datetime) -> int:
        category.deleted = is_deleted
        category.updated_date = now
        return self.session.query(Product).filter(
            Product.category_id == category.id,
            Product.deleted.is_(not is_deleted)
        ).update(
            {Product.deleted: is_deleted, Product.updated_date: now},
            synchronize_session='fetch'
        )

    def update_category_status(self, category_id: int, status: str) -> Dict:
        """Change a category's status and cascade it to its products.

        Category and products change in one transaction.

        Raises:
            StateConflictError if the category already has this status
        """
        status = self._parse_status(status)
        category = self._get_category(category_id)
        is_deleted = status == 'inactive'
        if category.deleted == is_deleted:
            raise StateConflictError(f"Category is already {status}")

        log_info = log_manager.operation_start_log('category_status_cascade', {
            'category_id': category_id, 'status': status
        })
        try:
            affected = self._cascade_status(category, is_deleted, datetime.utcnow())
            self._commit()
        except Exception as e:
            self.session.rollback()
            log_manager.operation_end_log(log_info, success=False, result_info={'error': str(e)})
            raise

        log_manager.operation_end_log(log_info, success=True, result_info={'products_updated': affected})
        return self._map(category)

    def delete_category(self, category_id: int) -> None:
        """Soft delete a category that no product references."""
        category = self._get_category(category_id, include_deleted=False)

        product_count = self.session.query(func.count(Product.id)).filter(
            Product.category_id == category_id
        ).scalar()
        if product_count > 0:
            raise StateConflictError("Cannot delete category with associated products")

        storage_id = category.image_storage_id
        category.deleted = True
        category.updated_date = datetime.utcnow()
        self._commit()

        if storage_id:
            purge_media(self.media_store, [storage_id])
        logger.info(f"Soft deleted category {category_id}")

    def get_category_products(self, category_id: int, params: Mapping) -> Dict:
        """List a category's products with the shared product filter."""
        self._get_category(category_id)

        criteria = parse_product_filters(params)._replace(category_id=category_id)
        page = parse_page(params, DEFAULT_PAGE_SIZES['categories'])
        sort = parse_sort(params, PRODUCT_SORT_FIELDS, 'updatedAt')

        query = self.session.query(Product).filter(build_product_predicate(criteria))
        total = count_category_products(self.session, category_id, criteria)
        return self._page(query, total, page, product_order_by(sort), map_product_summary)

    def upload_category_image(self, category_id: int, image: MediaUpload) -> Dict:
        """Replace a category's image. The previous image is purged after commit."""
        if image is None:
            raise ValidationError("No image provided")
        category = self._get_category(category_id, include_deleted=False)
        previous_storage_id = category.image_storage_id

        stored = upload_all(self.media_store, [image], 'categories', f"category_{category_id}")[0]
        try:
            category.image_url = stored.url
            category.image_storage_id = stored.storage_id
            category.updated_date = datetime.utcnow()
            self._commit()
        except Exception:
            self.session.rollback()
            discard_media(self.media_store, [stored.storage_id])
            raise

        if previous_storage_id:
            purge_media(self.media_store, [previous_storage_id])
        return self._map(category)

    def delete_category_image(self, category_id: int) -> Dict:
        category = self._get_category(category_id, include_deleted=False)
        if not category.image_url:
            raise NotFoundError("Category has no image to delete")

        storage_id = category.image_storage_id
        category.image_url = None
        category.image_storage_id = None
        category.updated_date = datetime.utcnow()
        self._commit()

        if storage_id:
            purge_media(self.media_store, [storage_id])
        return self._map(category)
