# connectchain_admin/services/product_service.py
import uuid
from datetime import datetime
from typing import Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from connectchain_admin.config import config
from connectchain_admin.core.filtering import (
    parse_product_query, build_product_predicate, product_order_by, count_products
)
from connectchain_admin.core.mappers import map_product
from connectchain_admin.core.reconciler import (
    ATTRIBUTE_SPEC, VARIANT_SPEC, CreateOp, ProductReconciler,
    apply_child_op, build_aggregate_update, parse_child_ops, parse_product_fields, verify_references
)
from connectchain_admin.exceptions import (
    ValidationError, NotFoundError, StateConflictError
)
from connectchain_admin.logging_setup import get_logger
from connectchain_admin.media import (
    MediaStore, MediaUpload, upload_all, discard_media, purge_media
)
from connectchain_admin.models import Product, ProductImage
from connectchain_admin.services.base_service import BaseService
from connectchain_admin.utils.validation import require_fields

logger = get_logger('product_service')

MAX_IMAGES_PER_UPLOAD = 10
PRODUCT_STATUSES = ('active', 'inactive')


def generate_sku(category_id: int) -> str:
    return f"SKU-{category_id}-{uuid.uuid4().hex[:8].upper()}"


class ProductService(BaseService):
    """Service for product aggregates."""

    def __init__(self, session: Session, media_store: MediaStore):
        """Initialize the product service.

        Args:
            session: Database session
            media_store: External media store for product images
        """
        super().__init__(session)
        self.media_store = media_store

    def _get_product(self, product_id: int, include_deleted: bool = False) -> Product:
        product = self.session.get(Product, product_id)
        if product is None or (product.deleted and not include_deleted):
            raise NotFoundError("Product not found")
        return product

    def list_products(self, params: Mapping) -> Dict:
        """List products matching query parameters.

        Args:
            params: Raw query parameters (search, category, supplierId,
                    customerId, inStock, status, page, limit, sort, order)

        Returns:
            Dictionary with mapped 'items' and 'pagination'
        """
        criteria, page, sort = parse_product_query(params)
        query = self.session.query(Product).filter(build_product_predicate(criteria))
        total = count_products(self.session, criteria)
        return self._page(query, total, page, product_order_by(sort), map_product)

    def get_product(self, product_id: int) -> Dict:
        # Deleted products stay readable so they can be reactivated
        return map_product(self._get_product(product_id, include_deleted=True))

    def create_product(self, payload: Dict, images: Optional[List[MediaUpload]] = None) -> Dict:
        """Create a product with optional attributes, variants and images.

        New images are uploaded before the transaction and deleted again
        if the transaction fails.

        Args:
            payload: Product fields plus optional 'Attributes' and 'Variants'
            images: Uploaded image files

        Returns:
            Mapped product
        """
        payload = dict(payload or {})
        require_fields(payload, 'Name', 'Price', 'CategoryId')

        attribute_ops = parse_child_ops(payload.pop('Attributes', None), ATTRIBUTE_SPEC)
        variant_ops = parse_child_ops(payload.pop('Variants', None), VARIANT_SPEC)
        if any(not isinstance(op, CreateOp) for op in attribute_ops + variant_ops):
            raise ValidationError("Only create actions are allowed when creating a product")

        fields = parse_product_fields(payload)
        fields.setdefault('stock', 0)
        fields.setdefault('minimum_stock', 0)
        verify_references(self.session, fields)

        images = images or []
        if len(images) > MAX_IMAGES_PER_UPLOAD:
            raise ValidationError(f"At most {MAX_IMAGES_PER_UPLOAD} images can be uploaded at once")
        stored = upload_all(self.media_store, images, 'products', 'product_new') if images else []

        try:
            now = datetime.utcnow()
            product = Product(
                sku=generate_sku(fields['category_id']),
                deleted=False,
                created_date=now,
                updated_date=now,
                **fields
            )
            self.session.add(product)
            self.session.flush()

            for media in stored:
                self.session.add(ProductImage(product_id=product.id, url=media.url,
                                              storage_id=media.storage_id, deleted=False,
                                              created_date=now))
            for op in attribute_ops:
                apply_child_op(self.session, ATTRIBUTE_SPEC, product.id, op, now)
            for op in variant_ops:
                apply_child_op(self.session, VARIANT_SPEC, product.id, op, now)

            self._commit("A product with this SKU already exists")
        except Exception:
            self.session.rollback()
            discard_media(self.media_store, [media.storage_id for media in stored])
            raise

        logger.info(f"Created product {product.id} ({product.sku}) with {len(stored)} images")
        self.session.expire(product)
        return map_product(product)

    def update_product(self, product_id: int, payload: Dict,
                       images: Optional[List[MediaUpload]] = None,
                       images_to_remove: Optional[List[str]] = None) -> Dict:
        """Apply a partial aggregate update.

        Args:
            product_id: Product ID
            payload: Partial product fields, tagged 'Attributes' and
                     'Variants' lists and optional 'imagesToDelete'
            images: New image files
            images_to_remove: Image URLs to remove

        Returns:
            Dictionary with the mapped 'product' and the child operations
            that were 'skipped' because their target did not exist
        """
        if images and len(images) > MAX_IMAGES_PER_UPLOAD:
            raise ValidationError(f"At most {MAX_IMAGES_PER_UPLOAD} images can be uploaded at once")

        update = build_aggregate_update(product_id, payload, images, images_to_remove)
        reconciler = ProductReconciler(
            self.session,
            self.media_store,
            timeout_seconds=config.transaction_config['timeout_seconds']
        )
        result = reconciler.reconcile(update)

        return {
            'product': map_product(result.product),
            'skipped': [
                {'action': outcome.action.value, 'id': outcome.child_id}
                for outcome in result.skipped
            ],
        }

    def delete_product(self, product_id: int) -> None:
        """Soft delete a product together with its images, attributes and variants."""
        product = self._get_product(product_id)
        now = datetime.utcnow()

        product.deleted = True
        product.updated_date = now
        for child in product.images + product.attributes + product.variants:
            if not child.deleted:
                child.deleted = True
                child.updated_date = now

        self._commit()
        logger.info(f"Soft deleted product {product_id}")

    def update_product_status(self, product_id: int, status: str) -> Dict:
        if status not in PRODUCT_STATUSES:
            raise ValidationError("Status must be one of: active, inactive")

        product = self._get_product(product_id, include_deleted=True)
        is_deleted = status == 'inactive'
        if product.deleted == is_deleted:
            raise StateConflictError(f"Product is already {status}")

        product.deleted = is_deleted
        product.updated_date = datetime.utcnow()
        self._commit()
        logger.info(f"Product {product_id} status changed to {status}")
        return map_product(product)

    def upload_product_images(self, product_id: int, images: List[MediaUpload]) -> Dict:
        """Upload and attach images to a product.

        Returns:
            Dictionary with the new image rows and the total live image count
        """
        if not images:
            raise ValidationError("No images provided")
        if len(images) > MAX_IMAGES_PER_UPLOAD:
            raise ValidationError(f"At most {MAX_IMAGES_PER_UPLOAD} images can be uploaded at once")

        product = self._get_product(product_id)
        stored = upload_all(self.media_store, images, 'products', f"product_{product_id}")

        try:
            now = datetime.utcnow()
            rows = [
                ProductImage(product_id=product.id, url=media.url, storage_id=media.storage_id,
                             deleted=False, created_date=now)
                for media in stored
            ]
            self.session.add_all(rows)
            self._commit()
        except Exception:
            self.session.rollback()
            discard_media(self.media_store, [media.storage_id for media in stored])
            raise

        self.session.expire(product)
        return {
            'productId': product_id,
            'images': [{'id': row.id, 'url': row.url} for row in rows],
            'totalImages': len(product.live_images),
        }

    def _remove_image(self, product_id: int, image: Optional[ProductImage]) -> Dict:
        if image is None:
            raise NotFoundError("Image not found or does not belong to this product")

        image.deleted = True
        image.updated_date = datetime.utcnow()
        self._commit()

        if image.storage_id:
            purge_media(self.media_store, [image.storage_id])
        return {'imageId': image.id, 'imageUrl': image.url, 'productId': product_id}

    def delete_product_image_by_url(self, product_id: int, image_url: str) -> Dict:
        if not image_url:
            raise ValidationError("Image URL is required")

        self._get_product(product_id)
        image = self.session.query(ProductImage).filter(
            ProductImage.product_id == product_id,
            ProductImage.url == image_url,
            ProductImage.deleted.is_(False)
        ).first()
        return self._remove_image(product_id, image)

    def delete_product_image(self, product_id: int, image_id: int) -> Dict:
        self._get_product(product_id)
        image = self.session.query(ProductImage).filter(
            ProductImage.id == image_id,
            ProductImage.product_id == product_id,
            ProductImage.deleted.is_(False)
        ).first()
        return self._remove_image(product_id, image)
