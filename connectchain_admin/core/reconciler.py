# connectchain_admin/core/reconciler.py
"""
Aggregate update for a product and its owned collections.

A product update call carries partial product fields, action-tagged
attribute and variant lists, new image files and image URLs to remove.
It is applied in three phases:

1. Validation and reference checks, then optimistic upload of new media.
   Nothing has been written to the database yet.
2. One database transaction records the parent fields, image rows and
   child operations. On any failure the transaction is rolled back and the
   media uploaded in phase 1 is deleted again.
3. After commit, media whose rows were soft-deleted is purged from the
   store. Failures there are logged and never fail the call.

Child operations use one generic routine for every child type. An item
without ``_action`` is treated as ``create``. An ``update`` or ``delete``
naming a child that does not exist, belongs to another product or is
already deleted is skipped and reported, not raised.
"""
import enum
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy import text

from connectchain_admin.config import config
from connectchain_admin.exceptions import (
    ValidationError, NotFoundError, ConflictError, OperationTimeoutError
)
from connectchain_admin.logging_setup import get_logger, logger as log_manager
from connectchain_admin.media import (
    MediaStore, MediaUpload, StoredMedia, upload_all, discard_media, purge_media
)
from connectchain_admin.models import (
    Product, ProductAttribute, ProductVariant, ProductImage, Category, Supplier, Customer
)
from connectchain_admin.utils.validation import (
    to_decimal, to_int, to_optional_str, to_required_str, reject_unknown_fields
)

logger = get_logger('reconciler')


class ChildAction(enum.Enum):
    CREATE = 'create'
    UPDATE = 'update'
    DELETE = 'delete'


class CreateOp(NamedTuple):
    fields: Dict[str, Any]


class UpdateOp(NamedTuple):
    id: int
    fields: Dict[str, Any]


class DeleteOp(NamedTuple):
    id: int


ChildOp = Union[CreateOp, UpdateOp, DeleteOp]


class ChildField(NamedTuple):
    key: str
    attribute: str
    coerce: Callable[[Any, str], Any]
    required: bool = False


class ChildSpec(NamedTuple):
    label: str
    model: Any
    fields: Tuple[ChildField, ...]


class ChildOutcome(NamedTuple):
    action: ChildAction
    child_id: Optional[int]
    applied: bool


def _text(value, field):
    return to_required_str(value, field, max_length=255)


def _optional_text(value, field):
    return to_optional_str(value, field, max_length=255)


def _price(value, field):
    return to_decimal(value, field)


def _count(value, field):
    return to_int(value, field)


ATTRIBUTE_SPEC = ChildSpec(
    label='Attribute',
    model=ProductAttribute,
    fields=(
        ChildField('Key', 'key', _text, required=True),
        ChildField('Value', 'value', _text, required=True),
    )
)

VARIANT_SPEC = ChildSpec(
    label='Variant',
    model=ProductVariant,
    fields=(
        ChildField('Name', 'name', _optional_text),
        ChildField('Type', 'type', _optional_text),
        ChildField('CustomPrice', 'custom_price', _price, required=True),
        ChildField('Stock', 'stock', _count, required=True),
    )
)


def _parse_fields(item: Dict, spec: ChildSpec, enforce_required: bool) -> Dict[str, Any]:
    fields = {}
    for field in spec.fields:
        label = f"{spec.label} {field.key}"
        if item.get(field.key) is not None:
            fields[field.attribute] = field.coerce(item[field.key], label)
        elif enforce_required and field.required:
            raise ValidationError(f"{label} is required")
    return fields


def parse_child_ops(raw_items: Any, spec: ChildSpec) -> List[ChildOp]:
    """Turn a raw action-tagged list into typed child operations.

    Args:
        raw_items: List of dicts as received in the request payload
        spec: Child entity description

    Returns:
        List of CreateOp, UpdateOp and DeleteOp in payload order

    Raises:
        ValidationError on any malformed item, before anything is written
    """
    if raw_items is None:
        return []
    if not isinstance(raw_items, list):
        raise ValidationError(f"{spec.label}s must be an array")

    allowed = {'_action', 'ID'} | {field.key for field in spec.fields}
    ops = []
    for item in raw_items:
        if not isinstance(item, dict):
            raise ValidationError(f"Each {spec.label.lower()} must be an object")
        reject_unknown_fields(item, allowed, spec.label.lower())

        raw_action = item.get('_action') or ChildAction.CREATE.value
        try:
            action = ChildAction(raw_action)
        except ValueError:
            raise ValidationError("Action must be one of: create, update, delete")

        if action is ChildAction.CREATE:
            # A supplied ID is ignored for creates
            ops.append(CreateOp(fields=_parse_fields(item, spec, enforce_required=True)))
            continue

        if item.get('ID') is None:
            raise ValidationError(f"{spec.label} ID is required for {action.value}")
        child_id = to_int(item['ID'], f"{spec.label} ID", minimum=1)

        if action is ChildAction.UPDATE:
            ops.append(UpdateOp(id=child_id, fields=_parse_fields(item, spec, enforce_required=False)))
        else:
            ops.append(DeleteOp(id=child_id))

    return ops


def apply_child_op(session: Session, spec: ChildSpec, product_id: int, op: ChildOp,
                   now: datetime) -> ChildOutcome:
    """Apply one child operation inside the caller's transaction."""
    model = spec.model

    if isinstance(op, CreateOp):
        child = model(product_id=product_id, deleted=False, created_date=now, **op.fields)
        session.add(child)
        session.flush()
        return ChildOutcome(ChildAction.CREATE, child.id, True)

    child = session.query(model).filter(
        model.id == op.id,
        model.product_id == product_id,
        model.deleted.is_(False)
    ).first()

    action = ChildAction.UPDATE if isinstance(op, UpdateOp) else ChildAction.DELETE
    if child is None:
        logger.warning(
            f"Skipping {action.value} of {spec.label.lower()} {op.id} on product {product_id}: "
            f"not found or already deleted"
        )
        return ChildOutcome(action, op.id, False)

    if isinstance(op, UpdateOp):
        for attribute, value in op.fields.items():
            setattr(child, attribute, value)
    else:
        child.deleted = True
    child.updated_date = now
    return ChildOutcome(action, op.id, True)


# ---------------------------------------------------------------------------
# Parent fields
# ---------------------------------------------------------------------------

def _reference(value, field):
    if value in (None, ''):
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value


PRODUCT_FIELDS = {
    'Name': ('name', lambda v, f: to_optional_str(v, f, 255)),
    'Description': ('description', lambda v, f: to_optional_str(v, f, 1000)),
    'Price': ('price', lambda v, f: to_decimal(v, f)),
    'Stock': ('stock', lambda v, f: to_int(v, f)),
    'MinimumStock': ('minimum_stock', lambda v, f: to_int(v, f)),
    'CategoryId': ('category_id', lambda v, f: to_int(v, f, minimum=1)),
    'SupplierId': ('supplier_id', _reference),
    'CustomerId': ('customer_id', _reference),
}


def parse_product_fields(payload: Dict) -> Dict[str, Any]:
    """Coerce the scalar product fields of a payload.

    Args:
        payload: Product fields keyed by their external PascalCase names

    Returns:
        Dict keyed by model attribute

    Raises:
        ValidationError for unknown fields, SKU changes or bad values
    """
    if 'SKU' in payload:
        raise ValidationError("SKU cannot be changed")
    reject_unknown_fields(payload, PRODUCT_FIELDS, 'product')

    fields = {}
    for key, value in payload.items():
        attribute, coerce = PRODUCT_FIELDS[key]
        if value is None and attribute in ('price', 'category_id'):
            raise ValidationError(f"{key} must be a valid number")
        fields[attribute] = coerce(value, key) if value is not None else None
    return fields


def verify_references(session: Session, fields: Dict[str, Any]) -> None:
    """Raise NotFoundError naming the first referenced entity that is missing."""
    if fields.get('category_id') is not None and session.get(Category, fields['category_id']) is None:
        raise NotFoundError("Category not found")
    if fields.get('supplier_id') and session.get(Supplier, fields['supplier_id']) is None:
        raise NotFoundError("Supplier not found")
    if fields.get('customer_id') and session.get(Customer, fields['customer_id']) is None:
        raise NotFoundError("Customer not found")


# ---------------------------------------------------------------------------
# Aggregate reconciler
# ---------------------------------------------------------------------------

class AggregateUpdate(NamedTuple):
    product_id: int
    fields: Dict[str, Any]
    attribute_ops: List[ChildOp]
    variant_ops: List[ChildOp]
    new_images: Tuple[MediaUpload, ...] = ()
    images_to_remove: Tuple[str, ...] = ()


class ReconcileResult(NamedTuple):
    product: Product
    outcomes: List[ChildOutcome]
    leaked_media: List[str]

    @property
    def skipped(self) -> List[ChildOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.applied]


def build_aggregate_update(product_id: int, payload: Dict,
                           new_images: Optional[List[MediaUpload]] = None,
                           images_to_remove: Optional[List[str]] = None) -> AggregateUpdate:
    """Split and validate a raw update payload.

    'Attributes' and 'Variants' hold tagged child lists, 'imagesToDelete'
    may carry image URLs to remove, every other key is a product field.
    """
    payload = dict(payload or {})
    attribute_ops = parse_child_ops(payload.pop('Attributes', None), ATTRIBUTE_SPEC)
    variant_ops = parse_child_ops(payload.pop('Variants', None), VARIANT_SPEC)

    removals = list(images_to_remove or [])
    payload_removals = payload.pop('imagesToDelete', None)
    if payload_removals:
        if isinstance(payload_removals, str):
            payload_removals = [payload_removals]
        if not isinstance(payload_removals, list) or not all(isinstance(u, str) for u in payload_removals):
            raise ValidationError("imagesToDelete must be an array of URLs")
        removals.extend(payload_removals)

    return AggregateUpdate(
        product_id=product_id,
        fields=parse_product_fields(payload),
        attribute_ops=attribute_ops,
        variant_ops=variant_ops,
        new_images=tuple(new_images or ()),
        images_to_remove=tuple(removals),
    )


class ProductReconciler:
    """Applies an AggregateUpdate as a single unit of work."""

    def __init__(self, session: Session, media_store: MediaStore,
                 timeout_seconds: Optional[float] = None, clock=time.monotonic):
        """Initialize the reconciler.

        Args:
            session: Database session, owned by the caller
            media_store: External media store
            timeout_seconds: Deadline for the database phase,
                             defaults to TRANSACTION.timeout_seconds
            clock: Monotonic clock
        """
        self.session = session
        self.media_store = media_store
        self.timeout_seconds = (timeout_seconds if timeout_seconds is not None
                                else config.transaction_config['timeout_seconds'])
        self.clock = clock
        self._deadline = None

    def _check_deadline(self, step: str) -> None:
        if self._deadline is not None and self.clock() > self._deadline:
            raise OperationTimeoutError(
                f"Product update exceeded {self.timeout_seconds}s during {step}"
            )

    def _apply_statement_timeout(self) -> None:
        bind = self.session.get_bind()
        if bind.dialect.name == 'postgresql':
            milliseconds = max(1, int(self.timeout_seconds * 1000))
            self.session.execute(text(f"SET LOCAL statement_timeout = {milliseconds}"))

    def reconcile(self, update: AggregateUpdate) -> ReconcileResult:
        """Apply the update and return the materialized aggregate.

        Raises:
            NotFoundError: product or a referenced entity is missing
            UploadError: new media could not be uploaded
            ConflictError: a unique constraint was violated
            OperationTimeoutError: the database phase ran past its deadline
        """
        session = self.session

        # Phase 1: checks and optimistic uploads, no writes
        product = session.get(Product, update.product_id)
        if product is None:
            raise NotFoundError("Product not found")
        verify_references(session, update.fields)

        removal_urls = set(update.images_to_remove)
        images_to_remove = [image for image in product.live_images if image.url in removal_urls]

        stored: List[StoredMedia] = []
        if update.new_images:
            stored = upload_all(self.media_store, update.new_images, 'products',
                                f"product_{update.product_id}")

        log_info = log_manager.operation_start_log('product_update', {
            'product_id': update.product_id,
            'fields': sorted(update.fields),
            'attribute_ops': len(update.attribute_ops),
            'variant_ops': len(update.variant_ops),
            'new_images': len(stored),
            'removed_images': len(images_to_remove),
        })

        # Phase 2: single transaction
        outcomes: List[ChildOutcome] = []
        try:
            self._deadline = self.clock() + self.timeout_seconds
            self._apply_statement_timeout()
            now = datetime.utcnow()

            for attribute, value in update.fields.items():
                setattr(product, attribute, value)
            product.updated_date = now

            for media in stored:
                session.add(ProductImage(product_id=product.id, url=media.url,
                                         storage_id=media.storage_id, deleted=False,
                                         created_date=now))
            for image in images_to_remove:
                image.deleted = True
                image.updated_date = now
            self._check_deadline('image changes')

            for spec, ops in ((ATTRIBUTE_SPEC, update.attribute_ops),
                              (VARIANT_SPEC, update.variant_ops)):
                for op in ops:
                    self._check_deadline(f"{spec.label.lower()} changes")
                    outcomes.append(apply_child_op(session, spec, product.id, op, now))

            session.flush()
            self._check_deadline('commit')
            session.commit()
        except Exception as e:
            session.rollback()
            discard_media(self.media_store, [media.storage_id for media in stored])
            log_manager.operation_end_log(log_info, success=False, result_info={'error': str(e)})
            if isinstance(e, IntegrityError):
                raise ConflictError("Duplicate entry") from e
            raise
        finally:
            self._deadline = None

        # Phase 3: purge media that is no longer referenced
        purge_ids = [image.storage_id for image in images_to_remove if image.storage_id]
        leaked = purge_media(self.media_store, purge_ids) if purge_ids else []

        session.expire(product)
        skipped = [outcome for outcome in outcomes if not outcome.applied]
        log_manager.operation_end_log(log_info, success=True, result_info={
            'applied': len(outcomes) - len(skipped),
            'skipped': len(skipped),
            'leaked_media': len(leaked),
        })
        return ReconcileResult(product=product, outcomes=outcomes, leaked_media=leaked)
