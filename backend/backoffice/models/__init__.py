from .catalog import Product, Color, Size, ProductVariant
from .inventory import MovementKind, VariantMovement
from .inputs import (
    InputMovementKind,
    Input,
    InputVariant,
    InputBatch,
    InputBatchMovement,
    InputVariantMovement,
)
from .purchasing import (
    PurchaseOrderStatus,
    VariantTarget,
    InputTarget,
    InputVariantTarget,
    LineTarget,
    Supplier,
    PurchaseOrder,
    PurchaseOrderItem,
)
from .documents import DocumentSequence

__all__ = [
    'Product', 'Color', 'Size', 'ProductVariant',
    'MovementKind', 'VariantMovement',
    'InputMovementKind', 'Input', 'InputVariant', 'InputBatch',
    'InputBatchMovement', 'InputVariantMovement',
    'PurchaseOrderStatus', 'VariantTarget', 'InputTarget', 'InputVariantTarget', 'LineTarget',
    'Supplier', 'PurchaseOrder', 'PurchaseOrderItem',
    'DocumentSequence',
]
