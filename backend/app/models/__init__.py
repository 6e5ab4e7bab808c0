from .branches import Branch, User
from .catalog import Product, ProductVariant
from .inventory import Stock, StockMovement
from .documents import (
    DocumentSequence,
    StockAdjustment, StockAdjustmentDetail,
    StockRequest, StockRequestDetail,
    StockReturn, StockReturnDetail,
    StockTransfer, StockTransferDetail,
    Purchase, PurchaseDetail,
)
from .sales import Order, OrderItem, OrderPayment, Quotation, QuotationDetail, SaleReturn, SaleReturnItem

__all__ = [
    'Branch', 'User',
    'Product', 'ProductVariant',
    'Stock', 'StockMovement',
    'DocumentSequence',
    'StockAdjustment', 'StockAdjustmentDetail',
    'StockRequest', 'StockRequestDetail',
    'StockReturn', 'StockReturnDetail',
    'StockTransfer', 'StockTransferDetail',
    'Purchase', 'PurchaseDetail',
    'Order', 'OrderItem', 'OrderPayment',
    'Quotation', 'QuotationDetail',
    'SaleReturn', 'SaleReturnItem',
]
