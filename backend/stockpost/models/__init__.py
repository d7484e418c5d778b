from .tenancy import Organization, Store
from .inventory import Product, InventoryPosition, StockMovement, StockLot
from .accounting import Currency, ExchangeRate, FinancialPeriod, Account, LedgerEntry
from .adjustments import StockAdjustment, StockAdjustmentLine, DocumentSequence
from .pricing import PriceHistory

__all__ = [
    'Organization', 'Store',
    'Product', 'InventoryPosition', 'StockMovement', 'StockLot',
    'Currency', 'ExchangeRate', 'FinancialPeriod', 'Account', 'LedgerEntry',
    'StockAdjustment', 'StockAdjustmentLine', 'DocumentSequence',
    'PriceHistory',
]
