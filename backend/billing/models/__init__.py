from .accounts import Account, BusinessProfile
from .customers import Customer
from .documents import Document, DocumentLine, DocumentSequence
from .ledger import LedgerEntry
from .professionals import IdentifierCounter, Professional

__all__ = [
    'Account', 'BusinessProfile',
    'Customer',
    'Document', 'DocumentLine', 'DocumentSequence',
    'LedgerEntry',
    'IdentifierCounter', 'Professional',
]
