"""
Services module for the loan portal.
Contains business logic separated from HTTP handling for testability.
"""

from .books import create_book, get_readable_book, list_books
from .loans import approve_loan, create_loan_request, redeem_access_code, reject_loan

__all__ = [
    'create_book',
    'get_readable_book',
    'list_books',
    'approve_loan',
    'create_loan_request',
    'redeem_access_code',
    'reject_loan',
]
