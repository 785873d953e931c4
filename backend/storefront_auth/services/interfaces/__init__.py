"""Service interface contracts (ABCs)"""

from storefront_auth.services.interfaces.account_store import IAccountStore
from storefront_auth.services.interfaces.token_codec import ITokenCodec, TokenPayload

__all__ = [
    'IAccountStore',
    'ITokenCodec',
    'TokenPayload',
]
