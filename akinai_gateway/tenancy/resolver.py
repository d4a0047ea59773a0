"""Resolve the Authorization header to a tenant credential"""

import time
from typing import Callable, Dict, Optional, Tuple

from akinai_gateway.errors import AuthError, AuthErrorKind
from akinai_gateway.models.tenant import Credential
from akinai_gateway.tenancy.credential_store import CredentialStore, hash_api_key

BEARER_PREFIX = "Bearer "


class CredentialResolver:
    """
    Map a bearer API key to a Credential

    Positive lookups are cached in-process for `cache_ttl` seconds. The
    active flag is checked on every call, cached or not.
    """

    def __init__(
        self,
        store: CredentialStore,
        cache_ttl: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.cache_ttl = cache_ttl
        self.clock = clock
        self._cache: Dict[str, Tuple[Credential, float]] = {}

    @staticmethod
    def extract_api_key(authorization: Optional[str]) -> str:
        """Parse `Bearer <api_key>`, raising AuthError on any other shape"""
        if not authorization:
            raise AuthError(AuthErrorKind.MISSING_HEADER, "Authorization header is required")

        if not authorization.startswith(BEARER_PREFIX):
            raise AuthError(
                AuthErrorKind.MALFORMED_HEADER,
                "Invalid authorization format. Use: Bearer <api_key>",
            )

        api_key = authorization[len(BEARER_PREFIX):].strip()
        if not api_key:
            raise AuthError(AuthErrorKind.MALFORMED_HEADER, "API key is required")
        return api_key

    async def resolve(self, authorization: Optional[str]) -> Credential:
        """
        Resolve a raw Authorization header value

        Raises:
            AuthError: missing header, malformed header, or unknown/inactive key
        """
        api_key = self.extract_api_key(authorization)

        credential = await self._lookup(api_key)
        if credential is None or not credential.active:
            raise AuthError(AuthErrorKind.INVALID_KEY, "Invalid API key")
        return credential

    async def _lookup(self, api_key: str) -> Optional[Credential]:
        if self.cache_ttl <= 0:
            return await self.store.get_by_api_key(api_key)

        digest = hash_api_key(api_key)
        now = self.clock()
        cached = self._cache.get(digest)
        if cached and cached[1] > now:
            return cached[0]

        credential = await self.store.get_by_api_key(api_key)
        if credential is not None:
            self._cache[digest] = (credential, now + self.cache_ttl)
        else:
            self._cache.pop(digest, None)
        return credential

    def invalidate(self, api_key: Optional[str] = None):
        """Drop one cached key, or the whole cache"""
        if api_key is None:
            self._cache.clear()
        else:
            self._cache.pop(hash_api_key(api_key), None)
