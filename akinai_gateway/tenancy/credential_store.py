"""API key to tenant credential storage"""

import hashlib
import logging
import secrets
from typing import Optional, Dict
from redis.asyncio import Redis

from akinai_gateway.models.tenant import Credential
from akinai_gateway.storage.redis_client import key

logger = logging.getLogger(__name__)

LIVE_KEY_PREFIX = "sk_live_"
TEST_KEY_PREFIX = "sk_test_"


def hash_api_key(api_key: str) -> str:
    """Keys are stored by digest only"""
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


def generate_api_key(live: bool = True) -> str:
    prefix = LIVE_KEY_PREFIX if live else TEST_KEY_PREFIX
    return f"{prefix}{secrets.token_hex(24)}"


class CredentialStore:
    """Lookup contract for API keys"""

    async def get_by_api_key(self, api_key: str) -> Optional[Credential]:
        raise NotImplementedError

    async def register(self, api_key: str, credential: Credential) -> Credential:
        raise NotImplementedError

    async def revoke(self, api_key: str) -> bool:
        raise NotImplementedError

    async def issue_api_key(self, credential: Credential, live: bool = True) -> str:
        """Generate a new API key and bind it to the credential"""
        api_key = generate_api_key(live)
        await self.register(api_key, credential)
        return api_key


class RedisCredentialStore(CredentialStore):
    """Credentials stored as JSON under the API key digest"""

    def __init__(self, client: Redis):
        self.client = client

    def _key(self, api_key: str) -> str:
        return key("tenant", "api_key", hash_api_key(api_key))

    async def get_by_api_key(self, api_key: str) -> Optional[Credential]:
        raw = await self.client.get(self._key(api_key))
        if not raw:
            return None
        return Credential.model_validate_json(raw)

    async def register(self, api_key: str, credential: Credential) -> Credential:
        await self.client.set(self._key(api_key), credential.model_dump_json())
        logger.info("Registered API key for tenant %s", credential.tenant_id)
        return credential

    async def revoke(self, api_key: str) -> bool:
        removed = await self.client.delete(self._key(api_key))
        return bool(removed)


class InMemoryCredentialStore(CredentialStore):
    """Process-local credential store for development and tests"""

    def __init__(self):
        self.credentials: Dict[str, Credential] = {}

    async def get_by_api_key(self, api_key: str) -> Optional[Credential]:
        return self.credentials.get(hash_api_key(api_key))

    async def register(self, api_key: str, credential: Credential) -> Credential:
        self.credentials[hash_api_key(api_key)] = credential
        return credential

    async def revoke(self, api_key: str) -> bool:
        return self.credentials.pop(hash_api_key(api_key), None) is not None
