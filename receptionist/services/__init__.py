"""
Client implementations for the HTTP services the call core depends on.

- credential_client: CredentialClient, which fetches a fresh signed URL or
  ephemeral realtime token from the backend for every call attempt.
- http_session: the shared aiohttp session helper.

Usage examples:
```python
from receptionist.services.credential_client import CredentialClient

client = CredentialClient("http://localhost:8000")
credential = await client.fetch_realtime_session()
print(credential.model)
```
"""

from receptionist.services.credential_client import CredentialClient

__all__ = ["CredentialClient"]
