"""Network acquisition of OpenAPI documents.

Provides :class:`DocumentAcquirer`, which combines the document cache, an
:class:`httpx.AsyncClient` with retry and conditional revalidation, and the
parser pipeline into a single ``fetch_spec(url, force_refresh)`` call.
"""

from specscope.client.acquirer import DocumentAcquirer

__all__ = ["DocumentAcquirer"]
