"""specscope -- fetch, cache and validate against OpenAPI documents.

The library loads an OpenAPI 3.x (or Swagger 2.x) document from a URL or
file, keeps it in a two-tier cache with ETag revalidation, dereferences its
``$ref`` graph, and validates concrete requests against the operations it
declares.

Typical use::

    async with DocumentAcquirer(CacheStore(cache_dir, config.cache)) as acquirer:
        session = SpecSession(acquirer, "https://example.com/openapi.json")
        await session.load()
        result = session.validate_request("/pets/42", "GET")

The same pipeline is exposed on the command line as ``specscope``.

Modules:
    app: Typer application and console-script entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    session: Document lifecycle and request validation front end.
"""

__version__ = "0.1.0"
