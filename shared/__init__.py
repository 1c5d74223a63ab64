"""
Shared infrastructure for the classifieds crawler.

This package is intentionally small and focused. It currently provides:

- `shared.config` for environment-based configuration
- `shared.logging` for structlog-based structured logging
- `shared.schema` for the SQLAlchemy Core table definitions
- `shared.db` for the async engine and transaction management
- `shared.repository` for the queue / page / classified data access layer

The crawl and extract pipelines in `worker/` should treat `shared/` as
read-only infrastructure code and avoid introducing pipeline-specific
coupling here.
"""
