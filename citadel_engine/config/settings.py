"""Application settings using Pydantic BaseSettings for environment variable management."""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """
    Global application settings loaded from environment variables.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log output format (json for production, console for dev)
        store_timeout_secs: Upper bound on waiting for a store lock
        read_retry_attempts: Attempts for read operations on transient store failures
        graph_persistence_path: Optional JSON snapshot file for the graph store
        identity_persistence_path: Optional JSON snapshot file for the identity store
        enforce_rate_limits: Apply trust-tier submission limits in the query interface
        default_traversal_depth: Depth used when a caller does not pass one
        max_traversal_depth: Hard cap on traversal depth accepted from callers
        default_max_hops: Hop bound for shortest path discovery
    """

    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: json or console"
    )
    store_timeout_secs: float = Field(
        default=5.0,
        gt=0,
        description="Seconds to wait for a store lock before raising Timeout"
    )
    read_retry_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts for read operations on transient store failures"
    )
    graph_persistence_path: str | None = Field(
        default=None,
        description="JSON snapshot path for the graph store (memory-only if unset)"
    )
    identity_persistence_path: str | None = Field(
        default=None,
        description="JSON snapshot path for the identity store (memory-only if unset)"
    )
    enforce_rate_limits: bool = Field(
        default=True,
        description="Enforce trust-tier submission limits on create endpoints"
    )
    default_traversal_depth: int = Field(
        default=2,
        ge=0,
        description="Traversal depth when none is requested"
    )
    max_traversal_depth: int = Field(
        default=4,
        ge=0,
        description="Maximum traversal depth accepted by the query interface"
    )
    default_max_hops: int = Field(
        default=10,
        ge=0,
        description="Hop bound for shortest path discovery"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


# Singleton instance - import this throughout the application
settings = Settings()
