"""Pydantic models for sync configuration."""

from pydantic import BaseModel, Field, field_validator

# Accepted dialect tags (case-insensitive) -> canonical name
DIALECT_ALIASES: dict[str, str] = {
    "mysql": "mysql",
    "postgresql": "postgresql",
    "postgres": "postgresql",
    "pg": "postgresql",
    "sqlite": "sqlite",
}


def _canonical_dialect(value: str) -> str:
    canonical = DIALECT_ALIASES.get(str(value).strip().lower())
    if canonical is None:
        raise ValueError(
            f"Unsupported dialect {value!r} (expected one of: {', '.join(DIALECT_ALIASES)})"
        )
    return canonical


# ============================================================================
# Runtime Context Models
# ============================================================================


class DbSettings(BaseModel):
    """Database settings carried by the sync context."""

    dialect: str
    database: str = ""

    @field_validator("dialect")
    @classmethod
    def _check_dialect(cls, value: str) -> str:
        return _canonical_dialect(value)


class ContextConfig(BaseModel):
    """The ``config`` member of the sync context."""

    db: DbSettings


# ============================================================================
# File Configuration Models
# ============================================================================


class SyncProfile(BaseModel):
    """Database connection profile from db.toml."""

    url: str
    dialect: str = "postgresql"
    database: str = ""
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution

    @field_validator("dialect")
    @classmethod
    def _check_dialect(cls, value: str) -> str:
        return _canonical_dialect(value)

    def to_settings(self) -> DbSettings:
        return DbSettings(dialect=self.dialect, database=self.database)


class CacheSettings(BaseModel):
    """Optional ``[cache]`` section of db.toml."""

    redis_url: str | None = None
    key_prefix: str = ""


class SyncFileConfig(BaseModel):
    """Complete configuration from db.toml."""

    profiles: dict[str, SyncProfile]
    cache: CacheSettings = Field(default_factory=CacheSettings)
