import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

load_dotenv()


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    database_url: str = Field(
        default=os.getenv("CRUD_DATABASE_URL", "sqlite+pysqlite:///./crudgeneric.db")
    )
    db_pool_size: int = Field(default=int(os.getenv("CRUD_DB_POOL_SIZE", "5")))
    db_max_overflow: int = Field(default=int(os.getenv("CRUD_DB_MAX_OVERFLOW", "10")))

    # Paging defaults
    default_page_size: int = Field(default=int(os.getenv("CRUD_DEFAULT_PAGE_SIZE", "20")))
    max_page_size: int = Field(default=int(os.getenv("CRUD_MAX_PAGE_SIZE", "200")))
    default_sort: str = Field(default=os.getenv("CRUD_DEFAULT_SORT", "-id"))

    # None values on a source object do not overwrite destination values
    skip_none: bool = Field(
        default=os.getenv("CRUD_SKIP_NONE", "true").lower() in ("true", "1", "yes")
    )

    log_level: str = Field(default=os.getenv("CRUD_LOG_LEVEL", "INFO"))

    @field_validator("default_page_size", "max_page_size", mode="after")
    @classmethod
    def validate_page_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("page sizes must be positive")
        return v

    @field_validator("log_level", mode="after")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()


settings = Settings()
