"""Configuration module for the product importer."""
import os
import enum
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from dotenv import load_dotenv

from .exceptions import ImportConfigurationError

load_dotenv()


class UrlKeyScheme(enum.Enum):
    FROM_NAME = "from-name"
    FROM_SKU = "from-sku"


class DuplicateUrlKeyStrategy(enum.Enum):
    ERROR = "error"
    ADD_SKU = "add-sku"
    ADD_SERIAL = "add-serial"


class ProductTypeChange(enum.Enum):
    FORBIDDEN = "forbidden"
    NON_DESTRUCTIVE = "non-destructive"
    ALLOWED = "allowed"


class Config:
    """Environment configuration."""
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///product_import.db")
    DATABASE_ECHO = os.getenv("DATABASE_ECHO", "false").lower() == "true"

    LOG_PATH = os.getenv("PRODUCT_IMPORT_LOG_PATH", os.path.join(os.getcwd(), "logs"))
    LOG_LEVEL = os.getenv("PRODUCT_IMPORT_LOG_LEVEL", "INFO")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")


def _env_enum(enum_class, name: str, default):
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return enum_class(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_class)
        raise ImportConfigurationError(f"{name} must be one of: {allowed} (got '{value}')")


@dataclass
class ImportConfig:
    """Options for a single import run.

    Result callbacks are called once per product after each batch, with the
    product as their only argument. The product carries its id and errors.
    """
    dry_run: bool = False

    # Number of products sent to the database at once
    batch_size: int = 1000

    result_callbacks: List[Callable] = field(default_factory=list)

    # Create categories passed by path if they do not exist; otherwise report an error
    auto_create_categories: bool = True
    category_path_separator: str = "/"

    # Codes of select / multi-select attributes whose unknown options may be created
    auto_create_option_attributes: List[str] = field(default_factory=list)

    url_key_scheme: UrlKeyScheme = UrlKeyScheme.FROM_NAME
    duplicate_url_key_strategy: DuplicateUrlKeyStrategy = DuplicateUrlKeyStrategy.ERROR
    product_type_change: ProductTypeChange = ProductTypeChange.NON_DESTRUCTIVE

    # None: use the store setting
    save_rewrites_history: Optional[bool] = None

    # Decides JSON or serialize for url_rewrite metadata. None: auto-detect
    magento_version: Optional[str] = None

    # Upper bound for the size of a single multi-row statement (max_allowed_packet)
    max_statement_bytes: int = 1000000

    def validate(self) -> None:
        """Check option values that cannot be expressed by their types."""
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.max_statement_bytes < 1:
            raise ValueError(f"max_statement_bytes must be positive, got {self.max_statement_bytes}")
        if not self.category_path_separator:
            raise ValueError("category_path_separator cannot be empty")

    @classmethod
    def from_env(cls) -> "ImportConfig":
        """Build a configuration from PRODUCT_IMPORT_* environment variables."""
        history = os.getenv("PRODUCT_IMPORT_SAVE_REWRITES_HISTORY")
        option_attributes = os.getenv("PRODUCT_IMPORT_AUTO_CREATE_OPTION_ATTRIBUTES", "")

        config = cls(
            dry_run=_env_bool("PRODUCT_IMPORT_DRY_RUN", False),
            batch_size=int(os.getenv("PRODUCT_IMPORT_BATCH_SIZE", "1000")),
            auto_create_categories=_env_bool("PRODUCT_IMPORT_AUTO_CREATE_CATEGORIES", True),
            category_path_separator=os.getenv("PRODUCT_IMPORT_CATEGORY_PATH_SEPARATOR", "/"),
            auto_create_option_attributes=[code.strip() for code in option_attributes.split(",") if code.strip()],
            url_key_scheme=_env_enum(UrlKeyScheme, "PRODUCT_IMPORT_URL_KEY_SCHEME", UrlKeyScheme.FROM_NAME),
            duplicate_url_key_strategy=_env_enum(
                DuplicateUrlKeyStrategy, "PRODUCT_IMPORT_DUPLICATE_URL_KEY_STRATEGY", DuplicateUrlKeyStrategy.ERROR
            ),
            product_type_change=_env_enum(
                ProductTypeChange, "PRODUCT_IMPORT_PRODUCT_TYPE_CHANGE", ProductTypeChange.NON_DESTRUCTIVE
            ),
            save_rewrites_history=None if history is None else _env_bool("PRODUCT_IMPORT_SAVE_REWRITES_HISTORY", True),
            magento_version=os.getenv("PRODUCT_IMPORT_MAGENTO_VERSION") or None,
            max_statement_bytes=int(os.getenv("PRODUCT_IMPORT_MAX_STATEMENT_BYTES", "1000000")),
        )
        config.validate()
        return config
