"""Tests for import configuration."""
import pytest

from product_import.config import DuplicateUrlKeyStrategy, ImportConfig, ProductTypeChange, UrlKeyScheme
from product_import.exceptions import ImportConfigurationError

ENV_VARS = [
    "PRODUCT_IMPORT_DRY_RUN",
    "PRODUCT_IMPORT_BATCH_SIZE",
    "PRODUCT_IMPORT_AUTO_CREATE_CATEGORIES",
    "PRODUCT_IMPORT_CATEGORY_PATH_SEPARATOR",
    "PRODUCT_IMPORT_AUTO_CREATE_OPTION_ATTRIBUTES",
    "PRODUCT_IMPORT_URL_KEY_SCHEME",
    "PRODUCT_IMPORT_DUPLICATE_URL_KEY_STRATEGY",
    "PRODUCT_IMPORT_PRODUCT_TYPE_CHANGE",
    "PRODUCT_IMPORT_SAVE_REWRITES_HISTORY",
    "PRODUCT_IMPORT_MAGENTO_VERSION",
    "PRODUCT_IMPORT_MAX_STATEMENT_BYTES",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestImportConfig:

    def test_defaults(self):
        config = ImportConfig()
        assert config.dry_run is False
        assert config.batch_size == 1000
        assert config.auto_create_categories is True
        assert config.url_key_scheme == UrlKeyScheme.FROM_NAME
        assert config.duplicate_url_key_strategy == DuplicateUrlKeyStrategy.ERROR
        assert config.product_type_change == ProductTypeChange.NON_DESTRUCTIVE
        assert config.save_rewrites_history is None
        assert config.result_callbacks == []

    @pytest.mark.parametrize('options', [
        {'batch_size': 0},
        {'max_statement_bytes': 0},
        {'category_path_separator': ''},
    ])
    def test_validate(self, options):
        with pytest.raises(ValueError):
            ImportConfig(**options).validate()

    def test_from_env_defaults(self, clean_env):
        assert ImportConfig.from_env() == ImportConfig()

    def test_from_env(self, clean_env):
        clean_env.setenv("PRODUCT_IMPORT_DRY_RUN", "true")
        clean_env.setenv("PRODUCT_IMPORT_BATCH_SIZE", "250")
        clean_env.setenv("PRODUCT_IMPORT_AUTO_CREATE_OPTION_ATTRIBUTES", "color, size,")
        clean_env.setenv("PRODUCT_IMPORT_DUPLICATE_URL_KEY_STRATEGY", "add-serial")
        clean_env.setenv("PRODUCT_IMPORT_PRODUCT_TYPE_CHANGE", "allowed")
        clean_env.setenv("PRODUCT_IMPORT_SAVE_REWRITES_HISTORY", "0")
        clean_env.setenv("PRODUCT_IMPORT_MAGENTO_VERSION", "2.1.9")

        config = ImportConfig.from_env()

        assert config.dry_run is True
        assert config.batch_size == 250
        assert config.auto_create_option_attributes == ['color', 'size']
        assert config.duplicate_url_key_strategy == DuplicateUrlKeyStrategy.ADD_SERIAL
        assert config.product_type_change == ProductTypeChange.ALLOWED
        assert config.save_rewrites_history is False
        assert config.magento_version == '2.1.9'

    def test_from_env_invalid_choice(self, clean_env):
        clean_env.setenv("PRODUCT_IMPORT_URL_KEY_SCHEME", "from-title")

        with pytest.raises(ImportConfigurationError) as exc_info:
            ImportConfig.from_env()

        assert 'from-name, from-sku' in str(exc_info.value)
