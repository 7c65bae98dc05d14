"""
Configuration: definitions, YAML loading, environment overrides and the config module.
"""

from dataclasses import dataclass, field
from typing import List, Literal, Optional

import pytest

from zenject.config import (
    ConfigError,
    ConfigLoadError,
    ConfigModule,
    ConfigService,
    EnvironmentOverrideError,
    EnvironmentService,
    YamlImportError,
    YamlParseError,
    YamlService,
    check_type,
    create_config,
    deep_merge,
)
from zenject.errors import ProviderNotFoundError
from zenject.module import module


@dataclass
class PoolSettings:
    size: int = 5


@dataclass
class DatabaseSettings:
    host: str = "localhost"
    port: int = 5432
    debug: bool = False
    pool: PoolSettings = field(default_factory=PoolSettings)
    tags: List[str] = field(default_factory=list)


@dataclass
class ApiSettings:
    url: str
    timeout: float = 2.0


@dataclass
class CacheSettings:
    backend: Literal["memory", "redis"] = "memory"
    ttl: Optional[int] = None


DatabaseConfig = create_config("database", DatabaseSettings)
CacheConfig = create_config("cache", CacheSettings)


def write_settings(tmp_path, content: str):
    config_dir = tmp_path / "config"
    config_dir.mkdir(exist_ok=True)
    path = config_dir / "settings.yaml"
    path.write_text(content)
    return path


@pytest.fixture
def config_service() -> ConfigService:
    return ConfigService(YamlService(), EnvironmentService({}))


# ============================================================================
# Definitions
# ============================================================================


class TestConfigDefinition:

    def test_key_is_named_after_namespace(self):
        assert str(DatabaseConfig.KEY) == "InjectionToken[Config[database]]"
        assert DatabaseConfig.description == "Configuration for database"

    def test_schema_must_be_dataclass(self):
        with pytest.raises(ConfigError):
            create_config("bad", dict)

    def test_defaults_include_nested_sections(self):
        defaults = DatabaseConfig.get_defaults()

        assert defaults["host"] == "localhost"
        assert defaults["pool"] == {"size": 5}
        assert defaults["tags"] == []

    def test_required_fields_left_out_of_defaults(self):
        assert create_config("api", ApiSettings).get_defaults() == {"timeout": 2.0}

    def test_validate_builds_nested_schema(self):
        settings = DatabaseConfig.validate({"host": "db", "pool": {"size": 20}})

        assert isinstance(settings, DatabaseSettings)
        assert settings.host == "db"
        assert settings.pool == PoolSettings(size=20)

    def test_validate_accepts_schema_instance(self):
        settings = DatabaseConfig.validate(DatabaseSettings(port=1))
        assert settings.port == 1

    def test_wrong_type_rejected(self):
        with pytest.raises(ConfigError) as exc_info:
            DatabaseConfig.validate({"port": "not-a-number"})
        assert "port" in str(exc_info.value)

    def test_missing_required_field(self):
        with pytest.raises(ConfigError) as exc_info:
            create_config("api", ApiSettings).validate({})
        assert "url" in str(exc_info.value)

    def test_rules_and_transform(self):
        def positive_timeout(settings):
            if settings.timeout <= 0:
                raise ConfigError("timeout must be positive")

        definition = create_config(
            "api",
            ApiSettings,
            rules=positive_timeout,
            transform=lambda settings: settings.url.rstrip("/"),
        )

        assert definition.validate({"url": "https://api/"}) == "https://api"
        with pytest.raises(ConfigError):
            definition.validate({"url": "https://api", "timeout": 0})

    def test_mapping_overrides_applied_on_validate(self):
        definition = create_config(
            "api",
            ApiSettings,
            env_overrides={"url": ["API_URL", "SERVICE_URL"], "timeout": "API_TIMEOUT"},
        )
        environment = EnvironmentService({"SERVICE_URL": "https://svc", "API_TIMEOUT": "5"})

        settings = definition.validate({"timeout": 1.0}, environment=environment)

        assert settings.url == "https://svc"
        assert settings.timeout == 5.0


class TestTypeChecks:

    def test_optional(self):
        assert check_type(None, Optional[int])
        assert check_type(3, Optional[int])
        assert not check_type("3", Optional[int])

    def test_literal(self):
        assert check_type("redis", Literal["memory", "redis"])
        assert not check_type("disk", Literal["memory", "redis"])

    def test_generic_checks_origin_only(self):
        assert check_type(["a"], List[str])
        assert not check_type("a", List[str])

    def test_int_accepted_for_float(self):
        assert check_type(2, float)
        assert not check_type(True, float)


# ============================================================================
# YAML
# ============================================================================


class TestYamlService:

    @pytest.mark.asyncio
    async def test_import_file(self, tmp_path):
        path = write_settings(tmp_path, "database:\n  host: db.internal\n  port: 6000\n")

        document = await YamlService().import_file(path)

        assert document == {"database": {"host": "db.internal", "port": 6000}}

    @pytest.mark.asyncio
    async def test_relative_path_uses_cwd(self, tmp_path, monkeypatch):
        write_settings(tmp_path, "cache:\n  backend: redis\n")
        monkeypatch.chdir(tmp_path)

        document = await YamlService().import_file("config/settings.yaml")

        assert document["cache"]["backend"] == "redis"

    @pytest.mark.asyncio
    async def test_empty_file_is_empty_mapping(self, tmp_path):
        path = write_settings(tmp_path, "")
        assert await YamlService().import_file(path) == {}

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        with pytest.raises(YamlImportError):
            await YamlService().import_file(tmp_path / "missing.yaml")

    @pytest.mark.asyncio
    async def test_top_level_must_be_mapping(self, tmp_path):
        path = write_settings(tmp_path, "- one\n- two\n")
        with pytest.raises(YamlImportError):
            await YamlService().import_file(path)

    def test_parse_content(self):
        assert YamlService().parse_content("a: 1") == {"a": 1}
        with pytest.raises(YamlParseError):
            YamlService().parse_content("a: [1, 2")


# ============================================================================
# Environment
# ============================================================================


class TestEnvironmentService:

    def test_namespace_overrides_coerce_types(self):
        environment = EnvironmentService({
            "APP_DATABASE_PORT": "6543",
            "APP_DATABASE_DEBUG": "yes",
            "APP_DATABASE_TAGS": "a, b",
            "APP_DATABASE_POOL_SIZE": "10",
            "APP_DATABASE_UNKNOWN": "ignored",
        })
        config = {"database": DatabaseConfig.get_defaults()}

        result = environment.apply_namespace_overrides(config, "database")["database"]

        assert result["port"] == 6543
        assert result["debug"] is True
        assert result["tags"] == ["a", "b"]
        assert result["pool"] == {"size": 10}
        assert "unknown" not in result
        assert config["database"]["port"] == 5432

    def test_custom_prefix(self):
        environment = EnvironmentService({"SVC_DATABASE_HOST": "remote"})
        result = environment.apply_namespace_overrides(
            {"database": {"host": "localhost"}}, "database", env_prefix="SVC"
        )
        assert result["database"]["host"] == "remote"

    def test_convert_value(self):
        environment = EnvironmentService({})

        assert environment.convert_value("1.5", 1) == 1.5
        assert environment.convert_value("abc", 1) == 1
        assert environment.convert_value("0.25", 1.0) == 0.25
        assert environment.convert_value("false", True) is False
        assert environment.convert_value("text", None) == "text"

    def test_dotted_mapping_override(self):
        environment = EnvironmentService({"RETRIES": "3"})

        result = environment.apply_mapping_overrides(
            {"retry": {"count": 1}}, {"retry.count": "RETRIES"}
        )

        assert result == {"retry": {"count": 3}}

    def test_invalid_dotted_path(self):
        environment = EnvironmentService({"RETRIES": "3"})

        with pytest.raises(EnvironmentOverrideError):
            environment.apply_mapping_overrides({}, {"retry..count": "RETRIES"})

    def test_unset_variables_leave_config_alone(self):
        environment = EnvironmentService({})
        assert environment.apply_mapping_overrides({"a": 1}, {"a": "A"}) == {"a": 1}

    def test_typed_env_var_helpers(self):
        environment = EnvironmentService({"APP_PORT": "8080", "APP_NAME": "svc", "OTHER": "x"})

        assert environment.get_typed_env_var("APP_PORT", 8000) == 8080
        assert environment.get_typed_env_var("APP_MISSING", 8000) == 8000
        assert environment.has_env_var("OTHER")
        assert environment.get_env_vars_with_prefix("app_") == {"APP_PORT": "8080", "APP_NAME": "svc"}

    def test_env_file_with_process_winning(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("APP_DATABASE_HOST=from-file\nAPP_DATABASE_PORT=1111\n")

        environment = EnvironmentService({"APP_DATABASE_PORT": "2222"}).with_env_file(env_file)

        assert environment.environ["APP_DATABASE_HOST"] == "from-file"
        assert environment.environ["APP_DATABASE_PORT"] == "2222"

    def test_reads_process_environment_by_default(self, monkeypatch):
        monkeypatch.setenv("APP_DATABASE_HOST", "process")
        assert EnvironmentService().environ["APP_DATABASE_HOST"] == "process"


# ============================================================================
# Config service
# ============================================================================


class TestConfigService:

    @pytest.mark.asyncio
    async def test_precedence(self, tmp_path):
        path = write_settings(tmp_path, "database:\n  host: db.yaml\n  port: 6000\n")
        service = ConfigService(YamlService(), EnvironmentService({"APP_DATABASE_PORT": "7000"}))

        settings = await service.load_config(DatabaseConfig, file_path=path)

        assert settings.host == "db.yaml"
        assert settings.port == 7000
        assert settings.debug is False

    @pytest.mark.asyncio
    async def test_env_overrides_can_be_disabled(self, tmp_path):
        path = write_settings(tmp_path, "database:\n  port: 6000\n")
        service = ConfigService(YamlService(), EnvironmentService({"APP_DATABASE_PORT": "7000"}))

        settings = await service.load_config(DatabaseConfig, file_path=path, enable_env_overrides=False)

        assert settings.port == 6000

    @pytest.mark.asyncio
    async def test_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("APP_DATABASE_HOST=from-file\n")
        service = ConfigService(YamlService(), EnvironmentService({}))

        settings = await service.load_config(DatabaseConfig, env_file=env_file)

        assert settings.host == "from-file"

    @pytest.mark.asyncio
    async def test_defaults_without_file(self, config_service):
        settings = await config_service.load_config(CacheConfig)
        assert settings == CacheSettings()

    @pytest.mark.asyncio
    async def test_missing_required_file(self, config_service, tmp_path):
        with pytest.raises(ConfigLoadError) as exc_info:
            await config_service.load_config(DatabaseConfig, file_path=tmp_path / "missing.yaml")

        assert exc_info.value.namespace == "database"
        assert isinstance(exc_info.value.cause, YamlImportError)

    @pytest.mark.asyncio
    async def test_missing_optional_file(self, config_service, tmp_path):
        settings = await config_service.load_config(
            DatabaseConfig, file_path=tmp_path / "missing.yaml", require_file=False
        )
        assert settings.host == "localhost"

    @pytest.mark.asyncio
    async def test_validation_failure_wrapped(self, config_service, tmp_path):
        path = write_settings(tmp_path, "cache:\n  backend: disk\n")

        with pytest.raises(ConfigLoadError) as exc_info:
            await config_service.load_config(CacheConfig, file_path=path)

        assert str(exc_info.value).startswith("Failed to load configuration for namespace 'cache'")
        assert isinstance(exc_info.value.cause, ConfigError)

    @pytest.mark.asyncio
    async def test_load_multiple_configs(self, config_service, tmp_path):
        path = write_settings(tmp_path, "database:\n  host: db\ncache:\n  ttl: 60\n")

        database, cache = await config_service.load_multiple_configs(
            [DatabaseConfig, CacheConfig], file_path=path
        )

        assert database.host == "db"
        assert cache.ttl == 60

    @pytest.mark.asyncio
    async def test_config_exists(self, config_service, tmp_path):
        path = write_settings(tmp_path, "a: 1\n")

        assert await config_service.config_exists(path) is True
        assert await config_service.config_exists(tmp_path / "nope.yaml") is False

    def test_deep_merge(self):
        merged = deep_merge({"a": {"b": 1, "c": 2}, "d": 1}, {"a": {"b": 10}, "e": 5})
        assert merged == {"a": {"b": 10, "c": 2}, "d": 1, "e": 5}


# ============================================================================
# Config module
# ============================================================================


class TestConfigModule:

    @pytest.mark.asyncio
    async def test_for_root_loads_default_file(self, loader, container, tmp_path, monkeypatch):
        write_settings(tmp_path, "database:\n  host: from-yaml\n")
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("APP_DATABASE_PORT", "9999")

        @module(imports=[ConfigModule.for_root([DatabaseConfig])])
        class AppModule:
            pass

        await loader.load_module(AppModule)

        settings = container.resolve(DatabaseConfig.KEY)
        assert settings.host == "from-yaml"
        assert settings.port == 9999
        assert isinstance(container.resolve(ConfigService), ConfigService)

    @pytest.mark.asyncio
    async def test_default_file_may_be_absent(self, loader, container, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        await loader.load_module(ConfigModule.for_root([CacheConfig]))

        assert container.resolve(CacheConfig.KEY) == CacheSettings()

    @pytest.mark.asyncio
    async def test_root_and_feature_load_side_by_side(self, loader, container, tmp_path):
        path = write_settings(tmp_path, "database:\n  host: db\ncache:\n  backend: redis\n")

        @module(imports=[
            ConfigModule.for_root([DatabaseConfig], file_path=path),
            ConfigModule.for_feature([CacheConfig], file_path=path),
        ])
        class AppModule:
            pass

        await loader.load_module(AppModule)

        assert container.resolve(DatabaseConfig.KEY).host == "db"
        assert container.resolve(CacheConfig.KEY).backend == "redis"
        assert "ConfigModule.for_root[database]" in loader.get_loaded_modules()
        assert "ConfigModule.for_feature[cache]" in loader.get_loaded_modules()

    @pytest.mark.asyncio
    async def test_explicit_file_is_required(self, loader, container, tmp_path):
        with pytest.raises(ConfigLoadError):
            await loader.load_module(
                ConfigModule.for_feature([CacheConfig], file_path=tmp_path / "missing.yaml")
            )

        with pytest.raises(ProviderNotFoundError):
            container.resolve(CacheConfig.KEY)

    @pytest.mark.asyncio
    async def test_static_module_provides_services(self, loader, container):
        await loader.load_module(ConfigModule)

        service = container.resolve(ConfigService)
        assert service.yaml_service is container.resolve(YamlService)
