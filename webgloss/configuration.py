"""Prepper-backed configuration loader for webgloss."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping, Optional, Sequence

from dotenv import dotenv_values
from prepper import (
    Field,
    IoError,
    SchemaError,
    SchemaModel,
    ValidationError,
    model_validator,
)
from prepper.config import ConfigInstance
from prepper.loaders import _parse_file, _path_to_source, discover_file_paths
from prepper.merge import merge_layer
from prepper.provenance import ProvenanceRecorder

from .errors import TranslationProviderConfigurationError
from .settings_store import API_KEY, MODEL_KEY, SettingsStore
from .structures import (
    AVAILABLE_MODELS,
    DEFAULT_BATCH_CHARACTER_LIMIT,
    DEFAULT_DELIMITER,
    DEFAULT_MODEL,
    Configuration,
)

APP_NAME = "Webgloss"
DEFAULT_OPENAI_MODEL = "gpt-5-mini"

PROVIDER_SYNONYMS = {
    "google": "gemini",
    "google_gemini": "gemini",
    "open_ai": "openai",
    "gpt": "openai",
    "noop": "echo",
    "mock": "echo",
}


def normalise_provider(value: str | None) -> str:
    normalized = (value or "gemini").strip().lower().replace("-", "_")
    normalized = PROVIDER_SYNONYMS.get(normalized, normalized)
    if normalized not in {"gemini", "openai", "echo"}:
        normalized = "gemini"
    return normalized


class WebglossConfig(SchemaModel):
    """Schema describing all supported configuration options."""

    LLM_PROVIDER: Literal["gemini", "openai", "echo"] = Field(
        default="gemini",
        description="Translation backend selection.",
    )
    GEMINI_API_KEY: str | None = Field(default=None, secret=True)
    OPENAI_API_KEY: str | None = Field(default=None, secret=True)
    OPENAI_MODEL: str = Field(default=DEFAULT_OPENAI_MODEL)
    WEBGLOSS_MODEL: str = Field(default=DEFAULT_MODEL)
    WEBGLOSS_BATCH_LIMIT: int = Field(default=DEFAULT_BATCH_CHARACTER_LIMIT)
    WEBGLOSS_DELIMITER: str = Field(default=DEFAULT_DELIMITER)
    WEBGLOSS_SETTINGS_PATH: str | None = Field(default=None)
    WEBGLOSS_DEBUG_PROVIDER: bool = Field(default=False)

    @model_validator(mode="before")
    def _normalise_provider(data: Any) -> Any:
        if isinstance(data, dict):
            raw_value = data.get("LLM_PROVIDER")
            if isinstance(raw_value, str):
                data["LLM_PROVIDER"] = normalise_provider(raw_value)
        return data


@lru_cache(maxsize=1)
def _load_config_instance(app_dir: Path | None = None) -> ConfigInstance:
    """Load configuration layers once and cache the immutable instance."""

    base_dir = app_dir or Path.cwd()
    try:
        provenance = ProvenanceRecorder()
        combined = _load_discovered_yaml(app_dir=base_dir, provenance=provenance)
        _merge_env_sources(
            combined,
            provenance=provenance,
            app_dir=base_dir,
            schema=WebglossConfig,
        )

        model = WebglossConfig.validate(combined, provenance=provenance)
        _validate_settings(model)

        return ConfigInstance(
            model=model,
            provenance=provenance,
            env_prefix=None,
            schema_cls=WebglossConfig,
        )
    except IoError as exc:
        raise TranslationProviderConfigurationError(
            f"Configuration files could not be read: {exc}"
        ) from exc
    except SchemaError as exc:
        raise TranslationProviderConfigurationError(
            f"Configuration schema error: {exc}"
        ) from exc
    except ValidationError as exc:
        issues = _format_validation_errors(exc.to_dict())
        raise TranslationProviderConfigurationError(issues) from exc


def _load_discovered_yaml(
    *,
    app_dir: Path,
    provenance: ProvenanceRecorder,
) -> dict[str, Any]:
    """Load YAML configuration files using Prepper's discovery rules."""

    result: dict[str, Any] = {}
    discovered = discover_file_paths(
        APP_NAME,
        "yaml",
        app_dir=app_dir,
        extra_paths=None,
    )
    for path, label in discovered:
        parsed = _parse_file(path, "yaml")
        if not isinstance(parsed, Mapping):
            raise IoError(
                f"Invalid configuration file {path}: expected a mapping at the root."
            )
        source = _path_to_source(label, "yaml", path)
        merge_layer(result, parsed, provenance=provenance, source=source, layer="file")
    return result


def _merge_env_sources(
    target: dict[str, Any],
    *,
    provenance: ProvenanceRecorder,
    app_dir: Path,
    schema: type[SchemaModel],
) -> None:
    """Merge .env and process environment variables into the target mapping."""

    allowed = set(schema.__field_infos__.keys())

    def merge_values(values: Mapping[str, str], *, source_prefix: str) -> None:
        for key, value in sorted(values.items()):
            if value is None or key not in allowed:
                continue
            merge_layer(
                target,
                {key: value},
                provenance=provenance,
                source=f"env:{source_prefix}:{key}",
                layer="env",
            )

    dotenv_path = app_dir / ".env"
    if dotenv_path.exists():
        dotenv_content = dotenv_values(dotenv_path)
        merge_values(
            {k: v for k, v in dotenv_content.items() if v is not None},
            source_prefix=".env",
        )

    merge_values(
        {k: v for k, v in os.environ.items() if isinstance(v, str)},
        source_prefix="process",
    )


def _validate_settings(settings: WebglossConfig) -> None:
    errors: list[str] = []

    if settings.WEBGLOSS_BATCH_LIMIT <= 0:
        errors.append("WEBGLOSS_BATCH_LIMIT must be a positive number of characters.")
    if not settings.WEBGLOSS_DELIMITER:
        errors.append("WEBGLOSS_DELIMITER must not be empty.")
    if settings.WEBGLOSS_MODEL not in AVAILABLE_MODELS:
        errors.append(
            f"WEBGLOSS_MODEL must be one of: {', '.join(AVAILABLE_MODELS)}."
        )

    if errors:
        bullet_list = "\n".join(f"- {message}" for message in errors)
        raise TranslationProviderConfigurationError(
            "Configuration validation errors detected:\n" + bullet_list
        )


def _format_validation_errors(entries: Sequence[dict[str, Any]]) -> str:
    details: list[str] = []
    for entry in entries:
        path = entry.get("path") or []
        if isinstance(path, (list, tuple)):
            location = ".".join(str(part) for part in path if part not in {None, ""})
        else:
            location = str(path)
        message = str(entry.get("message") or entry.get("msg") or "Invalid value")
        source = entry.get("source")
        origin = f" (source: {source})" if source else ""
        prefix = f"{location}: " if location else ""
        details.append(f"- {prefix}{message}{origin}")
    return "Configuration validation errors detected:\n" + "\n".join(details)


def get_config(app_dir: Path | None = None) -> ConfigInstance:
    """Return the immutable configuration instance."""

    return _load_config_instance(app_dir=app_dir)


def get_settings(app_dir: Path | None = None) -> WebglossConfig:
    """Return the validated schema model for typed access."""

    return get_config(app_dir=app_dir).model()


class SettingsProvider:
    """Builds a fresh :class:`Configuration` each time one is needed.

    Static options come from the cached configuration layers. The API key and
    model are looked up in the settings store on every call, so a change made
    while a page is being translated applies from the next batch on.
    """

    def __init__(
        self,
        *,
        settings: Any = None,
        store: Optional[SettingsStore] = None,
        provider: str | None = None,
        batch_limit: int | None = None,
        debug: bool | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self.provider_override = provider
        self.batch_limit_override = batch_limit
        self.debug_override = debug

    @property
    def settings(self) -> Any:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def store(self) -> SettingsStore:
        if self._store is None:
            path = self.settings.WEBGLOSS_SETTINGS_PATH
            self._store = SettingsStore(Path(path).expanduser() if path else None)
        return self._store

    @property
    def provider_name(self) -> str:
        return normalise_provider(self.provider_override or self.settings.LLM_PROVIDER)

    def current(self) -> Configuration:
        if self.batch_limit_override is not None and self.batch_limit_override <= 0:
            raise TranslationProviderConfigurationError(
                "The batch limit must be a positive number of characters."
            )
        settings = self.settings
        stored = self.store.load()
        provider = self.provider_name

        if provider == "openai":
            api_key = settings.OPENAI_API_KEY
            model = settings.OPENAI_MODEL or DEFAULT_OPENAI_MODEL
        else:
            api_key = stored.get(API_KEY) or settings.GEMINI_API_KEY
            model = stored.get(MODEL_KEY)
            if model not in AVAILABLE_MODELS:
                model = settings.WEBGLOSS_MODEL or DEFAULT_MODEL

        debug = (
            self.debug_override
            if self.debug_override is not None
            else bool(settings.WEBGLOSS_DEBUG_PROVIDER)
        )
        return Configuration(
            api_key=api_key or None,
            model=model,
            batch_character_limit=(
                self.batch_limit_override
                if self.batch_limit_override is not None
                else settings.WEBGLOSS_BATCH_LIMIT
            ),
            delimiter=settings.WEBGLOSS_DELIMITER or DEFAULT_DELIMITER,
            provider=provider,
            debug=debug,
        )
