import os
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, replace
from pathlib import Path

from loguru import logger
from pydantic import BaseModel

from src.flattr_auth.runtime.config.config_data import ConfigData
from src.flattr_auth.runtime.config.config_template import load_templated_yaml


@dataclass
class AppContext:
    """Application-wide state visible to the current task or thread."""

    config: ConfigData


def _load_default_config() -> ConfigData:
    config_path = Path(os.getenv("APP_CONFIG_FILE", "config.yaml"))
    if not config_path.exists():
        logger.warning("{} not found, using built-in configuration defaults", config_path)
        return ConfigData()
    return load_templated_yaml(config_path)


_app_context: ContextVar[AppContext] = ContextVar(
    "app_context", default=AppContext(config=_load_default_config())
)


def get_context() -> AppContext:
    return _app_context.get()


def get_config() -> ConfigData:
    """The configuration in effect for the caller."""
    return _app_context.get().config


def _overlay(base: dict, override: BaseModel) -> dict:
    """Copy of ``base`` with the explicitly set fields of ``override`` written over it.

    Nested models are walked field by field, so setting ``cookies.name`` keeps
    the sibling cookie settings from ``base``.
    """
    merged = dict(base)
    for name in type(override).model_fields:
        value = getattr(override, name)
        if isinstance(value, BaseModel) and isinstance(merged.get(name), dict):
            if name in override.model_fields_set and not value.model_fields_set:
                merged[name] = value.model_dump()
            else:
                merged[name] = _overlay(merged[name], value)
        elif name in override.model_fields_set:
            merged[name] = value.model_dump() if isinstance(value, BaseModel) else value
    return merged


@contextmanager
def with_context(config_override: ConfigData | None = None):
    """Run a block with parts of the configuration replaced.

    Only fields explicitly set on ``config_override`` change; everything else
    is inherited from the enclosing context.

    Example:
        override = ConfigData(cookies=CookieConfig(production_domain="example.com"))
        with with_context(override):
            assert get_config().cookies.production_domain == "example.com"
            assert get_config().cookies.name == "auth-token"
    """
    if config_override is None:
        yield
        return
    if not isinstance(config_override, ConfigData):
        raise ValueError(
            f"config_override must be ConfigData, or None, got {type(config_override)}"
        )

    current = get_context()
    merged = ConfigData.model_validate(_overlay(current.config.model_dump(), config_override))
    token = _app_context.set(replace(current, config=merged))
    try:
        yield
    finally:
        _app_context.reset(token)


def set_config(config: ConfigData) -> None:
    """Replace the whole configuration for the current context."""
    _app_context.set(replace(get_context(), config=config))
