"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, orgdir.toml only contains overrides.
A fresh directory needs no config file at all.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from orgdir.domain.types import DEFAULT_CONTACT_FIELDS

# --- orgdir.toml sections ---


class StoreConfig(BaseModel):
    """[store] section."""

    model_config = {"frozen": True}

    path: str = "orgdir.db"
    timeout: float = 5.0
    atomic: bool = True  # false: multi-phase mutations commit per phase


class DirectorySection(BaseModel):
    """[directory] section."""

    model_config = {"frozen": True}

    root_name: str = "Directory"


class SearchConfig(BaseModel):
    """[search] section."""

    model_config = {"frozen": True}

    include_root: bool = False
    limit: int = 0  # 0 = unlimited


class ContactsConfig(BaseModel):
    """[contacts] section."""

    model_config = {"frozen": True}

    fields: list[str] = Field(default_factory=lambda: list(DEFAULT_CONTACT_FIELDS))


class PluginsConfig(BaseModel):
    """[plugins] section."""

    model_config = {"frozen": True}

    enabled: bool = True


class OrgdirConfig(BaseModel):
    """Root config model — all orgdir.toml sections."""

    model_config = {"frozen": True}

    store: StoreConfig = Field(default_factory=StoreConfig)
    directory: DirectorySection = Field(default_factory=DirectorySection)
    search: SearchConfig = Field(default_factory=SearchConfig)
    contacts: ContactsConfig = Field(default_factory=ContactsConfig)
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)
