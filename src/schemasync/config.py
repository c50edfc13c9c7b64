"""
Configuration system for schemasync using Pydantic.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .database.connection import ConnectionConfig
from .exceptions import ConfigurationError


class SessionConfig(BaseModel):
    """Behaviour of schema update sessions on one database connection."""

    quiet: bool = Field(False, description="Suppress alteration notifications")
    dry_run: bool = Field(False, description="Compute changes without touching the database")
    spec_comparison: Literal["normalized", "raw"] = Field(
        "normalized", description="How stored and required specs are compared"
    )
    obsolete_prefix: str = Field(
        "_obsolete_", description="Prefix for tables moved out of the way"
    )

    @field_validator("obsolete_prefix")
    @classmethod
    def validate_obsolete_prefix(cls, v):
        if not v:
            raise ValueError("Obsolete prefix must not be empty")
        return v


class IndexDefinition(BaseModel):
    """Explicit index description: the indexed fields and the index kind."""

    fields: List[str] = Field(..., description="Indexed field names, in order")
    type: Literal["index", "unique", "fulltext"] = Field("index", description="Index kind")

    @field_validator("fields")
    @classmethod
    def validate_fields(cls, v):
        if not v:
            raise ValueError("An index needs at least one field")
        return v

    def to_spec(self) -> str:
        columns = ",".join(self.fields)
        if self.type == "index":
            return f"({columns})"
        return f"{self.type} ({columns})"


class TableDefinition(BaseModel):
    """Desired shape of one table."""

    name: str = Field(..., description="Table name")
    fields: Dict[str, str] = Field(
        default_factory=dict, description="Field name to type descriptor"
    )
    indexes: Dict[str, Union[bool, str, IndexDefinition]] = Field(
        default_factory=dict, description="Index name to index spec"
    )
    obsolete: bool = Field(
        False, description="Move the table out of the way instead of requiring it"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Table name is required")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "INFO", description="Log level"
    )
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )

    def apply(self) -> None:
        logging.basicConfig(level=self.level, format=self.format)


class SchemaSyncConfig(BaseSettings):
    """Main schemasync configuration."""

    connection: Optional[ConnectionConfig] = Field(
        None, description="Database connection"
    )
    session: SessionConfig = Field(
        default_factory=SessionConfig, description="Schema session behaviour"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    tables: List[TableDefinition] = Field(
        default_factory=list, description="Declared tables"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SCHEMASYNC_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "SchemaSyncConfig":
        """Load configuration from a YAML file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

            data = cls._expand_env_vars(data)

            return cls(**data)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}")
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    @classmethod
    def _expand_env_vars(cls, data: Any) -> Any:
        """Recursively expand environment variables in configuration data."""
        if isinstance(data, dict):
            return {k: cls._expand_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [cls._expand_env_vars(item) for item in data]
        elif isinstance(data, str):
            return os.path.expandvars(data)
        else:
            return data

    def get_table(self, name: str) -> TableDefinition:
        """Get a table definition by name, ignoring case."""
        for table in self.tables:
            if table.name.lower() == name.lower():
                return table
        raise ConfigurationError(f"Table definition '{name}' not found")

    def validate_config(self) -> None:
        """Validate the table definitions for consistency."""
        from .schema.field_types import FieldTypeFactory

        seen: Dict[str, str] = {}
        for table in self.tables:
            key = table.name.lower()
            if key in seen:
                raise ConfigurationError(
                    f"Table '{table.name}' is declared more than once "
                    f"(also as '{seen[key]}')"
                )
            seen[key] = table.name

            if table.obsolete and (table.fields or table.indexes):
                raise ConfigurationError(
                    f"Obsolete table '{table.name}' must not declare fields or indexes"
                )

            for field_name, descriptor in table.fields.items():
                FieldTypeFactory.create(field_name, descriptor)

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Save configuration to a YAML file."""
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(
                self.model_dump(mode="json", exclude_none=True),
                f,
                default_flow_style=False,
                indent=2,
                sort_keys=False,
            )
