"""Configuration management for RPC Bridge."""

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format ('json' or 'console')")
    file: Optional[Path] = Field(default=None, description="Log file path")

class ProviderConfig(BaseModel):
    """Configuration for socket provider behaviour."""

    host: str = Field(default="injected", description="Descriptive label for the node behind the provider.")
    subscribe_method: str = Field(default="eth_subscribe", description="RPC method used to open subscriptions.")
    unsubscribe_method: str = Field(default="eth_unsubscribe", description="RPC method used to close subscriptions.")

class TransportConfig(BaseModel):
    """Configuration for the bundled IPC transport."""

    ipc_path: Optional[Path] = Field(default=None, description="Path of the node's IPC socket.")
    read_chunk_size: int = Field(default=65536, ge=1024, description="Bytes read from the socket per iteration.")
    encoding: str = Field(default="utf-8", description="Text encoding of the JSON stream.")


class Config(BaseSettings):
    """Main configuration for RPC Bridge. Loads from environment variables prefixed with RPC_BRIDGE_."""

    model_config = SettingsConfigDict(
        env_prefix='RPC_BRIDGE_',
        env_nested_delimiter='__', # e.g., RPC_BRIDGE_LOGGING__LEVEL
        extra='ignore',
        env_file='.env',
        env_file_encoding='utf-8'
    )

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)

    @classmethod
    def from_file(cls, file_path: Path) -> "Config":
        """Create configuration strictly from a JSON file.
        Note: This does not layer with environment variables.
        """
        with open(file_path) as f:
            config_data = json.load(f)
        return cls.model_validate(config_data)
