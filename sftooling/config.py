"""
Configuration management for the Salesforce Tooling MCP server
Supports environment variables and .env files
"""
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class SalesforceConfig(BaseSettings):
    """Credentials and runtime settings, read once and never mutated."""

    # Credentials
    instance_url: str = Field(default="https://login.salesforce.com", description="Org login or instance URL")
    client_id: str = Field(default="", description="Connected app consumer key")
    client_secret: Optional[str] = Field(default=None, description="Connected app consumer secret")
    username: Optional[str] = Field(default=None, description="Username for the password flow")
    password: Optional[str] = Field(default=None, description="Password for the password flow")
    security_token: Optional[str] = Field(default=None, description="Appended to the password when set")
    private_key: Optional[str] = Field(default=None, description="PEM private key for the JWT bearer flow")
    subject: Optional[str] = Field(default=None, description="Username impersonated by the JWT bearer flow")
    target_org: Optional[str] = Field(default=None, description="SF CLI alias or username to reuse")
    api_version: str = Field(default="59.0", description="Salesforce API version")

    # Runtime
    request_timeout_seconds: float = Field(default=30.0, description="Timeout applied to every HTTP call")
    token_ttl_seconds: int = Field(default=3600, description="Flat lifetime of a cached access token")
    jwt_assertion_lifetime_seconds: int = Field(default=300, description="exp offset of the JWT assertion")
    cli_command: str = Field(default="sf", description="Salesforce CLI executable")
    cli_timeout_seconds: float = Field(default=60.0, description="Timeout for SF CLI invocations")

    # Server Configuration
    mcp_server_name: str = Field(default="salesforce-tooling-mcp", description="MCP server name")
    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_json: bool = Field(default=False, description="Emit one JSON object per log line")
    http_host: str = Field(default="127.0.0.1", description="HTTP/SSE server host")
    http_port: int = Field(default=8000, description="HTTP/SSE server port")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        env_prefix = "SF_"
        frozen = True

    @property
    def resolved_private_key(self) -> Optional[str]:
        """Private key with escaped newlines from single-line env values expanded."""
        if not self.private_key:
            return None
        return self.private_key.replace("\\n", "\n")

    @property
    def has_jwt_credentials(self) -> bool:
        return bool(self.client_id and self.private_key and self.subject)

    @property
    def has_password_credentials(self) -> bool:
        return bool(self.client_id and self.username and self.password)


# Global configuration instance
_config: Optional[SalesforceConfig] = None


def get_config() -> SalesforceConfig:
    """Get global configuration instance (singleton pattern)"""
    global _config
    if _config is None:
        _config = SalesforceConfig()
    return _config


def reload_config() -> SalesforceConfig:
    """Reload configuration from environment/file"""
    global _config
    _config = SalesforceConfig()
    return _config
