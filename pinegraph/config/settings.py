"""
PURPOSE: Configuration settings for the pinegraph compiler.

This module uses Pydantic Settings to manage configuration from environment
variables and .env files. All settings are validated and typed.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    PURPOSE: Central configuration class for pinegraph.

    Controls the strategy() declaration written into every generated script
    and the logging level. Settings are loaded from environment variables and
    .env file.
    """

    # Pine Script header
    PINE_VERSION: int = 5
    STRATEGY_TITLE: str = "PineGraph Strategy"
    OVERLAY: bool = True
    INITIAL_CAPITAL: float = 10000.0
    DEFAULT_QTY_PERCENT: float = 10.0
    COMMISSION_PERCENT: float = 0.1
    SLIPPAGE: int = 2

    # Emission
    EMIT_MARKERS: bool = True

    # System Settings
    LOG_LEVEL: str = "INFO"

    def fallback_title(self) -> str:
        """
        PURPOSE: Title used by the fallback script when compilation fails.

        Returns:
            str: Strategy title prefixed with "Error - ".
        """
        return f"Error - {self.STRATEGY_TITLE}"

    class Config:
        """Pydantic model configuration."""

        env_file: str = ".env"
        env_file_encoding: str = "utf-8"
        case_sensitive: bool = True


settings: Settings = Settings()
