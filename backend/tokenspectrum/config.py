from pydantic import ConfigDict, SecretStr, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Target network (Sepolia)
    rpc_url: str = "https://eth-sepolia.public.blastapi.io"
    chain_id: int = 11155111

    # Contracts - either explicit addresses or a hardhat-deploy directory
    nft_address: str | None = None
    token_address: str | None = None
    deployments_dir: str | None = None

    # Operator wallet used for signing grants and sending transactions
    wallet_private_key: SecretStr | None = None

    # Decryption relayer
    relayer_url: str = "https://relayer.testnet.zama.cloud"
    relayer_timeout_seconds: float = 30.0
    gateway_chain_id: int = 55815
    decryption_verifying_contract: str = "0xb6E160B1ff80D67Bfe90A85eE06Ce0A2613607D1"

    # Authorization grants
    grant_duration_days: int = 10
    signature_timeout_seconds: float = 120.0

    # Transactions
    tx_confirmation_timeout_seconds: int = 180

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # "console" | "json"

    # Rate Limiting
    rate_limit_reads: str = "60/minute"
    rate_limit_writes: str = "10/minute"
    rate_limit_decrypts: str = "20/minute"

    # CORS
    cors_origins: list[str] | str = ["http://localhost:5173", "http://127.0.0.1:5173"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("grant_duration_days")
    @classmethod
    def validate_grant_duration(cls, v: int) -> int:
        if v < 1:
            raise ValueError("grant_duration_days must be at least 1")
        return v


settings = Settings()
