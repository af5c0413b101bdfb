from pydantic import BaseModel, Field, model_validator

from tokenspectrum.models.asset import Portfolio, TokenState


class AssetRow(BaseModel):
    token_id: int
    encrypted_test: str
    claimed: bool
    state: TokenState
    can_claim: bool
    decrypted_test: int | None = None


class BalanceView(BaseModel):
    encrypted_balance: str
    decrypted_balance: int | None = None
    uninitialized: bool = False


class PortfolioResponse(BaseModel):
    owner: str
    nfts: list[AssetRow]
    balance: BalanceView | None = None

    @classmethod
    def from_portfolio(cls, portfolio: Portfolio) -> "PortfolioResponse":
        balance = None
        if portfolio.balance is not None:
            balance = BalanceView(
                encrypted_balance=portfolio.balance.encrypted_handle,
                decrypted_balance=portfolio.balance.decrypted_value,
                uninitialized=portfolio.balance.is_uninitialized,
            )
        return cls(
            owner=portfolio.owner,
            nfts=[
                AssetRow(
                    token_id=record.token_id,
                    encrypted_test=record.encrypted_test,
                    claimed=record.claimed,
                    state=record.state,
                    can_claim=record.can_claim,
                    decrypted_test=record.decrypted_test,
                )
                for record in portfolio.rows
            ],
            balance=balance,
        )


class ActionResponse(BaseModel):
    """Result of a mint, claim or decrypt action."""

    ok: bool
    status: str
    portfolio: PortfolioResponse | None = None


class DecryptRequest(BaseModel):
    token_ids: list[int] = Field(default_factory=list, max_length=50)
    include_balance: bool = False

    @model_validator(mode="after")
    def require_target(self) -> "DecryptRequest":
        if not self.token_ids and not self.include_balance:
            raise ValueError("Provide token_ids and/or include_balance")
        if any(token_id < 0 for token_id in self.token_ids):
            raise ValueError("token_ids must be non-negative")
        return self
