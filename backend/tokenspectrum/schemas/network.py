from pydantic import BaseModel


class NetworkStatusResponse(BaseModel):
    expected_chain_id: int
    chain_id: int | None = None
    wrong_network: bool = False
    account: str | None = None
    contracts_configured: bool
    nft_address: str | None = None
    token_address: str | None = None
    relayer_url: str
    message: str | None = None
