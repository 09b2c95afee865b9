"""Data models for Etherscan-compatible explorer API responses."""

from pydantic import BaseModel, Field, field_validator

from src.holders.types import TransferEvent


class ExplorerTokenTransfer(BaseModel):
    """One row of ``module=account&action=tokentx``."""

    blockNumber: int = 0
    timeStamp: int = 0
    hash: str = ""
    from_address: str = Field(default="", alias="from")
    to: str = ""
    value: int = 0
    contractAddress: str = ""
    tokenDecimal: int | None = None
    logIndex: int = 0

    model_config = {"extra": "ignore", "populate_by_name": True}

    @field_validator("blockNumber", "timeStamp", "value", "logIndex", mode="before")
    @classmethod
    def _blank_as_zero(cls, v: object) -> object:
        return 0 if v in ("", None) else v

    @field_validator("tokenDecimal", mode="before")
    @classmethod
    def _blank_as_none(cls, v: object) -> object:
        return None if v == "" else v

    def to_event(self) -> TransferEvent:
        return TransferEvent(
            from_address=self.from_address.lower(),
            to_address=self.to.lower(),
            amount_units=self.value,
            timestamp_sec=self.timeStamp,
            tx_hash=self.hash,
            block_number=self.blockNumber,
            log_index=self.logIndex,
        )


class ExplorerResponse(BaseModel):
    status: str = "0"
    message: str = ""
    result: list[ExplorerTokenTransfer] | str | None = None

    model_config = {"extra": "ignore"}

    @field_validator("status", mode="before")
    @classmethod
    def _status_as_str(cls, v: object) -> str:
        return str(v)
