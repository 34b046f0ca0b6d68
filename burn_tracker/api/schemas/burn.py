"""
Burn data schemas.
"""

from typing import List, Optional
from pydantic import BaseModel, Field


class TokenInfo(BaseModel):
    symbol: str = Field(description="Lowercased token symbol")
    address: str = Field(description="Token contract address")


class TokenListData(BaseModel):
    total: int
    tokens: List[TokenInfo]


class TriggerJobData(BaseModel):
    started: bool = True
    tokens: int = Field(description="Number of tokens scheduled for this run")
    started_by: Optional[str] = "manual"
