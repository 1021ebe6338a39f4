import enum
from typing import Any, Dict, List, Literal, Optional
from pydantic import ConfigDict, Field

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class PushMessage(BaseModel):
    to: str = Field(..., description="Expo push token of the destination device")
    body: str = Field(..., description="Notification body text")
    sound: Optional[str] = Field("default", description="Sound played on delivery")
    title: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    ttl: Optional[int] = None
    priority: Optional[Literal["default", "normal", "high"]] = None
    channel_id: Optional[str] = None


class PushErrorDetails(BaseModel):
    model_config = ConfigDict(extra="allow")

    error: Optional[str] = Field(None, description="Expo error code")
    expo_push_token: Optional[str] = None


class PushTicket(BaseModel):
    status: Literal["ok", "error"]
    id: Optional[str] = Field(None, description="Receipt id, absent on error")
    message: Optional[str] = None
    details: Optional[PushErrorDetails] = None


class PushReceipt(BaseModel):
    status: Literal["ok", "error"]
    message: Optional[str] = None
    details: Optional[PushErrorDetails] = None


class BatchState(enum.Enum):
    PENDING = "pending"
    RECONCILED = "reconciled"
    LOST = "lost"


class DispatchBatch(BaseModel):
    batch_id: str
    state: BatchState = BatchState.PENDING
    tickets: List[PushTicket] = Field(default_factory=list)

    def receipt_ids(self) -> List[str]:
        """Receipt ids in ticket order, skipping tickets rejected at submission"""
        return [ticket.id for ticket in self.tickets if ticket.id]


class ChunkOutcome(BaseModel):
    index: int
    size: int
    tickets: List[PushTicket] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class ReceiptOutcome(BaseModel):
    receipt_id: str
    status: Literal["ok", "error"]
    message: Optional[str] = None
    error_code: Optional[str] = None


class ReconciliationReport(BaseModel):
    batch_id: str
    state: BatchState
    outcomes: List[ReceiptOutcome] = Field(default_factory=list)
    failed_chunks: int = 0

    @property
    def errors(self) -> List[ReceiptOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status == "error"]
