"""
Pydantic schemas for the admin authentication API.

Field names follow the JSON wire format (camelCase). Request fields are
optional at the schema level so that missing input reaches the domain
checks, which audit it. Requests that fail schema validation on the key
endpoints are audited by the application's validation handler.
"""
from typing import Optional, List, Dict, Any
from datetime import datetime
from pydantic import BaseModel, Field

from blogauth.core.database.models import MAX_ACTOR_ID_LENGTH


class RegisterKeyRequest(BaseModel):
    """First-time public key registration"""
    email: Optional[str] = Field(None, max_length=320)
    publicKey: Optional[str] = Field(None, max_length=4096, description="PEM SubjectPublicKeyInfo")


class RotateKeyRequest(BaseModel):
    """Key rotation, signed with the currently registered key"""
    email: Optional[str] = Field(None, max_length=320)
    newPublicKey: Optional[str] = Field(None, max_length=4096)
    signature: Optional[str] = Field(None, max_length=1024, description="Hex DER ECDSA signature over the challenge")
    challenge: Optional[str] = Field(None, max_length=256)


class ChallengeRequest(BaseModel):
    email: Optional[str] = Field(None, max_length=320)


class VerifyRequest(BaseModel):
    challenge: Optional[str] = Field(None, max_length=256)
    signature: Optional[str] = Field(None, max_length=1024)
    userId: Optional[str] = Field(None, max_length=MAX_ACTOR_ID_LENGTH)


class MessageResponse(BaseModel):
    success: bool
    message: str


class ChallengeResponse(BaseModel):
    challenge: str
    userId: str


class UserView(BaseModel):
    id: str
    email: str
    role: str
    permissions: List[str]


class VerifyResponse(BaseModel):
    success: bool
    token: str
    user: UserView


class AuditEventResponse(BaseModel):
    """Audit event as returned by the audit endpoints"""
    id: str
    timestamp: datetime
    event: str
    category: str
    level: str
    userId: Optional[str] = None
    userEmail: Optional[str] = None
    ip: Optional[str] = None
    userAgent: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class AuditEventsResponse(BaseModel):
    events: List[AuditEventResponse]
    count: int


class AuditStatsResponse(BaseModel):
    window: str
    totalEvents: int
    byCategory: Dict[str, int]
    byEvent: Dict[str, int]
    byLevel: Dict[str, int]
    recentEvents: List[AuditEventResponse]
