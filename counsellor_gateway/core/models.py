"""API-Modelle des Counsellor Gateways: Nachrichten, Upstream-Antworten
und der einheitliche Fehler-Umschlag."""
from typing import Optional

from pydantic import BaseModel

# author_id des automatischen Antwortgebers; jede andere ID ist der Mensch.
COUNSELLOR_ID = "counsellor"


class Message(BaseModel):
    """Eine Chat-Nachricht, wie sie an ``/send_message`` geht und angezeigt wird."""

    author_id: str
    author_name: str
    content: str

    @property
    def is_counsellor(self) -> bool:
        return self.author_id == COUNSELLOR_ID


class ConversationCreated(BaseModel):
    conversation_id: str


class GeneratedText(BaseModel):
    """Antwort von ``/generate_message`` und ``/generate_report``."""

    response: str


class ErrorEnvelope(BaseModel):
    """JSON-Körper jeder Fehlerantwort des Gateways."""

    error: str
    message: str
    details: Optional[str] = None
    stack: Optional[str] = None  # Nur in der Entwicklungsumgebung gesetzt.

    def to_content(self) -> dict:
        return self.model_dump(exclude_none=True)
