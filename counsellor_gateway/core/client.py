"""Python-Client für das Gateway: dieselbe Sitzungslogik wie der Web-Client
(main.js), mit injiziertem HTTP-Client und injizierter Ansicht."""
import asyncio
import logging
import random
import string
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel
from typing_extensions import Protocol

from counsellor_gateway.core.models import COUNSELLOR_ID, ConversationCreated, GeneratedText, Message

logger = logging.getLogger(__name__)

GREETING = "Hello! I'm here to listen and help. What brings you here today?"
COUNSELLOR_NAME = "Counsellor"
BANNER_TIMEOUT = 5.0

ModelT = TypeVar("ModelT", bound=BaseModel)


class GatewayError(Exception):
    """Fehlgeschlagener Gateway-Aufruf (Netzwerk oder Nicht-2xx)."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ChatView(Protocol):
    def clear(self) -> None: ...

    def add_message(self, message: Message) -> None: ...

    def show_report(self, text: str) -> None: ...

    def show_error(self, text: str) -> None: ...


class TranscriptView:
    """In-Memory-Ansicht: Transkript, Report-Bereich und Fehlerbanner.

    Banner verschwinden nach ``banner_timeout`` Sekunden von selbst,
    sofern eine Event-Loop läuft.
    """

    def __init__(self, banner_timeout: float = BANNER_TIMEOUT) -> None:
        self.banner_timeout = banner_timeout
        self.messages: List[Message] = []
        self.banners: List[str] = []
        self.report: str = ""

    def clear(self) -> None:
        self.messages = []
        self.banners = []
        self.report = ""

    def add_message(self, message: Message) -> None:
        self.messages.append(message)

    def show_report(self, text: str) -> None:
        self.report = text

    def show_error(self, text: str) -> None:
        logger.warning(text)
        self.banners.append(text)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        loop.call_later(self.banner_timeout, self._dismiss, text)

    def _dismiss(self, text: str) -> None:
        if text in self.banners:
            self.banners.remove(text)


class TerminalView(TranscriptView):
    """Gibt Nachrichten, Reports und Fehler zusätzlich auf der Konsole aus."""

    def clear(self) -> None:
        super().clear()
        print("-" * 40)

    def add_message(self, message: Message) -> None:
        super().add_message(message)
        print(f"{message.author_name}: {message.content}")

    def show_report(self, text: str) -> None:
        super().show_report(text)
        print("=== Report ===")
        print(text)

    def show_error(self, text: str) -> None:
        super().show_error(text)
        print(f"! {text}")


def random_user_id() -> str:
    alphabet = string.ascii_lowercase + string.digits
    return "user-" + "".join(random.choices(alphabet, k=9))


class ChatClient:
    """Treibt eine Sitzung gegen das Gateway: anlegen, schreiben, Antwort
    generieren, Report erzeugen, löschen."""

    def __init__(self, http: httpx.AsyncClient, view: ChatView, user_name: str = "User", user_id: Optional[str] = None) -> None:
        self.http = http
        self.view = view
        self.user_name = user_name
        self.user_id = user_id or random_user_id()
        self.conversation_id: Optional[str] = None

    async def _call(self, path: str, payload: Dict[str, Any], fallback: str, model: Optional[Type[ModelT]] = None) -> Any:
        """POST an das Gateway; Netzwerkfehler, Nicht-2xx und unerwartete
        Antwortformen werden zu ``GatewayError``."""
        try:
            response = await self.http.post(path, json=payload)
        except httpx.TransportError as exc:
            raise GatewayError(str(exc)) from exc

        if response.is_error:
            message = fallback
            try:
                message = response.json().get("message") or fallback
            except (ValueError, AttributeError):
                pass
            raise GatewayError(message, response.status_code)

        try:
            data = response.json()
            return model.model_validate(data) if model is not None else data
        except ValueError as exc:
            # pydantic.ValidationError ist ebenfalls ein ValueError.
            raise GatewayError(f"Unexpected response from {path}: {exc}", response.status_code) from exc

    async def start_session(self) -> str:
        """Neue Konversation anlegen, Ansicht leeren, Begrüßung lokal anzeigen."""
        try:
            created = await self._call(
                "/create_conversation", {"conversation_id": None}, "Failed to create conversation", ConversationCreated
            )
        except GatewayError as exc:
            self.view.show_error(f"Failed to create new session: {exc}")
            raise

        logger.info(f"Created new conversation: {created.conversation_id}")
        self.conversation_id = created.conversation_id
        self.view.clear()
        self.view.add_message(Message(author_id=COUNSELLOR_ID, author_name=COUNSELLOR_NAME, content=GREETING))
        return self.conversation_id

    async def send_message(self, text: str) -> bool:
        """Sendet ``text`` und holt danach die Counsellor-Antwort.

        Leere Eingaben werden ohne Netzwerkaufruf ignoriert (Rückgabe False).
        Die Nachricht wird sofort angezeigt und bei Fehlern nicht zurückgenommen.
        """
        content = text.strip()
        if not content:
            return False

        message = Message(author_id=self.user_id, author_name=self.user_name, content=content)
        self.view.add_message(message)
        try:
            await self._call(
                "/send_message",
                {**message.model_dump(), "conversation_id": self.conversation_id},
                "Failed to send message",
            )
        except GatewayError as exc:
            self.view.show_error(f"Failed to send message: {exc}")
            raise

        await self.generate_response()
        return True

    async def generate_response(self) -> str:
        try:
            generated = await self._call(
                "/generate_message", {"conversation_id": self.conversation_id}, "Failed to generate response", GeneratedText
            )
        except GatewayError as exc:
            self.view.show_error(f"Failed to generate counsellor response: {exc}")
            raise

        self.view.add_message(Message(author_id=COUNSELLOR_ID, author_name=COUNSELLOR_NAME, content=generated.response))
        return generated.response

    async def generate_report(self) -> str:
        try:
            report = await self._call(
                "/generate_report", {"conversation_id": self.conversation_id}, "Failed to generate report", GeneratedText
            )
        except GatewayError as exc:
            self.view.show_error(f"Failed to generate report: {exc}")
            raise

        self.view.show_report(report.response)
        return report.response

    async def end_session(self) -> None:
        """Löscht die Konversation beim Upstream und vergisst die ID."""
        if self.conversation_id is None:
            return
        try:
            await self._call("/delete_conversation", {"conversation_id": self.conversation_id}, "Failed to delete conversation")
        except GatewayError as exc:
            self.view.show_error(f"Failed to delete conversation: {exc}")
            raise
        self.conversation_id = None
