"""
AI gateway for the messaging assistant, backed by the Google Gemini API.

This module wraps every call the application makes to Gemini:
- structured reply suggestions for inbound customer messages
- a multi-turn text chat held in an explicit ChatSession object
- a web-grounded (Google Search) competitor news lookup
- the realtime audio channel used by the live voice session

Error policy: quota failures are re-raised as QuotaExceededError so the caller can
show the billing notice. Every other failure is logged and degraded to a canned
answer (an apology, or the keyword heuristic for suggestions).
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, Optional

from google import genai
from google.genai import types
from pydantic import ValidationError

from replydesk.bot.events import LiveEvent
from replydesk.bot.gemini_live import GeminiLiveChannel
from replydesk.config.constants import (
    APPOINTMENT_KEYWORDS,
    CHAT_SYSTEM_INSTRUCTION,
    DEFAULT_LIVE_MODEL,
    DEFAULT_TEXT_MODEL,
    GENERIC_APOLOGY,
    LIVE_SYSTEM_INSTRUCTION,
    LIVE_VOICE_NAME,
    LOGGER_NAME,
    MOCK_ACK_SUGGESTION,
    MOCK_APPOINTMENT_SUGGESTION,
    MOCK_CHAT_REPLY,
    MOCK_COMPETITOR_NEWS,
    MOCK_RESPONSE_DELAY,
    SOURCES_HEADER,
    SUGGESTION_FALLBACK,
)
from replydesk.models.schemas import AnalysisResult
from replydesk.services.errors import QuotaExceededError, is_quota_error

logger = logging.getLogger(LOGGER_NAME)

SUGGESTION_RESPONSE_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "suggestion": types.Schema(
            type=types.Type.STRING,
            description=AnalysisResult.model_fields["suggestion"].description,
        ),
        "isAppointment": types.Schema(
            type=types.Type.BOOLEAN,
            description=AnalysisResult.model_fields["isAppointment"].description,
        ),
    },
    required=["suggestion", "isAppointment"],
)


def looks_like_appointment(message: str) -> bool:
    """Keyword heuristic used whenever the model cannot classify a message."""
    lowered = message.lower()
    return any(keyword in lowered for keyword in APPOINTMENT_KEYWORDS)


def build_analysis_prompt(message: str, custom_responses: List[str]) -> str:
    custom_responses_text = ""
    if custom_responses:
        bullets = "\n".join(f"- {r}" for r in custom_responses)
        custom_responses_text = (
            f"Considere estas respostas personalizadas como base, se aplicável: \n{bullets}"
        )

    return f"""
      Analise a seguinte mensagem de um cliente para um pequeno negócio.
      Gere uma resposta curta, amigável e profissional para a mensagem, em português do Brasil.
      Determine também se a mensagem é um pedido para marcar ou agendar um horário.

      Mensagem do Cliente: "{message}"

      {custom_responses_text}
    """


def build_competitor_prompt(business_type: str) -> str:
    return f"""
      Atue como um analista de negócios para um pequeno empreendedor no Brasil.
      Pesquise na web usando o Google Search por 3 a 5 notícias ou atualizações recentes e relevantes sobre concorrentes na área de "{business_type}".
      Para cada notícia encontrada, forneça:
      1. O nome do concorrente.
      2. Um resumo claro da notícia.
      3. Uma sugestão de "plano de ação" que o pequeno empreendedor pode tomar com base nessa informação.

      Formate a resposta final de forma clara e organizada usando markdown (títulos, listas, negrito).
      Liste todas as fontes consultadas no final.
    """


def unique_sources(uris: Iterable[Optional[str]]) -> List[str]:
    """Drop empty and repeated URIs, keeping the order of first appearance."""
    seen = []
    for uri in uris:
        if uri and uri not in seen:
            seen.append(uri)
    return seen


def append_sources(text: str, uris: Iterable[Optional[str]]) -> str:
    """Append a markdown source list to a grounded answer."""
    sources = unique_sources(uris)
    if not sources:
        return text
    lines = "".join(f"- {uri}\n" for uri in sources)
    return f"{text}{SOURCES_HEADER}{lines}"


def grounding_uris(response) -> List[Optional[str]]:
    """Extract web source URIs from the first candidate's grounding metadata."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    metadata = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None) or []
    return [getattr(getattr(chunk, "web", None), "uri", None) for chunk in chunks]


def handle_error(error: Exception, context: str) -> str:
    """
    Apply the gateway error policy.

    Raises:
        QuotaExceededError: when the error is a rate/quota failure

    Returns:
        The generic apology for every other failure
    """
    logger.error(f"Error in {context}: {error}", exc_info=True)
    if is_quota_error(error):
        raise QuotaExceededError() from error
    return GENERIC_APOLOGY


class ChatSession:
    """
    Multi-turn conversation with the assistant persona.

    The underlying Gemini chat is created lazily and discarded whenever a call
    fails, so the next message starts a fresh conversation.
    """

    def __init__(self, service: "GeminiService"):
        self.service = service
        self._chat = None

    @property
    def is_started(self) -> bool:
        return self._chat is not None

    def _get_chat(self):
        if self._chat is None:
            self._chat = self.service.client.aio.chats.create(
                model=self.service.model,
                config=types.GenerateContentConfig(
                    system_instruction=CHAT_SYSTEM_INSTRUCTION,
                ),
            )
        return self._chat

    def reset(self) -> None:
        """Forget the conversation so far."""
        self._chat = None

    async def send_message(self, text: str) -> str:
        """
        Send a user message and return the model's reply.

        Raises:
            QuotaExceededError: when the backend rejects the call for quota reasons
        """
        if not self.service.available:
            await asyncio.sleep(self.service.mock_delay)
            return MOCK_CHAT_REPLY

        try:
            response = await self._get_chat().send_message(text)
            return (response.text or "").strip()
        except Exception as e:
            self.reset()
            return handle_error(e, "send_message")


class GeminiService:
    """
    Request/response wrapper around the Gemini API.

    When no API key is configured the service runs in mock mode: every call waits
    a short simulated delay and returns a canned answer.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_TEXT_MODEL,
        live_model: str = DEFAULT_LIVE_MODEL,
        mock_delay: float = MOCK_RESPONSE_DELAY,
        client=None,
    ):
        """
        Initialize the gateway.

        Args:
            api_key: Gemini API key; None enables mock mode
            model: Model used for text generation and chat
            live_model: Model used for the realtime audio channel
            mock_delay: Simulated latency of mock answers in seconds
            client: Pre-built genai client (mainly for tests)
        """
        self.model = model
        self.live_model = live_model
        self.mock_delay = mock_delay
        self.client = client
        if self.client is None and api_key:
            self.client = genai.Client(api_key=api_key)
        if self.client is None:
            logger.warning("GEMINI_API_KEY not set. Using mock responses.")
        else:
            logger.info(f"GeminiService initialized with model: {model}")

    @property
    def available(self) -> bool:
        return self.client is not None

    async def analyze_message(self, message: str, custom_responses: List[str]) -> AnalysisResult:
        """
        Draft a reply for a customer message and flag appointment requests.

        Args:
            message: Customer message text
            custom_responses: Operator's quick responses used as reference replies

        Returns:
            AnalysisResult with the suggestion and the appointment flag

        Raises:
            QuotaExceededError: when the backend rejects the call for quota reasons
        """
        if not self.available:
            await asyncio.sleep(self.mock_delay)
            is_appointment = looks_like_appointment(message)
            suggestion = (
                MOCK_APPOINTMENT_SUGGESTION
                if is_appointment
                else MOCK_ACK_SUGGESTION.format(message=message)
            )
            return AnalysisResult(suggestion=suggestion, isAppointment=is_appointment)

        prompt = build_analysis_prompt(message, custom_responses)
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=SUGGESTION_RESPONSE_SCHEMA,
                ),
            )
            return AnalysisResult.model_validate_json(response.text or "")
        except ValidationError as e:
            logger.error(f"Malformed suggestion from model: {e}")
        except Exception as e:
            logger.error(f"Error in analyze_message: {e}", exc_info=True)
            if is_quota_error(e):
                raise QuotaExceededError() from e

        return AnalysisResult(
            suggestion=SUGGESTION_FALLBACK,
            isAppointment=looks_like_appointment(message),
        )

    def new_chat_session(self) -> ChatSession:
        return ChatSession(self)

    async def get_competitor_news(self, business_type: str) -> str:
        """
        Search the web for recent competitor news in a line of business.

        Returns:
            Markdown text followed by the list of consulted sources

        Raises:
            QuotaExceededError: when the backend rejects the call for quota reasons
        """
        if not self.available:
            await asyncio.sleep(self.mock_delay)
            return MOCK_COMPETITOR_NEWS

        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=build_competitor_prompt(business_type),
                config=types.GenerateContentConfig(
                    tools=[types.Tool(google_search=types.GoogleSearch())],
                ),
            )
            text = (response.text or "").strip()
            return append_sources(text, grounding_uris(response))
        except Exception as e:
            return handle_error(e, "get_competitor_news")

    def live_config(self) -> types.LiveConnectConfig:
        """Build the realtime session configuration."""
        return types.LiveConnectConfig(
            response_modalities=[types.Modality.AUDIO],
            speech_config=types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=LIVE_VOICE_NAME)
                )
            ),
            input_audio_transcription=types.AudioTranscriptionConfig(),
            output_audio_transcription=types.AudioTranscriptionConfig(),
            system_instruction=types.Content(parts=[types.Part(text=LIVE_SYSTEM_INSTRUCTION)]),
        )

    async def connect_live_session(
        self, on_event: Callable[[LiveEvent], Awaitable[None]]
    ) -> GeminiLiveChannel:
        """
        Open the realtime audio channel.

        Args:
            on_event: Coroutine called with every LiveEvent, in arrival order

        Returns:
            The open channel

        Raises:
            RuntimeError: when no API key is configured
        """
        if not self.available:
            raise RuntimeError("Live conversation requires GEMINI_API_KEY")

        channel = GeminiLiveChannel(self.client, self.live_model, self.live_config(), on_event)
        await channel.open()
        return channel
