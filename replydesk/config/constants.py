"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the application,
providing a centralized location for configuration values and user-facing strings.
All strings shown to the operator are in Brazilian Portuguese.
"""

# Logger name used throughout the application
LOGGER_NAME = "replydesk"

# Default Gemini models
DEFAULT_TEXT_MODEL = "gemini-2.5-flash"
DEFAULT_LIVE_MODEL = "gemini-2.5-flash-native-audio-preview-09-2025"
LIVE_VOICE_NAME = "Zephyr"

# Audio format constants
INPUT_SAMPLE_RATE = 16000
OUTPUT_SAMPLE_RATE = 24000
CAPTURE_BLOCK_SIZE = 4096  # frames per captured block
INPUT_AUDIO_MIME_TYPE = f"audio/pcm;rate={INPUT_SAMPLE_RATE}"
PCM16_SAMPLE_WIDTH = 2  # bytes
PLAYBACK_SLICE_FRAMES = 1024  # frames per blocking write to the output stream

# Error classification
RATE_LIMIT_EXCEEDED_ERROR = "RATE_LIMIT_EXCEEDED"
RATE_LIMIT_MARKERS = ("429", "RESOURCE_EXHAUSTED")

# Keyword heuristic for appointment requests
APPOINTMENT_KEYWORDS = ("agendar", "marcar", "horário", "disponível", "atendimento")

# Timings (seconds)
MOCK_RESPONSE_DELAY = 1.0
FIRST_MESSAGE_DELAY = 1.0
MESSAGE_INTERVAL = 10.0
CALENDAR_LATENCY = 0.7
COPY_STATUS_RESET = 2.0

# Mock calendar
SLOT_LOOKAHEAD_HOURS = 7
BUSINESS_WINDOWS = ((9, 12), (14, 18))
SLOT_BUSY_PROBABILITY = 0.3

# Report values that are not tracked yet
REPORT_AVG_RESPONSE_TIME = "15min"

# System instructions
CHAT_SYSTEM_INSTRUCTION = (
    "Você é um assistente prestativo para pequenos empreendedores. Responda a perguntas "
    "sobre negócios, marketing, atendimento ao cliente e outros tópicos relevantes de "
    "forma clara e concisa em português do Brasil."
)
LIVE_SYSTEM_INSTRUCTION = (
    "Você é um assistente prestativo para pequenos empreendedores no Brasil. "
    "Responda de forma amigável, clara e concisa."
)

# Gateway fallbacks
GENERIC_APOLOGY = "Desculpe, ocorreu um erro. Por favor, tente novamente."
SUGGESTION_FALLBACK = "Desculpe, não consegui processar sua mensagem. Poderia tentar novamente?"
MOCK_APPOINTMENT_SUGGESTION = "Olá! Tenho um horário disponível para você. Podemos confirmar?"
MOCK_ACK_SUGGESTION = 'Obrigado por sua mensagem! Em breve retornaremos. Mensagem recebida: "{message}"'
MOCK_CHAT_REPLY = "Olá! Como posso ajudar você hoje?"
MOCK_COMPETITOR_NEWS = (
    "O modo de análise de concorrentes não está disponível no momento. "
    "Verifique sua chave de API."
)
SOURCES_HEADER = "\n\n---\n\n**Fontes:**\n"

# Quota notices
QUOTA_NOTICE = (
    "Você excedeu sua cota de API. Para continuar usando o assistente, "
    "por favor, configure o faturamento."
)
LIVE_QUOTA_NOTICE = (
    "Você excedeu sua cota de API para conversas em tempo real. "
    "Por favor, configure o faturamento."
)
BILLING_URL = "https://ai.google.dev/gemini-api/docs/billing"

# Suggestion errors
SUGGESTION_QUOTA_ERROR = "Erro: Cota da API excedida."
SUGGESTION_GENERIC_ERROR = "Desculpe, ocorreu um erro ao gerar a sugestão."

# Chat
CHAT_GREETING = "Olá! Sou seu assistente de IA. Como posso ajudar você a gerenciar seu negócio hoje?"
CHAT_ERROR_REPLY = "Desculpe, algo deu errado. Tente novamente."
COMPETITOR_ERROR_REPLY = "Desculpe, algo deu errado ao analisar a concorrência. Tente novamente."
COMPETITOR_REQUEST = "Pode analisar as últimas notícias dos meus concorrentes?"
COMPETITOR_QUESTION = (
    "Com certeza! Para fazer a análise, por favor, me diga qual é o seu ramo de atividade. "
    "(ex: restaurante, salão de beleza, loja de roupas)"
)

# Calendar
APPOINTMENT_ORIGINAL_MESSAGE = "Pedido de agendamento"
SLOT_OFFER_TEMPLATE = "Olá! Tenho um horário disponível para você às {time}. Podemos confirmar?"

# Live session status messages
STATUS_IDLE = "Clique no microfone para começar"
STATUS_REQUESTING_PERMISSION = "Solicitando permissão do microfone..."
STATUS_PERMISSION_DENIED = "Permissão do microfone negada."
STATUS_CONNECTING = "Conectando ao assistente..."
STATUS_CONNECTED = "Conectado. Pode falar!"
STATUS_ERROR = "Erro: {error}. Tente novamente."

# WebSocket message types for the live session
MESSAGE_TYPE_LIVE_START = "live.start"
MESSAGE_TYPE_LIVE_STOP = "live.stop"
MESSAGE_TYPE_LIVE_TOGGLE = "live.toggle"
MESSAGE_TYPE_LIVE_STATUS = "live.status"
MESSAGE_TYPE_API_ERROR = "api.error"
