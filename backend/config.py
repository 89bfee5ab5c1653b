"""Configuration management for the AI-kun Fudosan LINE bot."""
import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# LINE Messaging API
LINE_CHANNEL_ACCESS_TOKEN = os.getenv("LINE_CHANNEL_ACCESS_TOKEN")
LINE_CHANNEL_SECRET = os.getenv("LINE_CHANNEL_SECRET")
LINE_API_BASE = os.getenv("LINE_API_BASE", "https://api.line.me")

# Completion API
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
LLM_MODEL = os.getenv("LLM_MODEL", "llama-3.3-70b-versatile")
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.7"))
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "800"))

# Persistence (service-role key, the table is written server-side only)
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")
SUPABASE_TABLE = os.getenv("SUPABASE_TABLE", "fudosan_logs")

# Conversation Configuration
HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", "10"))
SYSTEM_PROMPT_FILE = os.getenv("SYSTEM_PROMPT_FILE")
FALLBACK_MESSAGE = os.getenv("FALLBACK_MESSAGE")

# Server Configuration
SERVICE_NAME = os.getenv("SERVICE_NAME", "AI-Kun Fudosan")
PORT = int(os.getenv("PORT", "10000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")

# Logging Configuration
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
