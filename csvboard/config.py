"""
csvboard configuration, read once from the environment (and a local .env file).
"""

import os

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# LLM configuration - multi-key support for capacity handling
LLM_API_KEYS = [
    os.getenv("LLM_API_KEY_1", ""),
    os.getenv("LLM_API_KEY_2", ""),
    os.getenv("LLM_API_KEY_3", ""),
    os.getenv("LLM_API_KEY_4", ""),
]
LLM_API_KEYS = [k for k in LLM_API_KEYS if k]
if not LLM_API_KEYS:
    legacy_key = os.getenv("LLM_API_KEY", "") or os.getenv("GEMINI_API_KEY", "")
    if legacy_key:
        LLM_API_KEYS = [legacy_key]

# Any OpenAI-compatible chat completions endpoint; Gemini's by default
LLM_BASE_URL = os.getenv("LLM_BASE_URL", "https://generativelanguage.googleapis.com/v1beta/openai")

# Model routing, tried in this order
PRIMARY_MODEL = os.getenv("PRIMARY_MODEL", "gemini-2.0-flash")
FALLBACK_MODEL_1 = os.getenv("FALLBACK_MODEL_1", "")
FALLBACK_MODEL_2 = os.getenv("FALLBACK_MODEL_2", "")

LLM_TIMEOUT_SECONDS = int(os.getenv("LLM_TIMEOUT_SECONDS", "30"))
# Upper bound on the whole insight round trip, across keys and models
INSIGHTS_TIMEOUT_SECONDS = int(os.getenv("INSIGHTS_TIMEOUT_SECONDS", "60"))

# Analysis
MAX_CATEGORICAL_UNIQUE = int(os.getenv("MAX_CATEGORICAL_UNIQUE", "20"))
CHART_SAMPLE_ROWS = int(os.getenv("CHART_SAMPLE_ROWS", "100"))

SERVER_HOST = os.getenv("SERVER_HOST", "127.0.0.1")
SERVER_PORT = int(os.getenv("SERVER_PORT", "8891"))
