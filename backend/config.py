import os

from dotenv import load_dotenv

load_dotenv()

# OpenAI-compatible chat completions gateway
AI_GATEWAY_API_KEY = os.getenv("AI_GATEWAY_API_KEY")
AI_GATEWAY_URL = os.getenv("AI_GATEWAY_URL", "https://ai.gateway.lovable.dev/v1/chat/completions")
AI_MODEL = os.getenv("AI_MODEL", "google/gemini-3-flash-preview")

# Access tokens are issued by the auth provider and signed with its JWT secret
AUTH_JWT_SECRET = os.getenv("AUTH_JWT_SECRET")
AUTH_JWT_AUDIENCE = os.getenv("AUTH_JWT_AUDIENCE", "authenticated")
AUTH_JWT_ALGORITHM = os.getenv("AUTH_JWT_ALGORITHM", "HS256")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def gateway_configured() -> bool:
    return bool(AI_GATEWAY_API_KEY) and AI_GATEWAY_API_KEY != "your-api-key-here"
