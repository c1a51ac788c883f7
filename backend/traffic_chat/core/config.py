from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "Traffic AI Chat"
    debug: bool = False

    # Paths
    db_path: Path = Path(__file__).resolve().parent.parent.parent / "chat.db"
    widget_state_path: Path = Path(__file__).resolve().parent.parent.parent / "widget_state.json"

    # Chat widget
    bot_name: str = "Traffic AI"
    chat_greeting: str = "Hi there! How can we help you today?"
    default_acknowledgment: str = "Thanks for reaching out! Our team will get back to you shortly."
    poll_interval_seconds: float = 15.0
    unread_badge_cap: int = 9

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = ["*"]

    model_config = {
        "env_file": str(Path(__file__).resolve().parent.parent.parent / ".env"),
        "env_prefix": "TRAFFIC_CHAT_",
    }


settings = Settings()
