import typing as t
import os
from pathlib import Path
from dotenv import load_dotenv
from breachwatch.utils.str import parse_env_var_to_list, parse_env_var_to_bool

ROOT_DIR = Path(__file__).resolve().parents[2]
TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates"

load_dotenv(dotenv_path=ROOT_DIR / ".env")

class EnvHandler:
    def __init__(self):
        """Add new variables below"""
        self.state = {
            "app_env": self.get("APP_ENV", "development"),
            "base_url": self.get("BASE_URL", "http://localhost:6060").rstrip("/"),
            "sender": self.get("SENDER_EMAIL"),
            "sender_name": self.get("SENDER_NAME", "Breach Watch"),
            "client_local": self.get("CLIENT_URL_LOCAL", "http://localhost:6060"),
            "client_prod": self.get("CLIENT_URL_PROD", "http://localhost:6060"),
            "log_level": self.get("LOG_LEVEL", "INFO").upper(),
        }
        self.mongo = {
            "uri": self.get("MONGO_URI"),
            "db": self.get("DATABASE_NAME", "breachwatch"),
        }
        self.mailjet = {
            "api_key": self.get("MAILJET_API_KEY"),
            "secret_key": self.get("MAILJET_SECRET_KEY"),
        }
        self.fxa = {
            "token_uri": self.get("OAUTH_TOKEN_URI", "https://oauth.accounts.firefox.com/v1/token"),
            "client_id": self.get("OAUTH_CLIENT_ID"),
            "client_secret": self.get("OAUTH_CLIENT_SECRET"),
            "timeout": self.get("OAUTH_TIMEOUT", "5", cast=float),
        }
        self.hibp = {
            "api_root": self.get("HIBP_API_ROOT", "https://haveibeenpwned.com/api/v3").rstrip("/"),
            "kanon_api_root": self.get("HIBP_KANON_API_ROOT", "https://api.haveibeenpwned.com/v3").rstrip("/"),
            "kanon_api_token": self.get("HIBP_KANON_API_TOKEN"),
            "user_agent": self.get("HIBP_USER_AGENT", "breachwatch"),
            "timeout": self.get("HIBP_TIMEOUT", "5", cast=float),
        }
        self.auth = {
            "allow_headers": parse_env_var_to_list(self.get("ALLOW_HEADERS", "Content-Type|Accept-Language")),
        }
        self.limits = {
            "enabled": self.get("RATE_LIMIT_ENABLED", "true", cast=parse_env_var_to_bool),
        }

    def get(self, key: str, default: t.Union[t.Any, None] = None, cast: t.Union[t.Callable, None] = None) -> t.Any:
        """
        Fetch an environment variable with optional casting and default fallback.
        - (key) Name of the environment variable.
        - (default) Default value if the variable is not found.
        - `cast`: Callable to cast the value into (e.g., int, float, bool parser).
        - `returns`: The value of the environment variable.
        - `raises`: `KeyError` if the variable is not found and no default is provided.
        """
        value = os.getenv(key, default)
        if value is None:
            raise KeyError(f"Missing required environment variable: {key}")
        if cast:
            try:
                value = cast(value)
            except ValueError as e:
                raise ValueError(f"Error casting environment variable {key} to {cast}: {e}")

        return value

env = EnvHandler()
