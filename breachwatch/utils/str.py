import hashlib
import random
import uuid

rate_limit_warnings = [
    "Whoa there, speedster! Take a break and try again in a bit.",
    "You've reached the top of the speedometer. Slow down and refresh later!",
    "Easy, tiger! You're clicking faster than we can handle.",
    "Relax, Neo. You've overloaded the Matrix. Try again later.",
    "Even The Flash needs a breather. Cool your jets, superhero!",
    "HTTP 429: Too Many Requests. The database is crying in a corner right now.",
    "Oops, you've hit the request ceiling. Grab a snack and come back!",
    "Breathe in, breathe out. And… refresh after a moment.",
]

def get_random_rate_limit_warning(warnings = rate_limit_warnings):
    return random.choice(warnings)

def parse_env_var_to_list(env_var: str, separator: str = "|") -> list[str]:
    """Parse a pipe-separated string from an environment variable into a list of strings."""
    if not env_var:
        return []
    return [item.strip() for item in env_var.split(separator) if item.strip()]

def parse_env_var_to_bool(env_var: str) -> bool:
    """Parse truthy strings ("1", "true", "yes", "on") from an environment variable."""
    value = str(env_var).strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"not a boolean: {env_var!r}")

def get_sha1(value: str) -> str:
    """Uppercase hex SHA-1 of the lowercased value, the form HIBP and unsubscribe links use."""
    return hashlib.sha1(value.lower().encode("utf-8")).hexdigest().upper()

def random_token() -> str:
    return str(uuid.uuid4())
