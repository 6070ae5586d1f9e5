import hashlib
import re

_SAFE_ID = re.compile(r"^[A-Za-z0-9_.@-]+$")
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.@-]")


def profile_key(user_id: str) -> str:
    """Derive a stable, filesystem-safe key from an opaque user id.

    Ids made only of safe characters are used verbatim. Anything else is
    sanitised and joined to a short content hash with "+", which never occurs
    in a verbatim key, so distinct ids never share a record.
    """
    if user_id and _SAFE_ID.match(user_id) and not user_id.startswith("."):
        return user_id

    digest = hashlib.sha256(user_id.encode("utf-8")).hexdigest()[:12]
    slug = _UNSAFE_CHARS.sub("_", user_id).lstrip(".")[:64]
    return f"{slug}+{digest}" if slug else f"+{digest}"


def redact_user_id(user_id: str | None) -> str:
    """
    Redact a user id for logging purposes.
    Shows the first 6 characters followed by ***.
    """
    if not user_id:
        return "None"
    if len(user_id) <= 6:
        return user_id
    return f"{user_id[:6]}***"
