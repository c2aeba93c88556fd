import os

from ..database import get_env_int_setting


class AuthConfig:
    def __init__(self):
        self.token_secret = os.getenv("AUTH_TOKEN_SECRET", "")
        self.token_ttl_s = get_env_int_setting("AUTH_TOKEN_TTL_S", 3600)
        self.leeway_s = get_env_int_setting("AUTH_TOKEN_LEEWAY_S", 0)

        if not self.token_secret:
            raise RuntimeError(
                "AUTH_TOKEN_SECRET is not set; refusing to start without a token signing key"
            )

        if self.token_ttl_s <= 0:
            raise RuntimeError(f"AUTH_TOKEN_TTL_S must be positive, got {self.token_ttl_s}")
