import hashlib
import hmac
import time
from typing import Callable

from config import settings
from exceptions import InvalidNonceError


class NonceSigner:
    """
    Issues and checks anti-forgery tokens for the license form.

    A token is ``<issued-at>.<hmac>`` where the HMAC covers the action
    name and the timestamp, so a token for one form cannot be replayed
    on another and stops working after ``lifetime`` seconds.
    """

    def __init__(
        self,
        secret_key: str = None,
        lifetime: int = None,
        clock: Callable[[], float] = time.time,
    ):
        self.secret_key = (secret_key or settings.SECRET_KEY).encode()
        self.lifetime = lifetime if lifetime is not None else settings.NONCE_LIFETIME_SECONDS
        self.clock = clock

    def _sign(self, action: str, issued_at: int) -> str:
        payload = f"{action}|{issued_at}".encode()
        return hmac.new(self.secret_key, payload, hashlib.sha256).hexdigest()

    def create(self, action: str) -> str:
        issued_at = int(self.clock())
        return f"{issued_at}.{self._sign(action, issued_at)}"

    def verify(self, action: str, token: str) -> bool:
        if not token or "." not in token:
            return False

        issued_at, signature = token.split(".", 1)
        try:
            issued_at = int(issued_at)
        except ValueError:
            return False

        age = int(self.clock()) - issued_at
        if age < 0 or age > self.lifetime:
            return False

        return hmac.compare_digest(signature, self._sign(action, issued_at))

    def check(self, action: str, token: str):
        if not self.verify(action, token):
            raise InvalidNonceError()
