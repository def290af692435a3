import hashlib
import hmac
import time

from relay.errors import Expired, InvalidSignature


class LinkSigner:
    def __init__(self, secret_key: str | bytes):
        if isinstance(secret_key, str):
            secret_key = secret_key.encode("utf-8")
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self._secret_key = bytes(secret_key)

    def _message(self, *, object_id: str, expires_at: int) -> bytes:
        return f"{object_id}|{int(expires_at)}".encode("utf-8")

    def sign(self, *, object_id: str, expires_at: int) -> str:
        msg = self._message(object_id=object_id, expires_at=expires_at)
        return hmac.new(self._secret_key, msg, hashlib.sha256).hexdigest()

    def verify(self, *, object_id: str, expires_at: int, signature: str, now: float | None = None) -> None:
        """Raise ``InvalidSignature`` or ``Expired`` unless the link is currently valid.

        The signature is checked before the expiry so a forged link learns
        nothing about the window it claims.
        """
        expected = self.sign(object_id=object_id, expires_at=expires_at)
        if not hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8")):
            raise InvalidSignature("invalid signature")
        if now is None:
            now = time.time()
        if expires_at <= now:
            raise Expired("link expired")
