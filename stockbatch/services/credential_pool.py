"""Credential pool with round-robin rotation and per-key cooldown."""

import logging
import time
from typing import Callable, Iterable, List, Optional

from stockbatch.models.credential import Credential
from stockbatch.utils.errors import NoCredentialsError

logger = logging.getLogger(__name__)


class CredentialPool:
    """Hands out API keys fairly and tracks which are busy or cooling down.

    Acquisition and release are plain synchronous calls. On a single event
    loop they can never interleave, so a key is never handed to two workers.
    """

    def __init__(
        self,
        tokens: Iterable[str],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the CredentialPool.

        Args:
            tokens: API keys for the active provider, in display order
            clock: Monotonic clock in seconds (injectable for tests)

        Raises:
            NoCredentialsError: If no usable key is given
        """
        unique: List[str] = []
        for token in tokens:
            token = token.strip() if token else ""
            if token and token not in unique:
                unique.append(token)
        if not unique:
            raise NoCredentialsError()

        self._credentials = [
            Credential(token=token, index=i + 1) for i, token in enumerate(unique)
        ]
        self._clock = clock
        self.cursor = 0

    def __len__(self) -> int:
        return len(self._credentials)

    @property
    def credentials(self) -> List[Credential]:
        return list(self._credentials)

    def _purge_expired(self, now: float) -> None:
        for credential in self._credentials:
            if credential.cooldown_until is not None and credential.cooldown_until <= now:
                credential.cooldown_until = None
                logger.debug(f"Key {credential.index} cooldown expired")

    def acquire(self) -> Optional[Credential]:
        """
        Take the next eligible key, scanning round-robin from the cursor.

        Returns:
            The acquired Credential (now marked in use), or None if every key
            is busy or cooling down
        """
        now = self._clock()
        self._purge_expired(now)

        total = len(self._credentials)
        for offset in range(total):
            idx = (self.cursor + offset) % total
            candidate = self._credentials[idx]
            if candidate.is_eligible(now):
                candidate.in_use = True
                self.cursor = (idx + 1) % total
                return candidate
        return None

    def release(self, credential: Credential) -> None:
        """Return a key after success or a permanent failure."""
        credential.in_use = False

    def cool_down(self, credential: Credential, duration: float) -> None:
        """Return a key and suspend it for ``duration`` seconds."""
        credential.in_use = False
        credential.cooldown_until = self._clock() + duration
        logger.info(f"Key {credential.index} limited, cooling down for {duration:g}s")

    def in_use_count(self) -> int:
        return sum(1 for c in self._credentials if c.in_use)

    def available_count(self) -> int:
        now = self._clock()
        return sum(1 for c in self._credentials if c.is_eligible(now))

    def cooling(self) -> List[int]:
        """Indexes of keys still under cooldown."""
        now = self._clock()
        return [c.index for c in self._credentials if c.is_cooling(now)]
