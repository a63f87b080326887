import logging
import random
import secrets
from enum import IntEnum

logger = logging.getLogger(__name__)


class Engine(IntEnum):
    NATIVE = 0
    CRYPTO = 1
    MT19937 = 2


ENGINE_TITLES = {
    Engine.NATIVE: "Native",
    Engine.CRYPTO: "OS Crypto",
    Engine.MT19937: "MT19937 (auto seed)",
}


class RandomSelector:
    """Uniform integer source backed by a selectable generator family.

    ``NATIVE`` shares the interpreter-wide generator, ``CRYPTO`` draws from
    OS entropy and ``MT19937`` owns a private Mersenne Twister that is seeded
    from OS entropy unless a seed is given.
    """

    def __init__(self, engine: Engine = Engine.MT19937, seed: int | None = None) -> None:
        self.engine = Engine(engine)

        if self.engine is Engine.NATIVE:
            self._rng = random
        elif self.engine is Engine.CRYPTO:
            self._rng = secrets.SystemRandom()
        else:
            self._rng = random.Random(seed if seed is not None else secrets.randbits(64))

        logger.info("Random engine: %s", self.engine.name.lower())

    def integer(self, low: int, high: int) -> int:
        """Return a uniformly distributed integer in ``[low, high]``."""
        if low > high:
            raise ValueError(f"Empty range [{low}, {high}]")
        return self._rng.randint(low, high)
