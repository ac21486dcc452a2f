import logging
from concurrent import futures
from typing import Callable, Dict, Iterable, Tuple

logger = logging.getLogger(__name__)

Verifier = Callable[[bytes, bytes, bytes], bool]
SignatureCheck = Tuple[bytes, bytes, bytes]  # (owner key, message, signature)


class SignatureCache:
    """
    Memoizing wrapper around a signature oracle, shared by every validation
    of one batch.
    """

    def __init__(self, verify: Verifier):
        self.verify = verify
        self.results: Dict[SignatureCheck, bool] = {}

    def __call__(self, public_key: bytes, message: bytes, signature: bytes) -> bool:
        key = (public_key, message, signature)
        if key not in self.results:
            self.results[key] = bool(self.verify(public_key, message, signature))
        return self.results[key]

    def prefetch(self, checks: Iterable[SignatureCheck], workers: int = 1) -> int:
        """Verify all checks up front, in a thread pool when workers > 1."""
        pending = list(dict.fromkeys(c for c in checks if c not in self.results))
        if not pending:
            return 0
        if workers <= 1:
            for check in pending:
                self(*check)
            return len(pending)

        with futures.ThreadPoolExecutor(max_workers=workers) as executor:
            outcomes = executor.map(lambda c: bool(self.verify(*c)), pending)
            for check, ok in zip(pending, outcomes):
                self.results[check] = ok
        logger.debug(f"Prefetched {len(pending)} signature checks with {workers} workers")
        return len(pending)
