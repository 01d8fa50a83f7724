import logging
import time
from typing import Callable, Optional
from ..connectors.factory import create_backend
from ..deadline import Deadline
from ..domain.interfaces import DatabaseBackend
from ..domain.models import Outcome, OutcomeKind, Target
from ..exceptions import CheckError
from ..trust.policy import TrustPolicyBuilder
from ..vault.cipher import decrypt_from_text

logger = logging.getLogger(__name__)


class ConnectionChecker:
    """
    SRP: Responsible only for one target's attempt.

    decrypt -> trust policy -> backend -> connect -> probe -> verify (if a
    query is declared) -> release. The first failing step decides the
    outcome; release runs on every path once a backend exists.
    """
    def __init__(
        self,
        key: bytes,
        timeout_seconds: Optional[float] = None,
        trust_builder: Optional[TrustPolicyBuilder] = None,
        backend_factory: Callable[[str], DatabaseBackend] = create_backend,
    ):
        self._key = key
        self.timeout_seconds = timeout_seconds
        self.trust_builder = trust_builder or TrustPolicyBuilder()
        self.backend_factory = backend_factory

    def check(self, target: Target) -> Outcome:
        deadline = Deadline(self.timeout_seconds)
        start_time = time.monotonic()
        backend = None
        kind = OutcomeKind.SUCCESS
        cause = None
        release_error = None
        # outcome kind charged for an unexpected (non-CheckError) failure
        step = OutcomeKind.CONNECT_FAILED

        try:
            # Targets without a stored password (e.g. sqlite) connect without one
            secret = decrypt_from_text(target.password, self._key) if target.password else ""
            policy = self.trust_builder.build(
                target.tls_mode,
                target.host,
                root_cert_path=target.root_cert_path,
                client_cert_path=target.client_cert_path,
                client_key_path=target.client_key_path,
                wallet_path=target.wallet_path,
                kind=target.type,
            )
            backend = self.backend_factory(target.type)

            logger.debug("%s: connecting (tls_mode=%s)", target.id, policy.mode.value)
            try:
                backend.connect(target, secret, policy, deadline)
            finally:
                secret = None

            step = OutcomeKind.PROBE_FAILED
            backend.probe(deadline)

            if target.health_query:
                step = OutcomeKind.HEALTH_CHECK_FAILED
                backend.verify(target.health_query, deadline)
            else:
                logger.debug("%s: no health query declared, skipping", target.id)
        except CheckError as e:
            kind = e.outcome_kind
            cause = str(e)
        except Exception as e:
            logger.exception("%s: unexpected error, reported as %s", target.id, step.value)
            kind = step
            cause = f"Unexpected error: {type(e).__name__}: {e}"
        finally:
            if backend is not None:
                err = backend.release()
                if err is not None:
                    release_error = f"{type(err).__name__}: {err}"

        latency = (time.monotonic() - start_time) * 1000  # ms

        if kind == OutcomeKind.SUCCESS:
            logger.info("%s: check succeeded in %.1fms", target.id, latency)
        else:
            logger.info("%s: %s: %s", target.id, kind.value, cause)

        return Outcome(
            target_id=target.id,
            kind=kind,
            cause=cause,
            latency_ms=round(latency, 2),
            release_error=release_error,
        )
