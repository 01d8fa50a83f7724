from .domain.models import OutcomeKind


class DbDiagException(Exception):
    """Base Exception Class"""
    pass


class ConfigurationError(DbDiagException):
    """Configuration Error"""
    pass


class StartupPreconditionError(DbDiagException):
    """Missing/invalid key or unreadable config. Aborts the whole run."""
    pass


class CheckError(DbDiagException):
    """
    Failure scoped to a single target.
    The orchestrator turns these into an Outcome instead of aborting the batch.
    """
    outcome_kind: OutcomeKind = OutcomeKind.CONNECT_FAILED


class DecryptionError(CheckError):
    """Stored secret could not be recovered"""
    outcome_kind = OutcomeKind.DECRYPTION_FAILED


class InvalidTrustMaterialError(CheckError):
    """Certificate, key or wallet material is missing, unreadable or inconsistent"""
    outcome_kind = OutcomeKind.INVALID_TRUST_MATERIAL


class UnsupportedTrustModeError(CheckError):
    outcome_kind = OutcomeKind.UNSUPPORTED_TRUST_MODE


class UnsupportedKindError(CheckError):
    outcome_kind = OutcomeKind.UNSUPPORTED_KIND


class ConnectError(CheckError):
    """Connection Failure"""
    outcome_kind = OutcomeKind.CONNECT_FAILED


class ProbeError(CheckError):
    """Liveness ping failed"""
    outcome_kind = OutcomeKind.PROBE_FAILED


class HealthCheckError(CheckError):
    """Health query failed"""
    outcome_kind = OutcomeKind.HEALTH_CHECK_FAILED
