from .policy import KIND_TRUST_OVERRIDES, KindTrustRules, TrustPolicyBuilder, parse_trust_mode

__all__ = ["KIND_TRUST_OVERRIDES", "KindTrustRules", "TrustPolicyBuilder", "parse_trust_mode"]
