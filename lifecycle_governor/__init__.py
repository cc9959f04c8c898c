"""Resource Lifecycle Governor - idle/expiry detection, owner warnings and policy-gated deletion."""

__version__ = "0.1.0"
