"""Configuration package."""

from l2a_ondemand.infrastructure.config.loader import AdmissionBound, ConfigLoader, TransformerConfig

__all__ = ["AdmissionBound", "ConfigLoader", "TransformerConfig"]
