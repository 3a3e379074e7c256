"""Compliance validator: Swiss KVG rules for switch requests."""

from src.compliance.validator import ComplianceReport, validate_switch_request

__all__ = ["ComplianceReport", "validate_switch_request"]
