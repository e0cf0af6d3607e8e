"""Core domain: exceptions and the remediation pipeline."""
