"""LegalEase: conversational legal-incident intake service."""
