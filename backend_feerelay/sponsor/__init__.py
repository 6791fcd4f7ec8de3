"""
Sponsorship pipeline — duplicate lock, admission, co-sign + simulate, dispatch, outcome.
"""

from backend_feerelay.sponsor.pipeline import SponsorOutcome, SponsorPipeline

__all__ = ["SponsorOutcome", "SponsorPipeline"]
