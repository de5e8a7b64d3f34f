"""Gig Market Service - Gig postings, freelancer bids, and atomic hiring."""

__version__ = "0.1.0"
