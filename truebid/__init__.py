"""Proposal pricing and persistence core."""
