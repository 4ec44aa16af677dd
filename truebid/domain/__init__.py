"""Proposal data model and extraction normalization."""
