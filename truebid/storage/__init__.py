"""Local and remote persistence tiers for proposals."""
