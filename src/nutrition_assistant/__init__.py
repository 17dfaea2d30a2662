"""Multi-strategy response engine for a nutrition-advice assistant."""
