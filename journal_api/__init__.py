"""AI journaling backend: authenticated, quota-gated Claude insights and summaries."""
