"""Static export orchestration."""
