"""Build pipeline: layout, state, compile stage and the end-to-end run."""
