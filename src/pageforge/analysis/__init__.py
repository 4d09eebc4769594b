"""Page analysis: worker pool, default inspector and the classifier."""
