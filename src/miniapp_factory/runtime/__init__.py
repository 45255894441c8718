"""Session orchestration and the transform pipeline."""
