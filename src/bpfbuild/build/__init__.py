"""BPF build pipeline: flag resolution, compilation, linking and orchestration."""
