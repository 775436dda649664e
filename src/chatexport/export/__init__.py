"""Export orchestration: scope resolution, filtering and delivery."""
