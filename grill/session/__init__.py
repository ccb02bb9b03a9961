"""Session layer: input classification, commands, tasks and orchestration."""
