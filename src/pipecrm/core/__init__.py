"""Core pipecrm logic: accounts, persistence, sync and configuration."""
