"""Service interfaces and their Kubernetes implementations."""
