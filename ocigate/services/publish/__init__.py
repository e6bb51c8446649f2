"""Tag/push policy and registry pushes."""
