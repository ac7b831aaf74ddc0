"""Application layer - provisioning services and upstream interfaces."""
