"""Application layer - services orchestrating domain logic."""
