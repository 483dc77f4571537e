"""Application services: tokens and outgoing mail."""
