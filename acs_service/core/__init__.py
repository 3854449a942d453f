"""Core building blocks: settings, exceptions, database helpers, shared schemas."""
