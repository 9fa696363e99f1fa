"""LLMO Checker: AI-readability diagnosis service."""
