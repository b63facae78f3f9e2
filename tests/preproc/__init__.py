"""Tests for the preproc package."""
