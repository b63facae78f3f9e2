"""
preproc - Test Suite

Test modules are organized by package:
- tests/preproc/: Tests for config, step model, builder, fusion, executor
"""
