"""Tests for bento_cbor."""
