"""
bento_cbor.cli — command-line front end for the CBOR processor.

    bento-cbor to-json  [FILE]        CBOR → JSON
    bento-cbor from-json [FILE]       JSON → CBOR
    bento-cbor run --config FILE      apply a pipeline file's cbor processors
    bento-cbor presets                print the built-in codec presets
    bento-cbor version
"""

from .main import app, main

__all__ = ["app", "main"]
