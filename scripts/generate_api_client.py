#!/usr/bin/env python3
"""Regenerate the Python API client from the model reference service's OpenAPI schema.

Equivalent to the `generate-api-client` entry point; see `horde_model_reference_console.codegen`.

Usage:
    python scripts/generate_api_client.py [--url URL | --local] [--force]
"""

import sys

from horde_model_reference_console.codegen import main

if __name__ == "__main__":
    sys.exit(main())
