#!/usr/bin/env python3
"""
Collateral engine
Entry point for ``python -m cdp_engine.main``
"""
from .cli import main

if __name__ == "__main__":
    main()
