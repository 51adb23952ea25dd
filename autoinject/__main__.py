#!/usr/bin/env python3
"""
Main entry point for running the injector CLI as a module.

Usage:
    python3 -m autoinject inject deploy.yaml -i instrumentation.yaml
    python3 -m autoinject runtimes
    python3 -m autoinject target-hash --job node --url 10.0.0.1:9100
"""

from .cli import main

if __name__ == "__main__":
    main()
