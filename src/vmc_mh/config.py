"""JAX and logging configuration module.

This module must be imported before any other JAX imports to ensure
64-bit precision is enabled throughout the codebase.
"""
from __future__ import annotations

import logging
import os

from jax import config

# Enable 64-bit precision for JAX
config.update("jax_enable_x64", True)

_cache_dir = os.environ.get("VMC_MH_JAX_CACHE_DIR")
if _cache_dir:
    config.update("jax_compilation_cache_dir", os.path.expanduser(_cache_dir))
    config.update("jax_persistent_cache_min_compile_time_secs", 0)
    config.update("jax_persistent_cache_min_entry_size_bytes", -1)


def setup_logging() -> None:
    """Configure logging based on environment variables.

    Control log level via VMC_MH_LOG_LEVEL environment variable.

    Examples:
        # Default (WARNING level)
        python examples/ising_chain.py

        # Info mode - sampling progress and acceptance rates
        VMC_MH_LOG_LEVEL=INFO python examples/ising_chain.py

        # Debug mode - per-reset and per-batch details
        VMC_MH_LOG_LEVEL=DEBUG python examples/ising_chain.py
    """
    level_name = os.environ.get("VMC_MH_LOG_LEVEL", "WARNING").upper()
    level = getattr(logging, level_name, logging.WARNING)

    logging.basicConfig(
        level=level,
        format="%(name)s - %(levelname)s - %(message)s",
    )


# Configure logging on import
setup_logging()
