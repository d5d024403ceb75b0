"""
Mapper Module Entry Point

Allows execution via: python -m apps.mapper

Delegates to the consumer for all execution modes (continuous and RUN_ONCE).
"""

import asyncio

from apps.mapper.consumer import main

if __name__ == "__main__":
    asyncio.run(main())
