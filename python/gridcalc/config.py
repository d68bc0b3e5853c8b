"""Configuration management for gridcalc."""

import os

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


class Settings(BaseModel):
    """Engine settings."""

    # Termination bounds - exceeding either yields #ERROR! for the offending cell
    max_nesting_depth: int = int(os.getenv("GRIDCALC_MAX_NESTING_DEPTH", "64"))
    max_reference_depth: int = int(os.getenv("GRIDCALC_MAX_REFERENCE_DEPTH", "150"))

    # Parsed-formula LRU cache size. Process-wide: read once from the module
    # settings when gridcalc.calc is imported, so per-evaluator Settings
    # instances do not resize it.
    parse_cache_size: int = int(os.getenv("GRIDCALC_PARSE_CACHE_SIZE", "4096"))

    # Background recalculation ('thread' or 'process')
    worker_executor: str = os.getenv("GRIDCALC_WORKER_EXECUTOR", "thread")
    worker_max_workers: int = int(os.getenv("GRIDCALC_WORKER_MAX_WORKERS", "1"))


settings = Settings()
