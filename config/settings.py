"""
Configuration management for the timetable scheduler API.
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings."""

    # Application
    app_name: str = "School Timetable Scheduler API"
    app_version: str = "1.0.0"

    # Server
    host: str = "0.0.0.0"
    port: int = 8080
    reload: bool = False

    # Scheduling
    default_strategy: str = "greedy"  # "greedy" or "cp_sat"
    default_core_subjects: List[str] = []

    # CP-SAT solver
    solver_timeout_seconds: int = 30
    solver_random_seed: int = 42
    solver_num_workers: int = 1

    # Logging
    log_level: str = "INFO"

    # CORS
    cors_origins: List[str] = ["http://localhost:3000"]

    class Config:
        env_file = ".env"
        env_prefix = "SCHEDULER_"
        case_sensitive = False


settings = Settings()
