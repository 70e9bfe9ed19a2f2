"""
Application services built on the Supabase client.

Currently includes:
- License status helpers (`license`)
- Role permissions (`permissions`)
- ErrorLogger: remote error log in the `error_logs` table (`error_logger`)
"""

from .error_logger import ErrorLogger

__all__ = ["ErrorLogger"]
