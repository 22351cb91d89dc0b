from .session import engine, AsyncSessionLocal, Base, init_db

__all__ = ["engine", "AsyncSessionLocal", "Base", "init_db"]
