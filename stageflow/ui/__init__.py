from .console import ConsoleManager, ThreadSafeConsole

__all__ = ["ConsoleManager", "ThreadSafeConsole"]
