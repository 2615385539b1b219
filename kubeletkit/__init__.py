"""Logging adapters, pod helpers, rate limiters and an asyncio work queue for node agents."""

__version__ = "0.1.0"
__all__ = ["klog", "log", "podutils", "queue", "ratelimit", "stdlog"]