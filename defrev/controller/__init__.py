"""Dispatch layer: work queue, rate limiter, worker pool, and runtime wiring."""

from defrev.controller.manager import Controller
from defrev.controller.queue import RateLimiter, WorkQueue
from defrev.controller.runtime import ControllerRuntime

__all__ = ["Controller", "ControllerRuntime", "RateLimiter", "WorkQueue"]
