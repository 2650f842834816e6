"""Async SQL execution over the relational store."""

from .sqlite import ExecuteResult, SqlExecutor, SqliteExecutor

__all__ = ["ExecuteResult", "SqlExecutor", "SqliteExecutor"]
