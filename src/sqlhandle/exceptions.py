"""
Exception classes for connection-source resolution and statement handling.
"""
import sqlite3

import psycopg


class DatabaseError(Exception):
    """Base class for all sqlhandle errors.
    """


class NamespaceError(DatabaseError):
    """Error walking or resolving the naming namespace.
    """


class NameNotFound(NamespaceError):
    """A name is not bound in the namespace.
    """

    def __init__(self, name):
        super().__init__(f'Name "{name}" is not bound')
        self.name = name


class RegistryError(DatabaseError):
    """Error resolving a connection from the connection registry.
    """


class RegistryUninitialized(RegistryError):
    """Source discovery failed earlier in this process and is not retried.
    """


class NoSourcesAvailable(RegistryError):
    """Discovery succeeded but found no connection sources.
    """


class UnknownSource(RegistryError):
    """The requested source name is not registered.
    """

    def __init__(self, name):
        super().__init__(f'Connection source "{name}" is not registered')
        self.name = name


class StatementError(DatabaseError):
    """Error driving a statement handle.
    """


class AlreadyOpen(StatementError):
    """The handle still holds a live statement from a prior execution.
    """


class NoSQL(StatementError):
    """The handle has no SQL text to execute.
    """


class ExecutionFailed(StatementError):
    """Acquiring, binding or executing a statement failed.

    The underlying error is kept unchanged on ``cause``.
    """

    def __init__(self, message, cause=None):
        super().__init__(message)
        self.cause = cause


DbConnectionError = (
    psycopg.OperationalError,
    psycopg.InterfaceError,
    sqlite3.OperationalError,
    sqlite3.InterfaceError,
    )

IntegrityError = (
    psycopg.IntegrityError,
    sqlite3.IntegrityError,
    )

ProgrammingError = (
    psycopg.ProgrammingError,
    psycopg.DatabaseError,
    sqlite3.ProgrammingError,
    sqlite3.DatabaseError,
    )

OperationalError = (
    psycopg.OperationalError,
    sqlite3.OperationalError,
    )
